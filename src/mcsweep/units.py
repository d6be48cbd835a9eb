r"""
Units of work: the entities for which independent trials are run.

Classes
    :class:`SimulationUnit` — protocol exposing a stable ``identity``
    :class:`ParameterPoint` — one configuration in a parameter grid
    :class:`InventoryItem` — one stocked item for stockout-risk simulation
    :class:`WorkItem` — a unit paired with its derived seed
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterator, Mapping, Protocol, runtime_checkable

from .exceptions import ConfigurationError

__all__ = [
    "SimulationUnit",
    "ParameterPoint",
    "InventoryItem",
    "WorkItem",
]


@runtime_checkable
class SimulationUnit(Protocol):
    r"""
    Anything trials can be run for.

    ``identity`` must be stable across processes and runs; it feeds seed
    derivation and is the join key between scattered results and their unit.
    """

    @property
    def identity(self) -> str: ...


@dataclass(frozen=True)
class ParameterPoint:
    r"""
    Ordered tuple of named numeric dimensions.

    Attributes
    ----------
    names : tuple of str
        Dimension names in declaration order.
    values : tuple of float
        Coordinate along each dimension.

    Examples
    --------
    >>> p = ParameterPoint.from_mapping({"pressure": 5.0, "temperature": 2.5})
    >>> p["temperature"]
    2.5
    >>> p.identity
    'pressure=5.0|temperature=2.5'
    """

    names: tuple[str, ...]
    values: tuple[float, ...]

    def __post_init__(self) -> None:
        if len(self.names) != len(self.values):
            raise ConfigurationError("names and values must have the same length")
        # value-equal coordinates share one identity; + 0.0 folds -0.0 into 0.0
        try:
            values = tuple(float(v) + 0.0 for v in self.values)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"point coordinates must be numeric, got {self.values!r}") from e
        object.__setattr__(self, "names", tuple(str(n) for n in self.names))
        object.__setattr__(self, "values", values)

    @classmethod
    def from_mapping(cls, coords: Mapping[str, float]) -> "ParameterPoint":
        return cls(tuple(coords), tuple(coords.values()))

    @property
    def identity(self) -> str:
        return "|".join(f"{n}={v!r}" for n, v in zip(self.names, self.values))

    def __getitem__(self, name: str) -> float:
        try:
            return self.values[self.names.index(name)]
        except ValueError:
            raise KeyError(name) from None

    def __iter__(self) -> Iterator[tuple[str, float]]:
        return iter(zip(self.names, self.values))

    def as_dict(self) -> dict[str, float]:
        return dict(zip(self.names, self.values))


@dataclass(frozen=True)
class InventoryItem:
    r"""
    A stocked item whose daily demand is :math:`\mathcal{N}(\mu, \sigma)`.

    Attributes
    ----------
    id : str
        Item identifier, used as the unit identity.
    current_level : float
        Units on hand at the start of the horizon.
    mean_demand : float
        Mean daily demand :math:`\mu`.
    std_dev_demand : float
        Standard deviation of daily demand :math:`\sigma \ge 0`.
    """

    id: str
    current_level: float
    mean_demand: float
    std_dev_demand: float

    def __post_init__(self) -> None:
        if not self.id:
            raise ConfigurationError("item id must be non-empty")
        for field_name in ("current_level", "mean_demand", "std_dev_demand"):
            if not math.isfinite(getattr(self, field_name)):
                raise ConfigurationError(f"{field_name} of item '{self.id}' must be finite")
        if self.std_dev_demand < 0:
            raise ConfigurationError(f"std_dev_demand of item '{self.id}' must be >= 0")

    @property
    def identity(self) -> str:
        return self.id


@dataclass(frozen=True)
class WorkItem:
    """Scheduling unit: a simulation unit and the seed of its private stream."""

    unit: SimulationUnit
    seed: int

    @property
    def identity(self) -> str:
        return self.unit.identity
