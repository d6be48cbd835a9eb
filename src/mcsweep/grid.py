r"""
Parameter grid generation.

A grid is the cartesian product of per-dimension inclusive ranges, iterated
row-major: the first declared dimension varies slowest.

Example
-------
>>> grid = ParameterGrid.from_specs({"pressure": (0.0, 10.0, 1.0), "temperature": (0.0, 10.0, 1.0)})
>>> len(grid)
121
>>> next(iter(grid)).identity
'pressure=0.0|temperature=0.0'
"""

from __future__ import annotations

import itertools
import math
from dataclasses import dataclass
from typing import Any, Iterable, Iterator, Mapping

from .exceptions import ConfigurationError, Validated
from .units import ParameterPoint

__all__ = ["DimensionRange", "ParameterGrid"]

# Relative slack for floating-point stop inclusion, e.g. 0.1 * 3 vs 0.3
_STOP_TOLERANCE = 1e-9
_ROUND_DIGITS = 12


@dataclass(frozen=True)
class DimensionRange:
    r"""
    Inclusive range ``start, start + step, ..., <= stop`` for one dimension.

    Raises
    ------
    ConfigurationError
        If a bound is not a number or non-finite, ``step <= 0``, ``start > stop``
        or the name is empty.
    """

    name: str
    start: float
    stop: float
    step: float

    def __post_init__(self) -> None:
        if not self.name:
            raise ConfigurationError("dimension name must be non-empty")
        try:
            for attr in ("start", "stop", "step"):
                object.__setattr__(self, attr, float(getattr(self, attr)))
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"dimension '{self.name}': start, stop and step must be numbers") from e
        if not all(math.isfinite(v) for v in (self.start, self.stop, self.step)):
            raise ConfigurationError(f"dimension '{self.name}' bounds must be finite")
        if self.step <= 0:
            raise ConfigurationError(f"dimension '{self.name}': step must be positive, got {self.step}")
        if self.start > self.stop:
            raise ConfigurationError(
                f"dimension '{self.name}': start {self.start} is greater than stop {self.stop}"
            )

    @classmethod
    def validate(cls, name: str, start: float, stop: float, step: float) -> Validated["DimensionRange"]:
        """Build a range, returning the configuration error instead of raising it."""
        try:
            return Validated(value=cls(name, start, stop, step))
        except ConfigurationError as e:
            return Validated(error=e)

    @classmethod
    def from_mapping(cls, spec: Mapping[str, Any]) -> "DimensionRange":
        try:
            return cls(str(spec["name"]), float(spec["start"]), float(spec["stop"]), float(spec["step"]))
        except ConfigurationError:
            raise
        except KeyError as e:
            raise ConfigurationError(f"dimension spec is missing key {e}") from None
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"invalid dimension spec {dict(spec)!r}: {e}") from None

    def __len__(self) -> int:
        span = (self.stop - self.start) / self.step
        return int(math.floor(span + _STOP_TOLERANCE * max(1.0, abs(span)))) + 1

    def values(self) -> tuple[float, ...]:
        return tuple(round(self.start + i * self.step, _ROUND_DIGITS) for i in range(len(self)))


class ParameterGrid:
    r"""
    Finite, restartable sequence of :class:`~mcsweep.units.ParameterPoint`.

    Parameters
    ----------
    dimensions : iterable of DimensionRange
        At least one dimension; names must be unique.

    Notes
    -----
    Iterating twice yields the same points in the same order.
    """

    def __init__(self, dimensions: Iterable[DimensionRange]):
        self.dimensions: tuple[DimensionRange, ...] = tuple(dimensions)
        if not self.dimensions:
            raise ConfigurationError("a parameter grid needs at least one dimension")
        names = [d.name for d in self.dimensions]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ConfigurationError(f"duplicate dimension names: {duplicates}")
        self._axes = tuple(d.values() for d in self.dimensions)

    @classmethod
    def from_specs(cls, specs: Mapping[str, tuple[float, float, float]]) -> "ParameterGrid":
        """Build from ``{name: (start, stop, step)}`` in declaration order."""
        dims = []
        for name, spec in specs.items():
            try:
                start, stop, step = spec
            except (TypeError, ValueError):
                raise ConfigurationError(
                    f"dimension '{name}': expected a (start, stop, step) triple, got {spec!r}"
                ) from None
            dims.append(DimensionRange(name, start, stop, step))
        return cls(dims)

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(d.name for d in self.dimensions)

    def axis(self, name: str) -> tuple[float, ...]:
        """Values along dimension ``name``."""
        return self._axes[self.names.index(name)]

    def __len__(self) -> int:
        return math.prod(len(a) for a in self._axes)

    def __iter__(self) -> Iterator[ParameterPoint]:
        names = self.names
        for values in itertools.product(*self._axes):
            yield ParameterPoint(names, values)

    def points(self) -> list[ParameterPoint]:
        return list(self)

    def __repr__(self) -> str:
        dims = ", ".join(f"{d.name}[{d.start}:{d.stop}:{d.step}]" for d in self.dimensions)
        return f"ParameterGrid({dims})"
