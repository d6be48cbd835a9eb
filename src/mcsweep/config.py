r"""
Run configuration.

Classes
    :class:`SimulationConfig` — iterations, horizon and base seed for one run
    :class:`ExperimentConfig` — simulation config plus grid and execution settings

Both are immutable and validated on construction. ``validate`` classmethods
return a :class:`~mcsweep.exceptions.Validated` instead of raising, so
configuration problems can be told apart from trial failures by type.

Example
-------
>>> cfg = SimulationConfig.from_mapping({"iterationsPerUnit": 1000, "trialHorizon": 30, "baseSeed": 42})
>>> cfg.with_overrides(base_seed=7).base_seed
7
"""

from __future__ import annotations

import json
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Mapping, Optional

from .exceptions import ConfigurationError, Validated
from .grid import DimensionRange, ParameterGrid

__all__ = [
    "SimulationConfig",
    "ExperimentConfig",
    "VALID_BACKENDS",
    "validate_parallelism",
    "validate_backend",
]

VALID_BACKENDS = ("auto", "sequential", "thread", "process")

_ALIASES = {
    "iterationsPerUnit": "iterations_per_unit",
    "trialHorizon": "trial_horizon",
    "baseSeed": "base_seed",
    "degreeOfParallelism": "degree_of_parallelism",
}


def _normalize_keys(data: Mapping[str, Any]) -> dict[str, Any]:
    return {_ALIASES.get(k, k): v for k, v in data.items()}


def _as_int(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    try:
        as_float = float(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from None
    if not as_float.is_integer():
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    return int(as_float)


@dataclass(frozen=True)
class SimulationConfig:
    r"""
    Immutable per-run settings shared read-only by all workers.

    Attributes
    ----------
    iterations_per_unit : int
        Trials per unit, ``> 0``.
    trial_horizon : int
        Steps per trial (days for stockout risk), ``>= 0``.
    base_seed : int
        Root of every derived per-unit seed.
    """

    iterations_per_unit: int
    trial_horizon: int = 0
    base_seed: int = 0

    def __post_init__(self) -> None:
        for name in ("iterations_per_unit", "trial_horizon", "base_seed"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigurationError(f"{name} must be an int, got {value!r}")
        if self.iterations_per_unit <= 0:
            raise ConfigurationError(
                f"iterations_per_unit must be positive, got {self.iterations_per_unit}"
            )
        if self.trial_horizon < 0:
            raise ConfigurationError(f"trial_horizon must be >= 0, got {self.trial_horizon}")

    @classmethod
    def validate(cls, **fields: Any) -> Validated["SimulationConfig"]:
        """Construct from keyword fields, returning the error instead of raising it."""
        try:
            return Validated(value=cls.from_mapping(fields))
        except ConfigurationError as e:
            return Validated(error=e)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "SimulationConfig":
        """Build from a mapping with snake_case or camelCase keys; unknown keys are ignored."""
        data = _normalize_keys(data)
        if "iterations_per_unit" not in data:
            raise ConfigurationError("iterations_per_unit is required")
        return cls(
            iterations_per_unit=_as_int("iterations_per_unit", data["iterations_per_unit"]),
            trial_horizon=_as_int("trial_horizon", data.get("trial_horizon", 0)),
            base_seed=_as_int("base_seed", data.get("base_seed", 0)),
        )

    def with_overrides(self, **changes: Any) -> "SimulationConfig":
        return replace(self, **changes)


def validate_parallelism(degree_of_parallelism: Optional[int]) -> Optional[int]:
    """Return ``degree_of_parallelism`` or raise if it is not ``None`` or a positive int."""
    if degree_of_parallelism is None:
        return None
    if isinstance(degree_of_parallelism, bool) or not isinstance(degree_of_parallelism, int):
        raise ConfigurationError(f"degree_of_parallelism must be an int, got {degree_of_parallelism!r}")
    if degree_of_parallelism <= 0:
        raise ConfigurationError(f"degree_of_parallelism must be positive, got {degree_of_parallelism}")
    return degree_of_parallelism


def validate_backend(backend: str) -> str:
    if backend not in VALID_BACKENDS:
        raise ConfigurationError(f"backend must be one of {VALID_BACKENDS}, got '{backend}'")
    return backend


@dataclass(frozen=True)
class ExperimentConfig:
    r"""
    Everything a configuration source supplies for a grid-search run.

    Attributes
    ----------
    simulation : SimulationConfig
        Iterations, horizon and base seed.
    dimensions : tuple of DimensionRange
        Grid axes in declaration order.
    degree_of_parallelism : int, optional
        Worker cap; ``None`` uses every CPU.
    backend : {"auto", "sequential", "thread", "process"}
        Execution backend.
    """

    simulation: SimulationConfig
    dimensions: tuple[DimensionRange, ...] = ()
    degree_of_parallelism: Optional[int] = None
    backend: str = "auto"

    def __post_init__(self) -> None:
        validate_parallelism(self.degree_of_parallelism)
        validate_backend(self.backend)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ExperimentConfig":
        data = _normalize_keys(data)
        sim_data = data.get("simulation", data)
        if not isinstance(sim_data, Mapping):
            raise ConfigurationError("simulation must be a mapping")
        dims = data.get("dimensions", [])
        if not isinstance(dims, list):
            raise ConfigurationError("dimensions must be a list of {name, start, stop, step}")
        dop = data.get("degree_of_parallelism")
        return cls(
            simulation=SimulationConfig.from_mapping(sim_data),
            dimensions=tuple(DimensionRange.from_mapping(d) for d in dims),
            degree_of_parallelism=None if dop is None else _as_int("degree_of_parallelism", dop),
            backend=str(data.get("backend", "auto")),
        )

    @classmethod
    def from_json(cls, path: str | Path) -> "ExperimentConfig":
        """Load from a JSON object on disk."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"{path}: invalid JSON: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"{path}: cannot read config: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"{path}: top-level JSON value must be an object")
        return cls.from_mapping(data)

    def grid(self) -> ParameterGrid:
        return ParameterGrid(self.dimensions)
