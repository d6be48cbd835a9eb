r"""
Error taxonomy for :mod:`mcsweep`.

Classes
    :class:`ConfigurationError` — fatal, raised before any trial executes
    :class:`TrialError` — per-unit failure record carried on a unit outcome
    :class:`AggregationError` — invalid aggregation request
    :class:`Validated` — success/failure result returned by ``validate`` constructors
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

__all__ = [
    "McSweepError",
    "ConfigurationError",
    "TrialError",
    "AggregationError",
    "Validated",
]

T = TypeVar("T")


class McSweepError(Exception):
    """Base class for all package errors."""


class ConfigurationError(McSweepError, ValueError):
    """Malformed run configuration. Aborts a run before scheduling begins."""


class TrialError(McSweepError, RuntimeError):
    r"""
    Failure of one unit's trials.

    The instance keeps only strings and ints in :attr:`args` so it survives
    pickling across process boundaries.

    Parameters
    ----------
    identity : str
        Identity of the failed unit.
    trial_index : int or None
        Index of the trial that raised, or ``None`` when the fault happened
        outside a trial (stream construction, worker transport).
    error_type : str
        Class name of the original exception.
    message : str
        Message of the original exception.
    """

    def __init__(self, identity: str, trial_index: Optional[int], error_type: str, message: str):
        super().__init__(identity, trial_index, error_type, message)

    @classmethod
    def from_exception(cls, identity: str, trial_index: Optional[int], exc: BaseException) -> "TrialError":
        return cls(identity, trial_index, type(exc).__name__, str(exc))

    @property
    def identity(self) -> str:
        return self.args[0]

    @property
    def trial_index(self) -> Optional[int]:
        return self.args[1]

    @property
    def error_type(self) -> str:
        return self.args[2]

    @property
    def message(self) -> str:
        return self.args[3]

    def __str__(self) -> str:
        where = "outside trials" if self.trial_index is None else f"in trial {self.trial_index}"
        return f"unit '{self.identity}' failed {where}: {self.error_type}: {self.message}"


class AggregationError(McSweepError, ValueError):
    """Aggregation was asked for something the results cannot answer."""


@dataclass(frozen=True)
class Validated(Generic[T]):
    r"""
    Outcome of a validating constructor.

    Exactly one of :attr:`value` and :attr:`error` is set.

    Examples
    --------
    >>> from mcsweep.config import SimulationConfig
    >>> res = SimulationConfig.validate(iterations_per_unit=0, trial_horizon=30, base_seed=1)
    >>> res.ok
    False
    """

    value: Optional[T] = None
    error: Optional[ConfigurationError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the value or raise the stored :class:`ConfigurationError`."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]
