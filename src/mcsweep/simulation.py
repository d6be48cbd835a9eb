r"""
Trial simulation base class and per-unit execution.

This module provides:

Classes
    :class:`TrialSimulation` — Abstract base class for defining trial families
    :class:`UnitOutcome` — Trial outcomes (or the failure) of one unit

A unit runs all of its trials in a single call to :meth:`TrialSimulation.run_unit`,
drawing from one private stream built from the unit's derived seed. Faults are
caught at the trial boundary and recorded on the outcome; they never reach
sibling units.

Example
-------
>>> from mcsweep.simulation import TrialSimulation
>>> class CoinSim(TrialSimulation):
...     outcome_dtype = bool
...     def single_trial(self, unit, rng, config):
...         return bool(rng.random() < 0.5)
>>> sim = CoinSim(name="coin")

See Also
--------
mcsweep.backends
    Execution backends that fan units out across workers.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, ClassVar, Optional

import numpy as np

from .config import SimulationConfig
from .exceptions import TrialError
from .seeding import make_stream
from .units import SimulationUnit, WorkItem

logger = logging.getLogger(__name__)

__all__ = ["TrialSimulation", "UnitOutcome"]


@dataclass
class UnitOutcome:
    r"""
    Everything one unit produced.

    Attributes
    ----------
    unit : SimulationUnit
        The unit the trials ran for.
    values : ndarray
        One entry per completed trial; empty when :attr:`error` is set.
    error : TrialError or None
        Failure record; a failed unit is excluded from aggregation.
    elapsed : float
        Wall-clock seconds spent on the unit.
    """

    unit: SimulationUnit
    values: np.ndarray
    error: Optional[TrialError] = None
    elapsed: float = 0.0

    @property
    def identity(self) -> str:
        return self.unit.identity

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, unit: SimulationUnit, error: TrialError, elapsed: float = 0.0) -> "UnitOutcome":
        return cls(unit=unit, values=np.empty(0, dtype=float), error=error, elapsed=elapsed)


class TrialSimulation(ABC):
    r"""
    Abstract base class for a family of independent trials.

    Subclass this and implement :meth:`single_trial`. The framework takes care of
    per-unit seeding, fan-out across workers, failure isolation and aggregation.

    Attributes
    ----------
    name : str
        Human-readable label used in logs and report metadata.
    outcome_dtype : type
        NumPy dtype of a unit's outcome array (``bool`` or ``float``).

    Notes
    -----
    **RNG discipline.** All random sampling inside :meth:`single_trial` must use the
    ``rng`` argument. Instances hold no generator, so they pickle cleanly for the
    process backend and can be shared read-only by thread workers.
    """

    outcome_dtype: ClassVar[type] = float

    def __init__(self, name: str = "Simulation"):
        self.name = name

    @abstractmethod
    def single_trial(self, unit: Any, rng: np.random.Generator, config: SimulationConfig) -> Any:
        r"""
        Perform one trial for ``unit``.

        Parameters
        ----------
        unit : SimulationUnit
            The unit under simulation.
        rng : numpy.random.Generator
            The unit's private stream.
        config : SimulationConfig
            Read-only run settings.

        Returns
        -------
        bool or float
            The trial outcome.
        """
        raise NotImplementedError  # pragma: no cover

    def run_unit(self, work_item: WorkItem, config: SimulationConfig) -> UnitOutcome:
        r"""
        Run ``config.iterations_per_unit`` trials for one work item.

        The first trial that raises ends the unit: the exception is recorded as a
        :class:`~mcsweep.exceptions.TrialError` and the partial values are dropped.
        """
        unit = work_item.unit
        t0 = time.perf_counter()
        rng = make_stream(work_item.seed)
        values = np.empty(config.iterations_per_unit, dtype=self.outcome_dtype)
        for i in range(config.iterations_per_unit):
            try:
                values[i] = self.single_trial(unit, rng, config)
            except Exception as e:  # pylint: disable=broad-exception-caught
                err = TrialError.from_exception(unit.identity, i, e)
                logger.debug("Trial failed: %s", err)
                return UnitOutcome.failure(unit, err, time.perf_counter() - t0)
        return UnitOutcome(unit=unit, values=values, elapsed=time.perf_counter() - t0)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
