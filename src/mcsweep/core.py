r"""

mcsweep.core
============

Orchestration of reproducible parallel trial runs.

This module provides:

* :class:`~mcsweep.core.SweepRunner` – validates a run, assigns seeds, fans units
  out over a backend and aggregates the outcomes.
* :func:`~mcsweep.core.run_units` – raw per-unit outcomes in input order.
* :func:`~mcsweep.core.run_stockout_risk` – ranked stockout probabilities.
* :func:`~mcsweep.core.run_grid_search` – objective values over a parameter grid.
* :func:`~mcsweep.core.run_experiment` – grid search driven by an
  :class:`~mcsweep.config.ExperimentConfig`.

Parallel backends
-----------------

``backend="auto"`` runs small batches (one unit, or one worker) sequentially and
otherwise **prefers threads**: NumPy sampling and simulated latency release the
Global Interpreter Lock, and threads avoid the spawn/pickle cost of processes.
On Windows ``"auto"`` resolves to processes.

Set ``backend="process"`` for heavy, Python-bound trials that do **not**
release the GIL.

Whatever the backend and worker count, each unit draws from its own stream
derived from ``(base_seed, identity)``, so results are bit-identical.
"""

from __future__ import annotations

import logging
import multiprocessing as mp
import time
from typing import Any, Iterable, Optional, Sequence

from .aggregation import GridReport, RiskReport, aggregate_objective, aggregate_risk
from .backends import (
    ExecutionBackend,
    ProcessBackend,
    ProgressCallback,
    SequentialBackend,
    ThreadBackend,
    is_windows_platform,
)
from .config import ExperimentConfig, SimulationConfig, validate_backend, validate_parallelism
from .exceptions import ConfigurationError
from .grid import ParameterGrid
from .seeding import assign_seeds
from .simulation import TrialSimulation, UnitOutcome
from .sims.objective import Objective, ObjectiveSimulation
from .sims.stockout import StockoutSimulation
from .units import InventoryItem, ParameterPoint, SimulationUnit

logger = logging.getLogger(__name__)
_package_logger = logging.getLogger(__package__ or "mcsweep")
if not _package_logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
    handler.setFormatter(formatter)
    _package_logger.addHandler(handler)
    _package_logger.setLevel(logging.INFO)

__all__ = [
    "SweepRunner",
    "resolve_backend",
    "create_backend",
    "run_units",
    "run_stockout_risk",
    "run_grid_search",
    "run_experiment",
]


def resolve_backend(backend: str, n_units: int, n_workers: int) -> str:
    r"""
    Resolve ``"auto"`` into a concrete backend name.

    Parameters
    ----------
    backend : {"auto", "sequential", "thread", "process"}
        Requested backend.
    n_units : int
        Number of units in the batch.
    n_workers : int
        Effective worker cap.

    Returns
    -------
    str
        ``"sequential"``, ``"thread"`` or ``"process"``.

    Notes
    -----
    ``"auto"`` maps to:
    * ``"sequential"`` when ``n_workers <= 1`` or there are fewer than two units.
    * ``"thread"`` on POSIX-like platforms.
    * ``"process"`` on Windows where threads tend to serialize under the GIL.
    """
    validate_backend(backend)
    if backend != "auto":
        return backend
    if n_workers <= 1 or n_units < 2:
        return "sequential"
    if is_windows_platform():
        logger.info("Parallel backend 'auto' resolved to 'process' on Windows platform.")
        return "process"
    return "thread"


def create_backend(backend: str, n_workers: int) -> ExecutionBackend:
    r"""
    Instantiate a resolved backend.

    Parameters
    ----------
    backend : {"sequential", "thread", "process"}
        Concrete backend name (see :func:`resolve_backend`).
    n_workers : int
        Worker cap for the parallel backends.
    """
    if backend == "sequential":
        return SequentialBackend()
    if backend == "thread":
        return ThreadBackend(n_workers=n_workers)
    if backend == "process":
        return ProcessBackend(n_workers=n_workers)
    raise ConfigurationError(f"backend '{backend}' must be resolved before creation")


def _check_units(units: Sequence[Any], expected: type | None = None) -> None:
    seen: set[str] = set()
    for u in units:
        if expected is not None and not isinstance(u, expected):
            raise ConfigurationError(f"expected {expected.__name__} units, got {type(u).__name__}")
        if not isinstance(u, SimulationUnit):
            raise ConfigurationError(f"{u!r} has no 'identity' and cannot be simulated")
        if u.identity in seen:
            raise ConfigurationError(f"duplicate unit identity '{u.identity}'")
        seen.add(u.identity)


class SweepRunner:
    r"""
    Reusable execution settings for trial runs.

    Parameters
    ----------
    backend : {"auto", "sequential", "thread", "process"}, default ``"auto"``
        Execution backend.
    degree_of_parallelism : int, optional
        Maximum number of units executing concurrently. ``None`` uses every CPU.
    progress_callback : callable, optional
        A function ``f(completed_units: int, total_units: int)``.
    confidence : float, default ``0.95``
        Confidence level of the intervals attached to each estimate.

    Raises
    ------
    ConfigurationError
        On an unknown backend or a non-positive ``degree_of_parallelism``.

    Examples
    --------
    >>> from mcsweep import SimulationConfig, InventoryItem
    >>> runner = SweepRunner(backend="thread", degree_of_parallelism=4)
    >>> report = runner.run_stockout_risk(
    ...     [InventoryItem("MED-101", 500, 12.5, 3.0)], SimulationConfig(1000, 30, 42)
    ... )  # doctest: +SKIP
    """

    def __init__(
        self,
        backend: str = "auto",
        degree_of_parallelism: Optional[int] = None,
        progress_callback: ProgressCallback | None = None,
        confidence: float = 0.95,
    ):
        self.backend = validate_backend(backend)
        self.degree_of_parallelism = validate_parallelism(degree_of_parallelism)
        self.progress_callback = progress_callback
        if not 0.0 < confidence < 1.0:
            raise ConfigurationError("confidence must be in the interval (0, 1)")
        self.confidence = confidence
        self.last_metadata: dict[str, Any] = {}

    def run_units(
        self,
        simulation: TrialSimulation,
        units: Iterable[SimulationUnit],
        config: SimulationConfig,
    ) -> list[UnitOutcome]:
        r"""
        Run every unit's trials and return outcomes aligned with ``units``.

        All validation happens before any trial executes. Failed units come back
        as outcomes carrying a :class:`~mcsweep.exceptions.TrialError`; they never
        raise.

        Parameters
        ----------
        simulation : TrialSimulation
            Trial family to run.
        units : iterable of SimulationUnit
            Units with unique identities.
        config : SimulationConfig
            Iterations, horizon and base seed.

        Returns
        -------
        list of UnitOutcome
            ``outcomes[i]`` belongs to the ``i``-th unit.
        """
        if not isinstance(config, SimulationConfig):
            raise ConfigurationError(f"config must be a SimulationConfig, got {type(config).__name__}")
        if not isinstance(simulation, TrialSimulation):
            raise ConfigurationError(f"simulation must be a TrialSimulation, got {type(simulation).__name__}")
        units = list(units)
        _check_units(units)

        work_items = assign_seeds(units, config.base_seed)
        n_workers = self.degree_of_parallelism or mp.cpu_count()
        backend = resolve_backend(self.backend, len(work_items), n_workers)

        if backend == "sequential":
            logger.info("Computing %d units sequentially...", len(work_items))
        else:
            logger.info(
                "Computing %d units in parallel using %s backend with %d workers...",
                len(work_items), backend, n_workers,
            )

        t0 = time.time()
        outcomes = create_backend(backend, n_workers).run(
            simulation, work_items, config, self.progress_callback
        )
        exec_time = time.time() - t0

        n_failed = 0
        for o in outcomes:
            if o.error is not None:
                n_failed += 1
                logger.warning("Unit failed: %s", o.error)
        logger.info(
            "Completed %d units (%d failed) in %.2f seconds.", len(outcomes), n_failed, exec_time
        )

        self.last_metadata = {
            "simulation_name": simulation.name,
            "timestamp": time.time(),
            "n_units": len(work_items),
            "n_failed": n_failed,
            "iterations_per_unit": config.iterations_per_unit,
            "trial_horizon": config.trial_horizon,
            "base_seed": config.base_seed,
            "backend": backend,
            "n_workers": 1 if backend == "sequential" else n_workers,
            "execution_time": exec_time,
        }
        return outcomes

    def run_stockout_risk(
        self,
        items: Iterable[InventoryItem],
        config: SimulationConfig,
        simulation: StockoutSimulation | None = None,
    ) -> RiskReport:
        r"""
        Estimate each item's probability of stocking out within ``config.trial_horizon`` days.

        Returns
        -------
        RiskReport
            Sorted by descending probability, ties by item id; failed items listed
            separately.
        """
        items = list(items)
        _check_units(items, InventoryItem)
        outcomes = self.run_units(simulation or StockoutSimulation(), items, config)
        report = aggregate_risk(outcomes, confidence=self.confidence)
        report.metadata = dict(self.last_metadata)
        return report

    def run_grid_search(
        self,
        grid: ParameterGrid | Iterable[ParameterPoint],
        objective: Objective,
        config: SimulationConfig,
        latency: float = 0.0,
    ) -> GridReport:
        r"""
        Evaluate ``objective`` at every grid point.

        Parameters
        ----------
        grid : ParameterGrid or iterable of ParameterPoint
            Points to evaluate, in report order.
        objective : callable
            ``objective(point, rng) -> float``.
        config : SimulationConfig
            ``iterations_per_unit`` replicates per point (1 for deterministic objectives).
        latency : float, default 0.0
            Simulated per-evaluation latency in seconds.

        Returns
        -------
        GridReport
            Estimates in grid order; failed points listed separately.
        """
        points = list(grid)
        _check_units(points, ParameterPoint)
        simulation = ObjectiveSimulation(objective, latency=latency, name=getattr(objective, "__name__", type(objective).__name__))
        outcomes = self.run_units(simulation, points, config)
        report = aggregate_objective(outcomes, confidence=self.confidence)
        report.metadata = dict(self.last_metadata)
        return report


def run_units(
    simulation: TrialSimulation,
    units: Iterable[SimulationUnit],
    config: SimulationConfig,
    *,
    backend: str = "auto",
    degree_of_parallelism: Optional[int] = None,
    progress_callback: ProgressCallback | None = None,
) -> list[UnitOutcome]:
    """Shortcut for :meth:`SweepRunner.run_units`."""
    runner = SweepRunner(backend, degree_of_parallelism, progress_callback)
    return runner.run_units(simulation, units, config)


def run_stockout_risk(
    items: Iterable[InventoryItem],
    config: SimulationConfig,
    *,
    backend: str = "auto",
    degree_of_parallelism: Optional[int] = None,
    progress_callback: ProgressCallback | None = None,
    confidence: float = 0.95,
    simulation: StockoutSimulation | None = None,
) -> RiskReport:
    """Shortcut for :meth:`SweepRunner.run_stockout_risk`."""
    runner = SweepRunner(backend, degree_of_parallelism, progress_callback, confidence)
    return runner.run_stockout_risk(items, config, simulation=simulation)


def run_grid_search(
    grid: ParameterGrid | Iterable[ParameterPoint],
    objective: Objective,
    config: SimulationConfig,
    *,
    latency: float = 0.0,
    backend: str = "auto",
    degree_of_parallelism: Optional[int] = None,
    progress_callback: ProgressCallback | None = None,
    confidence: float = 0.95,
) -> GridReport:
    """Shortcut for :meth:`SweepRunner.run_grid_search`."""
    runner = SweepRunner(backend, degree_of_parallelism, progress_callback, confidence)
    return runner.run_grid_search(grid, objective, config, latency=latency)


def run_experiment(
    experiment: ExperimentConfig,
    objective: Objective,
    *,
    latency: float = 0.0,
    progress_callback: ProgressCallback | None = None,
) -> GridReport:
    r"""
    Grid search with every setting taken from ``experiment``.

    Raises
    ------
    ConfigurationError
        If the experiment defines no dimensions.
    """
    runner = SweepRunner(experiment.backend, experiment.degree_of_parallelism, progress_callback)
    return runner.run_grid_search(experiment.grid(), objective, experiment.simulation, latency=latency)
