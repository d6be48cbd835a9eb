r"""
Sequential execution backend.

This module provides a single-threaded execution strategy that runs
units one after another with optional progress reporting.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

from ..simulation import UnitOutcome
from .base import ProgressCallback, run_guarded

if TYPE_CHECKING:
    from ..config import SimulationConfig
    from ..simulation import TrialSimulation
    from ..units import WorkItem

__all__ = ["SequentialBackend"]


class SequentialBackend:
    r"""
    Sequential (single-threaded) execution backend.

    Executes units one at a time on the calling thread.
    Suitable for small runs, debugging, and as the reference the parallel
    backends must match.

    Examples
    --------
    >>> backend = SequentialBackend()
    >>> outcomes = backend.run(sim, work_items, config)  # doctest: +SKIP
    """

    n_workers = 1

    def run(
        self,
        simulation: "TrialSimulation",
        work_items: Sequence["WorkItem"],
        config: "SimulationConfig",
        progress_callback: ProgressCallback | None = None,
    ) -> list[UnitOutcome]:
        total = len(work_items)
        # Report progress every 1% of units
        step = max(1, total // 100)
        outcomes: list[UnitOutcome] = []
        for i, item in enumerate(work_items):
            outcomes.append(run_guarded(simulation, item, config))
            if progress_callback and (((i + 1) % step == 0) or (i + 1 == total)):
                progress_callback(i + 1, total)
        return outcomes
