r"""
Base classes and utilities for execution backends.

This module provides:

Protocol
    :class:`ExecutionBackend` — Interface for unit execution strategies

Functions
    :func:`make_blocks` — Chunking helper for parallel work distribution
    :func:`run_guarded` — Run one unit, converting any escape into a failed outcome
    :func:`worker_run_block` — Top-level worker for process-based parallelism

Helpers
    :func:`is_windows_platform` — Platform detection for backend selection
"""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING, Callable, Protocol, Sequence

from ..exceptions import TrialError
from ..simulation import UnitOutcome

if TYPE_CHECKING:
    from ..config import SimulationConfig
    from ..simulation import TrialSimulation
    from ..units import WorkItem

__all__ = [
    "ExecutionBackend",
    "ProgressCallback",
    "make_blocks",
    "run_guarded",
    "worker_run_block",
    "is_windows_platform",
]

ProgressCallback = Callable[[int, int], None]


def is_windows_platform() -> bool:
    """Return True when running on a Windows platform."""
    return sys.platform.startswith("win") or (sys.platform == "cli")


def make_blocks(n: int, block_size: int = 10_000) -> list[tuple[int, int]]:
    r"""
    Partition an integer range :math:`[0, n)` into half-open blocks :math:`(i, j)`.

    Parameters
    ----------
    n : int
        Total number of items.
    block_size : int, default: 10_000
        Target block length.

    Returns
    -------
    list of tuple[int, int]
        List of ``(i, j)`` index pairs covering ``[0, n)``.

    Examples
    --------
    >>> make_blocks(5, block_size=2)
    [(0, 2), (2, 4), (4, 5)]
    """
    if block_size <= 0:
        raise ValueError("block_size must be positive")
    blocks = []
    i = 0
    while i < n:
        j = min(i + block_size, n)
        blocks.append((i, j))
        i = j
    return blocks


def run_guarded(
    simulation: "TrialSimulation",
    work_item: "WorkItem",
    config: "SimulationConfig",
) -> UnitOutcome:
    r"""
    Run one unit and never raise.

    :meth:`~mcsweep.simulation.TrialSimulation.run_unit` already isolates faults
    inside trials; this also covers faults around them (stream construction,
    a subclass overriding ``run_unit``).
    """
    try:
        return simulation.run_unit(work_item, config)
    except Exception as e:  # pylint: disable=broad-exception-caught
        return UnitOutcome.failure(work_item.unit, TrialError.from_exception(work_item.identity, None, e))


def worker_run_block(
    simulation: "TrialSimulation",
    work_items: Sequence["WorkItem"],
    config: "SimulationConfig",
) -> list[UnitOutcome]:
    r"""
    Execute a contiguous block of units in a **separate worker**.

    Parameters
    ----------
    simulation : TrialSimulation
        Must be pickleable when used with a process backend.
    work_items : sequence of WorkItem
        The block, in input order.
    config : SimulationConfig
        Read-only run settings.

    Returns
    -------
    list of UnitOutcome
        One outcome per work item, same order.

    Notes
    -----
    Each unit builds its own :class:`numpy.random.Philox` stream from its derived
    seed, so the block boundaries do not affect results.
    """
    return [run_guarded(simulation, w, config) for w in work_items]


class ExecutionBackend(Protocol):
    r"""
    Protocol defining the interface for execution backends.

    Backends fan units out, block until every unit has completed or failed, and
    return outcomes aligned with the input: ``outcomes[i]`` belongs to
    ``work_items[i]`` whatever the completion order.
    """

    def run(
        self,
        simulation: "TrialSimulation",
        work_items: Sequence["WorkItem"],
        config: "SimulationConfig",
        progress_callback: ProgressCallback | None = None,
    ) -> list[UnitOutcome]:
        r"""
        Run every work item and return their outcomes.

        Parameters
        ----------
        simulation : TrialSimulation
            The trial family to run.
        work_items : sequence of WorkItem
            Units with their derived seeds.
        config : SimulationConfig
            Read-only run settings.
        progress_callback : callable or None
            Optional callback ``f(completed, total)`` for progress reporting.

        Returns
        -------
        list of UnitOutcome
            Outcomes in input order.
        """
