r"""
Parallel execution backends.

This module provides:

Classes
    :class:`ThreadBackend` — Thread-based parallelism using ThreadPoolExecutor
    :class:`ProcessBackend` — Process-based parallelism using ProcessPoolExecutor

Both split the work items into contiguous blocks, keep at most ``n_workers``
blocks in flight, and write each finished block back to its index range so
outcomes line up with the input regardless of completion order.
"""

from __future__ import annotations

import logging
import multiprocessing as mp
from concurrent.futures import Executor, ProcessPoolExecutor, ThreadPoolExecutor, as_completed
from typing import TYPE_CHECKING, Optional, Sequence

from ..exceptions import TrialError
from ..simulation import UnitOutcome
from .base import ProgressCallback, make_blocks, worker_run_block

if TYPE_CHECKING:
    from ..config import SimulationConfig
    from ..simulation import TrialSimulation
    from ..units import WorkItem

logger = logging.getLogger(__name__)

__all__ = [
    "ThreadBackend",
    "ProcessBackend",
]

# Default configuration constants
_CHUNKS_PER_WORKER = 8  # Number of chunks per worker for load balancing


class _PoolBackend:
    """Shared fan-out/fan-in over a ``concurrent.futures`` executor."""

    def __init__(self, n_workers: int, chunks_per_worker: int = _CHUNKS_PER_WORKER):
        if n_workers <= 0:
            raise ValueError("n_workers must be positive")
        if chunks_per_worker <= 0:
            raise ValueError("chunks_per_worker must be positive")
        self.n_workers = n_workers
        self.chunks_per_worker = chunks_per_worker

    def _make_executor(self, max_workers: int) -> Executor:
        raise NotImplementedError  # pragma: no cover

    def _prepare_blocks(self, n_items: int) -> list[tuple[int, int]]:
        """Partition ``n_items`` units into load-balancing blocks."""
        block_size = max(1, n_items // (self.n_workers * self.chunks_per_worker))
        return make_blocks(n_items, block_size)

    def run(
        self,
        simulation: "TrialSimulation",
        work_items: Sequence["WorkItem"],
        config: "SimulationConfig",
        progress_callback: ProgressCallback | None = None,
    ) -> list[UnitOutcome]:
        r"""
        Run units in parallel and block until all have completed or failed.

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
            Outcomes aligned with ``work_items``.
        """
        work_items = list(work_items)
        total = len(work_items)
        if total == 0:
            return []

        blocks = self._prepare_blocks(total)
        results: list[Optional[UnitOutcome]] = [None] * total
        completed = 0
        max_workers = min(self.n_workers, len(blocks))

        with self._make_executor(max_workers) as ex:
            futs = {
                ex.submit(worker_run_block, simulation, work_items[i:j], config): (i, j)
                for i, j in blocks
            }
            try:
                for f in as_completed(futs):
                    i, j = futs[f]
                    try:
                        chunk = f.result()
                    except Exception as e:  # pylint: disable=broad-exception-caught
                        # The block never reported back (broken pool, unpicklable payload);
                        # fail its units and keep the rest of the batch.
                        logger.error("Worker block [%d, %d) failed: %s", i, j, e)
                        chunk = [
                            UnitOutcome.failure(w.unit, TrialError.from_exception(w.identity, None, e))
                            for w in work_items[i:j]
                        ]
                    results[i:j] = chunk
                    completed += j - i
                    if progress_callback:
                        progress_callback(completed, total)
            except KeyboardInterrupt:  # pragma: no cover
                for f in futs:
                    f.cancel()
                raise

        return results  # type: ignore[return-value]


class ThreadBackend(_PoolBackend):
    r"""
    Thread-based parallel execution backend.

    Uses :class:`concurrent.futures.ThreadPoolExecutor` for parallel execution.
    Effective when trials release the GIL (NumPy sampling, simulated latency).

    Parameters
    ----------
    n_workers : int
        Maximum number of concurrently running worker threads.
    chunks_per_worker : int, default 8
        Number of work blocks per worker for load balancing.

    Examples
    --------
    >>> backend = ThreadBackend(n_workers=4)
    >>> outcomes = backend.run(sim, work_items, config)  # doctest: +SKIP
    """

    def _make_executor(self, max_workers: int) -> Executor:
        return ThreadPoolExecutor(max_workers=max_workers)


class ProcessBackend(_PoolBackend):
    r"""
    Process-based parallel execution backend.

    Uses :class:`concurrent.futures.ProcessPoolExecutor` with spawn context
    for parallel execution. Required on Windows or for Python-bound trials that
    hold the GIL.

    Parameters
    ----------
    n_workers : int
        Maximum number of worker processes.
    chunks_per_worker : int, default 8
        Number of work blocks per worker for load balancing.

    Notes
    -----
    The simulation, its units and its objective must be pickleable.

    Examples
    --------
    >>> backend = ProcessBackend(n_workers=4)
    >>> outcomes = backend.run(sim, work_items, config)  # doctest: +SKIP
    """

    def _make_executor(self, max_workers: int) -> Executor:
        return ProcessPoolExecutor(
            max_workers=max_workers,
            mp_context=mp.get_context("spawn"),
        )
