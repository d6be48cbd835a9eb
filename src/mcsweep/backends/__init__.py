"""
Execution backends for trial simulations.

This subpackage provides pluggable execution strategies:

CPU Backends
    :class:`SequentialBackend` — Single-threaded execution
    :class:`ThreadBackend` — Thread-based parallelism
    :class:`ProcessBackend` — Process-based parallelism

Utilities
    :func:`make_blocks` — Chunking helper for parallel work distribution
    :func:`worker_run_block` — Top-level worker for process pools
    :func:`run_guarded` — Single-unit runner that never raises
    :func:`is_windows_platform` — Platform detection helper

Protocol
    :class:`ExecutionBackend` — Interface for custom backends
"""

from .base import (
    ExecutionBackend,
    ProgressCallback,
    is_windows_platform,
    make_blocks,
    run_guarded,
    worker_run_block,
)
from .parallel import ProcessBackend, ThreadBackend
from .sequential import SequentialBackend

__all__ = [
    # Protocol
    "ExecutionBackend",
    "ProgressCallback",
    # CPU Backends
    "SequentialBackend",
    "ThreadBackend",
    "ProcessBackend",
    # Utility Functions
    "make_blocks",
    "run_guarded",
    "worker_run_block",
    "is_windows_platform",
]
