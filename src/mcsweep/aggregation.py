r"""
Reduce unit outcomes into summary statistics.

This module provides:

Classes
    :class:`RiskEstimate` — stockout probability of one item
    :class:`ObjectiveEstimate` — mean objective value at one parameter point
    :class:`FailedUnit` — a unit excluded from aggregation because a trial failed
    :class:`RiskReport` — ranked risk estimates plus failures
    :class:`GridReport` — grid-ordered objective estimates plus failures
    :class:`PivotTable` — objective values laid out over two grid dimensions

Functions
    :func:`aggregate_risk`, :func:`aggregate_objective`, :func:`pivot`

Every unit ends up in exactly one place: ``results`` if it ran cleanly,
``failed`` otherwise. A unit with zero successful trials gets a ``nan``
statistic (``defined is False``) instead of a misleading ``0.0``.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Sequence

import numpy as np

from .exceptions import AggregationError, TrialError
from .simulation import UnitOutcome
from .stats_engine import DEFAULT_ENGINE, PROPORTION_ENGINE, StatsContext, StatsEngine
from .units import InventoryItem, ParameterPoint, SimulationUnit

logger = logging.getLogger(__name__)

__all__ = [
    "UnitEstimate",
    "RiskEstimate",
    "ObjectiveEstimate",
    "FailedUnit",
    "RiskReport",
    "GridReport",
    "PivotTable",
    "aggregate_risk",
    "aggregate_objective",
    "pivot",
    "HIGH_RISK_THRESHOLD",
]

HIGH_RISK_THRESHOLD = 0.20
_NAN = float("nan")


@dataclass(frozen=True)
class UnitEstimate:
    r"""
    One aggregate per input unit.

    Attributes
    ----------
    unit : SimulationUnit
        The unit the estimate belongs to.
    statistic : float
        The unit's summary value, ``nan`` when undefined.
    n_trials : int
        Number of successful trials behind the statistic.
    """

    unit: SimulationUnit
    statistic: float
    n_trials: int

    @property
    def identity(self) -> str:
        return self.unit.identity

    @property
    def defined(self) -> bool:
        return math.isfinite(self.statistic)


@dataclass(frozen=True)
class RiskEstimate(UnitEstimate):
    """Stockout probability with its Wilson interval."""

    stockouts: int = 0
    ci_low: float = _NAN
    ci_high: float = _NAN

    @property
    def probability(self) -> float:
        return self.statistic


@dataclass(frozen=True)
class ObjectiveEstimate(UnitEstimate):
    """Mean objective value over a point's replicates, with its spread and percentiles."""

    std: float = _NAN
    ci_low: float = _NAN
    ci_high: float = _NAN
    percentiles: Mapping[int, float] = field(default_factory=dict)

    @property
    def mean(self) -> float:
        return self.statistic


@dataclass(frozen=True)
class FailedUnit:
    """A unit reported separately because one of its trials raised."""

    unit: SimulationUnit
    error: TrialError

    @property
    def identity(self) -> str:
        return self.unit.identity


@dataclass(frozen=True)
class PivotTable:
    r"""
    Dense matrix of statistics keyed by two grid dimensions.

    Attributes
    ----------
    row_dimension, column_dimension : str
        Dimension names on each axis.
    row_labels, column_labels : tuple of float
        Sorted distinct coordinates.
    values : ndarray, shape ``(len(row_labels), len(column_labels))``
        ``values[r, c]`` is the statistic at ``(row_labels[r], column_labels[c])``,
        or the ``missing`` sentinel where no defined estimate exists.
    missing : float
        Sentinel used for absent cells (``nan`` by default).
    """

    row_dimension: str
    column_dimension: str
    row_labels: tuple[float, ...]
    column_labels: tuple[float, ...]
    values: np.ndarray
    missing: float = _NAN

    @property
    def shape(self) -> tuple[int, int]:
        return self.values.shape  # type: ignore[return-value]

    def cell(self, row: float, column: float) -> float:
        try:
            r = self.row_labels.index(row)
            c = self.column_labels.index(column)
        except ValueError:
            raise KeyError((row, column)) from None
        return float(self.values[r, c])

    def is_missing(self, row: float, column: float) -> bool:
        value = self.cell(row, column)
        if math.isnan(self.missing):
            return math.isnan(value)
        return value == self.missing


def _risk_sort_key(e: RiskEstimate) -> tuple[int, float, str]:
    if not e.defined:
        return (1, 0.0, e.identity)
    return (0, -e.probability, e.identity)


@dataclass
class RiskReport:
    r"""
    Stockout risk for a batch of items.

    Attributes
    ----------
    results : list of RiskEstimate
        Sorted by descending probability, ties by identity, undefined last.
    failed : list of FailedUnit
        Items whose trials raised, in input order.
    metadata : dict
        Run settings and timing.
    """

    results: list[RiskEstimate] = field(default_factory=list)
    failed: list[FailedUnit] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.results)

    def probabilities(self) -> dict[str, float]:
        """``{identity: probability}`` in report order."""
        return {e.identity: e.probability for e in self.results}

    def high_risk(self, threshold: float = HIGH_RISK_THRESHOLD) -> list[RiskEstimate]:
        return [e for e in self.results if e.defined and e.probability > threshold]

    def to_string(self, high_risk_threshold: float = HIGH_RISK_THRESHOLD) -> str:
        r"""
        Human-readable risk table.

        Items above ``high_risk_threshold`` are flagged ``**HIGH RISK**``.
        """
        horizon = self.metadata.get("trial_horizon")
        title = f"--- STOCKOUT RISK REPORT (Next {horizon} Days) ---" if horizon is not None else (
            "--- STOCKOUT RISK REPORT ---"
        )
        lines = [title, f"{'ItemID':<10} | {'Stock':<10} | Risk Prob", "-" * 41]
        for e in self.results:
            stock = f"{e.unit.current_level:<10.0f}" if isinstance(e.unit, InventoryItem) else " " * 10
            if e.defined:
                flag = " **HIGH RISK**" if e.probability > high_risk_threshold else ""
                risk = f"{e.probability * 100:.1f}%{flag}"
            else:
                risk = "undefined"
            lines.append(f"{e.identity:<10} | {stock} | {risk}")
        if self.failed:
            lines.append("")
            lines.append("[!] Failed items:")
            for f in self.failed:
                lines.append(f"    - {f.error}")
        return "\n".join(lines)


@dataclass
class GridReport:
    r"""
    Objective estimates over a parameter grid.

    Attributes
    ----------
    results : list of ObjectiveEstimate
        In grid (input) order.
    failed : list of FailedUnit
        Points whose evaluation raised, in input order.
    metadata : dict
        Run settings and timing.
    """

    results: list[ObjectiveEstimate] = field(default_factory=list)
    failed: list[FailedUnit] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.results)

    def best(self, maximize: bool = True) -> Optional[ObjectiveEstimate]:
        r"""
        Extremum over defined estimates.

        Ties go to the earliest point in grid order. Returns ``None`` when no
        estimate is defined.
        """
        best: Optional[ObjectiveEstimate] = None
        for e in self.results:
            if not e.defined:
                continue
            if best is None or (e.mean > best.mean if maximize else e.mean < best.mean):
                best = e
        return best

    def ranked(self, maximize: bool = True) -> list[ObjectiveEstimate]:
        """Defined estimates, best first; stable on ties."""
        defined = [e for e in self.results if e.defined]
        return sorted(defined, key=lambda e: -e.mean if maximize else e.mean)

    def pivot(
        self,
        rows: str,
        columns: str,
        where: Mapping[str, float] | None = None,
        missing: float = _NAN,
    ) -> PivotTable:
        """Pivot this report; failed points keep their labels and hold ``missing``."""
        return pivot(
            self.results,
            rows,
            columns,
            where=where,
            missing=missing,
            points=[e.unit for e in self.results] + [f.unit for f in self.failed],
        )

    def to_string(self) -> str:
        name = self.metadata.get("simulation_name", "grid search")
        lines = [f"Results for '{name}':", f"  Points evaluated: {len(self.results)}"]
        best = self.best()
        if best is not None:
            lines.append(f"  Best: {best.identity} -> {best.mean:.5f} ({best.n_trials} trials)")
            if best.n_trials > 1 and best.percentiles:
                pct = ", ".join(f"p{p}={v:.5f}" for p, v in best.percentiles.items())
                lines.append(f"  Best percentiles: {pct}")
        if "execution_time" in self.metadata:
            lines.append(f"  Execution time: {self.metadata['execution_time']:.2f} seconds")
        if self.failed:
            lines.append(f"  Failed points: {len(self.failed)}")
            for f in self.failed:
                lines.append(f"    - {f.error}")
        return "\n".join(lines)


def aggregate_risk(
    outcomes: Iterable[UnitOutcome],
    confidence: float = 0.95,
    engine: StatsEngine | None = None,
) -> RiskReport:
    r"""
    Turn boolean trial outcomes into ranked stockout probabilities.

    Parameters
    ----------
    outcomes : iterable of UnitOutcome
        One per unit, any order.
    confidence : float, default 0.95
        Level of the Wilson interval.
    engine : StatsEngine, optional
        Defaults to :data:`~mcsweep.stats_engine.PROPORTION_ENGINE`.

    Returns
    -------
    RiskReport
        Empty when ``outcomes`` is empty.
    """
    eng = engine or PROPORTION_ENGINE
    results: list[RiskEstimate] = []
    failed: list[FailedUnit] = []
    for o in outcomes:
        if o.error is not None:
            failed.append(FailedUnit(o.unit, o.error))
            continue
        values = np.asarray(o.values, dtype=bool)
        if values.size == 0:
            logger.warning("Unit '%s' has no successful trials; probability is undefined.", o.identity)
            results.append(RiskEstimate(unit=o.unit, statistic=_NAN, n_trials=0))
            continue
        stats = eng.compute(values, StatsContext(n=values.size, confidence=confidence))
        ci = stats.get("ci_proportion", {})
        results.append(
            RiskEstimate(
                unit=o.unit,
                statistic=float(stats.get("proportion", np.count_nonzero(values) / values.size)),
                n_trials=int(values.size),
                stockouts=int(np.count_nonzero(values)),
                ci_low=float(ci.get("low", _NAN)),
                ci_high=float(ci.get("high", _NAN)),
            )
        )
    results.sort(key=_risk_sort_key)
    return RiskReport(results=results, failed=failed)


def aggregate_objective(
    outcomes: Iterable[UnitOutcome],
    confidence: float = 0.95,
    engine: StatsEngine | None = None,
) -> GridReport:
    r"""
    Turn scalar trial outcomes into one mean per parameter point.

    Parameters
    ----------
    outcomes : iterable of UnitOutcome
        One per point, in grid order.
    confidence : float, default 0.95
        Level of the z/t interval (needs at least two replicates).
    engine : StatsEngine, optional
        Defaults to :data:`~mcsweep.stats_engine.DEFAULT_ENGINE`.

    Returns
    -------
    GridReport
        Estimates in input order; empty when ``outcomes`` is empty.
    """
    eng = engine or DEFAULT_ENGINE
    results: list[ObjectiveEstimate] = []
    failed: list[FailedUnit] = []
    for o in outcomes:
        if o.error is not None:
            failed.append(FailedUnit(o.unit, o.error))
            continue
        values = np.asarray(o.values, dtype=float)
        if values.size == 0:
            logger.warning("Unit '%s' has no successful trials; statistic is undefined.", o.identity)
            results.append(ObjectiveEstimate(unit=o.unit, statistic=_NAN, n_trials=0))
            continue
        ctx = StatsContext(n=values.size, confidence=confidence)
        stats = eng.compute(values, ctx, select=("mean", "std", "ci_mean", "percentiles"))
        ci = stats.get("ci_mean", {})
        results.append(
            ObjectiveEstimate(
                unit=o.unit,
                statistic=float(stats.get("mean", np.mean(values))),
                n_trials=int(values.size),
                std=float(stats.get("std", _NAN)),
                ci_low=float(ci.get("low", _NAN)),
                ci_high=float(ci.get("high", _NAN)),
                percentiles=dict(stats.get("percentiles", {})),
            )
        )
    return GridReport(results=results, failed=failed)


def _coordinate(point: SimulationUnit, name: str) -> float:
    if not isinstance(point, ParameterPoint):
        raise AggregationError(f"cannot pivot unit '{point.identity}': not a parameter point")
    try:
        return point[name]
    except KeyError:
        raise AggregationError(f"unknown dimension '{name}' for point '{point.identity}'") from None


def _matches(point: ParameterPoint, where: Mapping[str, float]) -> bool:
    return all(math.isclose(_coordinate(point, k), float(v), rel_tol=1e-9, abs_tol=1e-12) for k, v in where.items())


def pivot(
    estimates: Sequence[UnitEstimate],
    rows: str,
    columns: str,
    where: Mapping[str, float] | None = None,
    missing: float = _NAN,
    points: Sequence[SimulationUnit] | None = None,
) -> PivotTable:
    r"""
    Lay estimates out as a ``rows x columns`` matrix.

    Parameters
    ----------
    estimates : sequence of UnitEstimate
        Estimates whose units are :class:`~mcsweep.units.ParameterPoint`.
    rows, columns : str
        Dimension names for the two axes; must differ.
    where : mapping, optional
        Fixed values for any further dimensions, selecting one 2D slice.
    missing : float, default nan
        Sentinel for cells with no defined estimate.
    points : sequence of SimulationUnit, optional
        Extra points contributing labels besides the estimates' units. Pass
        failed points here so they show up as ``missing`` instead of vanishing.

    Returns
    -------
    PivotTable

    Raises
    ------
    AggregationError
        Unknown dimension, identical axes, or two estimates falling into the same
        cell because a further dimension was not fixed with ``where``.
    """
    if rows == columns:
        raise AggregationError("rows and columns must be different dimensions")
    where = dict(where or {})
    candidates = list(points or ()) + [e.unit for e in estimates]
    label_points = [p for p in candidates if _matches(p, where)]  # type: ignore[arg-type]

    row_labels = tuple(sorted({_coordinate(p, rows) for p in label_points}))
    col_labels = tuple(sorted({_coordinate(p, columns) for p in label_points}))
    row_index = {v: i for i, v in enumerate(row_labels)}
    col_index = {v: i for i, v in enumerate(col_labels)}

    values = np.full((len(row_labels), len(col_labels)), missing, dtype=float)
    seen: set[tuple[int, int]] = set()
    for e in estimates:
        if not _matches(e.unit, where):  # type: ignore[arg-type]
            continue
        r = row_index[_coordinate(e.unit, rows)]
        c = col_index[_coordinate(e.unit, columns)]
        if (r, c) in seen:
            raise AggregationError(
                f"several points share cell ({rows}={row_labels[r]}, {columns}={col_labels[c]}); "
                "fix the remaining dimensions with `where`"
            )
        seen.add((r, c))
        if e.defined:
            values[r, c] = e.statistic
    return PivotTable(rows, columns, row_labels, col_labels, values, missing)
