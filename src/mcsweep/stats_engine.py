r"""
mcsweep.stats_engine
====================
Statistical metrics and the engine used to summarise a unit's trials.

This module defines:

- :class:`StatsContext`: a typed, explicit configuration object shared by all metrics.
- :class:`FnMetric`: a frozen adapter that names a metric function.
- :class:`StatsEngine`: an orchestrator that evaluates one or more metrics.

Metrics are :func:`mean`, :func:`std`, :func:`percentiles`, :func:`ci_mean`
for scalar outcomes and :func:`proportion`, :func:`ci_proportion` for boolean
outcomes.

See Also
--------
mcsweep.utils.autocrit
    Selects a z/t critical value for a target confidence level and effective sample size.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Generic, Iterable, Optional, Protocol, Sequence, TypeVar

import numpy as np

from .utils import autocrit, z_crit

logger = logging.getLogger(__name__)


class CIMethod(str, Enum):
    r"""
    Parametric strategies for selecting confidence-interval critical values.

    Attributes
    ----------
    auto : str
        Choose Student-t when :math:`n_\text{eff} < 30`, otherwise z.
    z : str
        Always use the normal :math:`z` critical value.
    t : str
        Always use the Student-:math:`t` critical value.
    """

    auto = "auto"
    z = "z"
    t = "t"


@dataclass(slots=True)
class StatsContext:
    r"""
    Shared, explicit configuration for statistic and CI computations.

    Attributes
    ----------
    n : int
        Declared sample size; 0 falls back to the observed length.
    confidence : float, default 0.95
        Confidence level in :math:`(0, 1)`.
    ci_method : {"auto", "z", "t"}, default "auto"
        Strategy for :func:`ci_mean`.
    percentiles : tuple of int, default ``(5, 25, 50, 75, 95)``
        Percentiles to compute in :func:`percentiles`.
    ddof : int, default 1
        Degrees of freedom for :func:`std` (1 => Bessel correction).

    Examples
    --------
    >>> ctx = StatsContext(n=5000, confidence=0.95)
    >>> round(ctx.alpha, 2)
    0.05
    """

    n: int
    confidence: float = 0.95
    ci_method: CIMethod = CIMethod.auto
    percentiles: tuple[int, ...] = (5, 25, 50, 75, 95)
    ddof: int = 1

    def with_overrides(self, **changes) -> "StatsContext":
        """Return a shallow copy with selected fields replaced."""
        return replace(self, **changes)

    @property
    def alpha(self) -> float:
        r"""Tail probability :math:`\alpha = 1 - \text{confidence}`."""
        return 1.0 - self.confidence

    def eff_n(self, observed_len: int) -> int:
        r"""Effective sample size :math:`n_\text{eff}`: the declared :attr:`n`, else ``observed_len``."""
        return int(self.n or observed_len)

    def __post_init__(self) -> None:
        r"""
        Validate field ranges.

        Raises
        ------
        ValueError
            If any field is outside its allowed range.
        """
        if not (0.0 < self.confidence < 1.0):
            raise ValueError("confidence must be in (0,1)")
        if any(p < 0 or p > 100 for p in self.percentiles):
            raise ValueError("percentiles must be in [0,100]")
        if self.ddof < 0:
            raise ValueError("ddof must be >= 0")
        if self.n < 0:
            raise ValueError("n must be >= 0")


class Metric(Protocol):
    r"""
    Protocol for metric callables used by :class:`StatsEngine`.

    A metric exposes a ``name`` attribute and is callable as
    ``metric(x: numpy.ndarray, ctx: StatsContext) -> Any``.
    """

    name: str

    def __call__(self, x: np.ndarray, ctx: StatsContext, /) -> Any: ...


T = TypeVar("T")


@dataclass(frozen=True)
class FnMetric(Generic[T]):
    r"""
    Lightweight adapter that binds a human-readable ``name`` to a metric function.

    Examples
    --------
    >>> m = FnMetric("mean", lambda a, ctx: float(np.mean(a)))
    >>> m(np.array([1, 2, 3]), StatsContext(n=3))
    2.0
    """

    name: str
    fn: Callable[[np.ndarray, StatsContext], T]
    doc: str = ""

    def __call__(self, x: np.ndarray, ctx: StatsContext) -> T:
        return self.fn(x, ctx)


class StatsEngine:
    r"""
    Orchestrator that evaluates a set of metrics over an input array.

    Parameters
    ----------
    metrics : iterable of Metric
        Callables with a ``name`` and signature ``metric(x, ctx)``.

    Notes
    -----
    A metric that raises is logged and left out of the result; the other
    metrics are still returned.

    Examples
    --------
    >>> eng = StatsEngine([FnMetric("mean", mean), FnMetric("std", std)])
    >>> x = np.array([1., 2., 3.])
    >>> eng.compute(x, StatsContext(n=len(x)))
    {'mean': 2.0, 'std': 1.0}
    """

    def __init__(self, metrics: Iterable[Metric]):
        self._metrics = list(metrics)

    def available(self) -> tuple[str, ...]:
        return tuple(m.name for m in self._metrics)

    def compute(
        self,
        x: np.ndarray,
        ctx: Optional[StatsContext] = None,
        select: Sequence[str] | None = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        r"""
        Evaluate all registered metrics on ``x``.

        Parameters
        ----------
        x : ndarray
            Sample values.
        ctx : StatsContext, optional
            Context parameters. If None, one is built from ``**kwargs``.
        select : sequence of str, optional
            If given, compute only the metrics with these names.
        **kwargs :
            Used to build a :class:`StatsContext` if ``ctx`` is None;
            ``n`` defaults to ``x.size``.

        Returns
        -------
        dict
            Mapping from metric name to computed value.
        """
        if ctx is not None:
            ctx = _ensure_ctx(ctx, x)
        else:
            base = dict(kwargs)
            base.setdefault("n", int(np.asarray(x).size))
            ctx = StatsContext(**base)

        wanted = None if select is None else set(select)
        out: dict[str, Any] = {}
        for m in self._metrics:
            if wanted is not None and m.name not in wanted:
                continue
            try:
                out[m.name] = m(x, ctx)
            except Exception:  # pylint: disable=broad-exception-caught
                logger.exception("Error computing metric %s", m.name)
        return out


def _ensure_ctx(ctx: Any, x: np.ndarray) -> StatsContext:
    r"""
    Normalize a :class:`StatsContext`, mapping, or ``None`` into a context.

    Raises
    ------
    TypeError
        If ``ctx`` cannot be interpreted as configuration data.
    """
    if isinstance(ctx, StatsContext):
        return ctx
    arr_len = int(np.asarray(x).size)
    if ctx is None:
        return StatsContext(n=arr_len)
    if isinstance(ctx, dict):
        data = dict(ctx)
        data.setdefault("n", arr_len)
        return StatsContext(**data)
    raise TypeError("ctx must be a StatsContext, dict, or None")


def _clean(x: np.ndarray, ctx: StatsContext) -> np.ndarray:
    """Return the sample as a flat float array."""
    return np.asarray(x, dtype=float).ravel()


def mean(x: np.ndarray, ctx: StatsContext) -> float:
    r"""
    Sample mean :math:`\bar X`; ``nan`` for an empty sample.

    Examples
    --------
    >>> mean(np.array([1, 2, 3]), None)
    2.0
    """
    ctx = _ensure_ctx(ctx, x)
    arr = _clean(x, ctx)
    return float(np.mean(arr)) if arr.size else float("nan")


def std(x: np.ndarray, ctx: StatsContext) -> float:
    r"""
    Sample standard deviation with :attr:`StatsContext.ddof`.

    Returns ``0.0`` when :math:`n_\text{eff} \le 1`.
    """
    ctx = _ensure_ctx(ctx, x)
    arr = _clean(x, ctx)
    n_eff = ctx.eff_n(observed_len=arr.size)
    if n_eff <= 1 or arr.size <= ctx.ddof:
        return 0.0
    return float(np.std(arr, ddof=ctx.ddof))


def percentiles(x: np.ndarray, ctx: StatsContext) -> dict[int, float]:
    r"""
    Empirical percentiles of the sample.

    Examples
    --------
    >>> percentiles(np.array([0., 1., 2., 3.]), {"percentiles": (50, 75)})
    {50: 1.5, 75: 2.25}
    """
    ctx = _ensure_ctx(ctx, x)
    arr = _clean(x, ctx)
    if arr.size == 0:
        return {p: float("nan") for p in ctx.percentiles}
    pct_values = np.percentile(arr, ctx.percentiles)
    return dict(zip(ctx.percentiles, map(float, pct_values)))


def ci_mean(x: np.ndarray, ctx: StatsContext) -> dict[str, float | str]:
    r"""
    Parametric CI for :math:`\mathbb{E}[X]` using z/t critical values.

    .. math::
       \bar X \pm c \cdot \frac{s}{\sqrt{n_\text{eff}}}

    where :math:`c` comes from :func:`mcsweep.utils.autocrit`.

    Returns
    -------
    dict
        ``confidence``, ``method``, ``low``, ``high``, ``se``, ``crit``;
        endpoints are ``nan`` when :math:`n_\text{eff} < 2`.
    """
    ctx = _ensure_ctx(ctx, x)
    arr = _clean(x, ctx)
    n_eff = ctx.eff_n(observed_len=arr.size)
    if arr.size == 0 or n_eff < 2:
        return {
            "confidence": ctx.confidence,
            "method": str(getattr(ctx.ci_method, "value", ctx.ci_method)),
            "low": float("nan"),
            "high": float("nan"),
            "se": float("nan"),
            "crit": float("nan"),
        }

    mu = float(np.mean(arr))
    s = float(np.std(arr, ddof=ctx.ddof))
    se = 0.0 if s == 0.0 else s / math.sqrt(n_eff)
    crit, method = autocrit(ctx.confidence, n_eff, ctx.ci_method)
    return {
        "confidence": ctx.confidence,
        "method": method,
        "se": float(se),
        "crit": float(crit),
        "low": float(mu - crit * se),
        "high": float(mu + crit * se),
    }


def proportion(x: np.ndarray, ctx: StatsContext) -> float:
    r"""
    Fraction of true outcomes :math:`\hat p = k / n`; ``nan`` for an empty sample.

    Examples
    --------
    >>> proportion(np.array([True, False, False, True]), None)
    0.5
    """
    arr = np.asarray(x, dtype=bool).ravel()
    return float(arr.mean()) if arr.size else float("nan")


def ci_proportion(x: np.ndarray, ctx: StatsContext) -> dict[str, float | str]:
    r"""
    Wilson score interval for a binomial proportion.

    .. math::
       \frac{\hat p + \frac{z^2}{2n}}{1 + \frac{z^2}{n}}
       \pm \frac{z}{1 + \frac{z^2}{n}} \sqrt{\frac{\hat p (1 - \hat p)}{n} + \frac{z^2}{4n^2}}

    Unlike the normal approximation it stays inside :math:`[0, 1]` and does not
    collapse to a point when :math:`\hat p \in \{0, 1\}`.

    Returns
    -------
    dict
        ``confidence``, ``method`` (``"wilson"``), ``low``, ``high``.
    """
    ctx = _ensure_ctx(ctx, x)
    arr = np.asarray(x, dtype=bool).ravel()
    n = arr.size
    if n == 0:
        return {"confidence": ctx.confidence, "method": "wilson", "low": float("nan"), "high": float("nan")}
    p = float(arr.mean())
    z = z_crit(ctx.confidence)
    z2 = z * z
    denom = 1.0 + z2 / n
    center = (p + z2 / (2 * n)) / denom
    half = z * math.sqrt(p * (1 - p) / n + z2 / (4 * n * n)) / denom
    # exact at the boundaries; the closed form can round to either side of 0 or 1
    low = 0.0 if p == 0.0 else max(0.0, center - half)
    high = 1.0 if p == 1.0 else min(1.0, center + half)
    return {
        "confidence": ctx.confidence,
        "method": "wilson",
        "low": low,
        "high": high,
    }


def build_default_engine(include_percentiles: bool = True) -> StatsEngine:
    r"""
    Engine for scalar outcomes: mean, std, z/t CI and optionally percentiles.
    """
    metrics: list[Metric] = [
        FnMetric[float]("mean", mean, "Sample mean"),
        FnMetric[float]("std", std, "Sample standard deviation"),
        FnMetric[dict[str, float | str]]("ci_mean", ci_mean, "z/t CI for the mean"),
    ]
    if include_percentiles:
        metrics.append(FnMetric[dict[int, float]]("percentiles", percentiles, "Percentiles over the sample"))
    return StatsEngine(metrics)


def build_proportion_engine() -> StatsEngine:
    """Engine for boolean outcomes: proportion and Wilson CI."""
    return StatsEngine(
        [
            FnMetric[float]("proportion", proportion, "Fraction of true outcomes"),
            FnMetric[dict[str, float | str]]("ci_proportion", ci_proportion, "Wilson CI for the proportion"),
        ]
    )


DEFAULT_ENGINE = build_default_engine()
PROPORTION_ENGINE = build_proportion_engine()

__all__ = [
    "CIMethod",
    "StatsContext",
    "Metric",
    "FnMetric",
    "StatsEngine",
    "mean",
    "std",
    "percentiles",
    "ci_mean",
    "proportion",
    "ci_proportion",
    "build_default_engine",
    "build_proportion_engine",
    "DEFAULT_ENGINE",
    "PROPORTION_ENGINE",
]
