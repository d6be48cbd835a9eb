r"""
Critical-value helpers for confidence intervals.

Functions
    :func:`z_crit` — two-sided normal critical value
    :func:`t_crit` — two-sided Student-t critical value
    :func:`autocrit` — pick z or t for a confidence level and sample size
"""

from __future__ import annotations

from scipy.stats import norm
from scipy.stats import t as student_t

__all__ = ["z_crit", "t_crit", "autocrit"]

# Below this effective sample size "auto" switches to Student-t
_T_THRESHOLD = 30


def z_crit(confidence: float) -> float:
    r"""
    Two-sided normal critical value :math:`z_{1-\alpha/2}`.

    Examples
    --------
    >>> round(z_crit(0.95), 3)
    1.96
    """
    if not 0.0 < confidence < 1.0:
        raise ValueError("confidence must be in (0,1)")
    return float(norm.ppf(0.5 + confidence / 2.0))


def t_crit(confidence: float, df: int) -> float:
    r"""Two-sided Student-t critical value :math:`t_{1-\alpha/2,\,df}`."""
    if not 0.0 < confidence < 1.0:
        raise ValueError("confidence must be in (0,1)")
    if df < 1:
        raise ValueError("df must be >= 1")
    return float(student_t.ppf(0.5 + confidence / 2.0, df))


def autocrit(confidence: float, n: int, method: str = "auto") -> tuple[float, str]:
    r"""
    Select a critical value for a CI on the mean.

    Parameters
    ----------
    confidence : float
        Confidence level in :math:`(0, 1)`.
    n : int
        Effective sample size.
    method : {"auto", "z", "t"}
        ``"auto"`` uses Student-t when :math:`n < 30`, else z.

    Returns
    -------
    tuple[float, str]
        ``(crit, method_used)`` where ``method_used`` is ``"z"`` or ``"t"``.
    """
    method = getattr(method, "value", method)
    if method not in ("auto", "z", "t"):
        raise ValueError(f"method must be one of 'auto', 'z', 't', got '{method}'")
    use_t = method == "t" or (method == "auto" and n < _T_THRESHOLD)
    if use_t and n >= 2:
        return t_crit(confidence, n - 1), "t"
    return z_crit(confidence), "z"
