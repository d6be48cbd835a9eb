r"""
Objective evaluation over parameter points.

Classes
    :class:`ObjectiveSimulation` — evaluate ``objective(point, rng)`` per trial
    :class:`GaussianYieldSurface` — bell-shaped yield landscape with optional noise
    :class:`CallbackObjective` — adapter for externally hosted scoring callbacks
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from numpy.random import Generator

from ..config import SimulationConfig
from ..exceptions import ConfigurationError
from ..simulation import TrialSimulation
from ..units import ParameterPoint

__all__ = ["Objective", "ObjectiveSimulation", "GaussianYieldSurface", "CallbackObjective"]

Objective = Callable[[ParameterPoint, Generator], float]


class ObjectiveSimulation(TrialSimulation):
    r"""
    Evaluate a black-box objective at each grid point.

    Parameters
    ----------
    objective : callable
        ``objective(point, rng) -> float``. Deterministic objectives may ignore
        ``rng``. Must be pickleable (a module-level function or a dataclass
        instance) for the process backend.
    latency : float, default 0.0
        Simulated external-call cost in seconds, slept before every evaluation.
        The sleep releases the GIL and holds no lock, so other workers keep running.
    name : str, optional
        Label for logs and reports.

    Notes
    -----
    A non-finite objective value is treated as a trial failure rather than
    being averaged into the point's statistic.
    """

    outcome_dtype = float

    def __init__(self, objective: Objective, latency: float = 0.0, name: str = "Objective"):
        if not math.isfinite(latency) or latency < 0:
            raise ConfigurationError(f"latency must be a finite number >= 0, got {latency!r}")
        super().__init__(name)
        self.objective = objective
        self.latency = float(latency)

    def single_trial(  # pylint: disable=arguments-renamed
        self,
        point: ParameterPoint,
        rng: Generator,
        config: SimulationConfig,
    ) -> float:
        if self.latency > 0:
            time.sleep(self.latency)
        value = float(self.objective(point, rng))
        if not math.isfinite(value):
            raise ValueError(f"objective returned non-finite value {value!r}")
        return value


@dataclass(frozen=True)
class GaussianYieldSurface:
    r"""
    Yield landscape peaking at :attr:`center`.

    .. math::
       Y(p, t) = A \exp\!\left(-\frac{(p - c_p)^2 + (t - c_t)^2}{w}\right) + \varepsilon,
       \qquad \varepsilon \sim \mathcal{N}(0, \sigma^2)

    Attributes
    ----------
    peak : float, default 100.0
        Height :math:`A` at the center.
    center : tuple of float, default ``(5.0, 5.0)``
        Location of the maximum.
    width : float, default 10.0
        Spread :math:`w`.
    noise : float, default 0.0
        Standard deviation :math:`\sigma` of additive noise; 0 makes the surface
        deterministic and leaves ``rng`` untouched.
    dimensions : tuple of str
        Names of the two coordinates read from the point.

    Examples
    --------
    >>> surface = GaussianYieldSurface()
    >>> surface(ParameterPoint(("pressure", "temperature"), (5.0, 5.0)))
    100.0
    """

    peak: float = 100.0
    center: tuple[float, float] = (5.0, 5.0)
    width: float = 10.0
    noise: float = 0.0
    dimensions: tuple[str, str] = ("pressure", "temperature")

    def __call__(self, point: ParameterPoint, rng: Generator | None = None) -> float:
        x = point[self.dimensions[0]] - self.center[0]
        y = point[self.dimensions[1]] - self.center[1]
        value = self.peak * math.exp(-(x * x + y * y) / self.width)
        if self.noise > 0:
            if rng is None:
                raise ValueError("a noisy surface needs an rng")
            value += float(rng.normal(0.0, self.noise))
        return value


@dataclass(frozen=True)
class CallbackObjective:
    r"""
    Wrap a scoring callback that knows nothing about points or streams.

    The callback receives the point's coordinates as a plain ``dict`` and its
    return value is converted to ``float`` immediately, so foreign result types
    never leak into aggregation.

    Parameters
    ----------
    scorer : callable
        ``scorer(coords: dict[str, float]) -> float``-like.

    Examples
    --------
    >>> obj = CallbackObjective(lambda c: c["x"] * 2)
    >>> obj(ParameterPoint(("x",), (1.5,)), None)
    3.0
    """

    scorer: Callable[[Mapping[str, float]], Any]

    def __call__(self, point: ParameterPoint, rng: Generator | None = None) -> float:
        result = self.scorer(point.as_dict())
        try:
            return float(result)
        except (TypeError, ValueError) as e:
            raise TypeError(f"scorer returned {type(result).__name__}, expected a number") from e
