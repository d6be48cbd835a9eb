import math
import pickle

import numpy as np
import pytest

from mcsweep import ConfigurationError, ParameterPoint, SimulationConfig
from mcsweep.seeding import make_stream
from mcsweep.sims import CallbackObjective, GaussianYieldSurface, ObjectiveSimulation
from mcsweep.units import WorkItem


def _point(p, t):
    return ParameterPoint(("pressure", "temperature"), (float(p), float(t)))


class TestGaussianYieldSurface:
    """Test the yield landscape"""

    def test_peak(self):
        """Pre-flight sanity: the peak is 100 at (5, 5)"""
        y = GaussianYieldSurface()(_point(5, 5))
        assert 99.0 < y <= 100.0

    def test_falls_off(self):
        surface = GaussianYieldSurface()
        assert surface(_point(4, 5)) == pytest.approx(100.0 * math.exp(-0.1))
        assert surface(_point(0, 0)) < surface(_point(4, 4)) < surface(_point(5, 5))

    def test_noise_uses_stream(self):
        surface = GaussianYieldSurface(noise=1.0)
        a = surface(_point(5, 5), make_stream(3))
        b = surface(_point(5, 5), make_stream(3))
        assert a == b
        assert a != 100.0

    def test_noise_needs_rng(self):
        with pytest.raises(ValueError):
            GaussianYieldSurface(noise=1.0)(_point(5, 5))

    def test_picklable(self):
        surface = GaussianYieldSurface(center=(2.0, 3.0))
        assert pickle.loads(pickle.dumps(surface)) == surface


class TestCallbackObjective:
    """Test the scoring-callback adapter"""

    def test_receives_coordinates(self):
        seen = []

        def scorer(coords):
            seen.append(coords)
            return coords["pressure"] + coords["temperature"]

        assert CallbackObjective(scorer)(_point(1, 2), None) == 3.0
        assert seen == [{"pressure": 1.0, "temperature": 2.0}]

    def test_result_converted_to_float(self):
        value = CallbackObjective(lambda c: np.float32(0.5))(_point(0, 0), None)
        assert type(value) is float

    def test_non_numeric_result(self):
        with pytest.raises(TypeError, match="expected a number"):
            CallbackObjective(lambda c: object())(_point(0, 0), None)


class TestObjectiveSimulation:
    """Test objective trials"""

    def test_replicates(self):
        sim = ObjectiveSimulation(GaussianYieldSurface(noise=0.5))
        out = sim.run_unit(WorkItem(_point(5, 5), 7), SimulationConfig(20))
        assert out.ok
        assert out.values.shape == (20,)
        assert abs(out.values.mean() - 100.0) < 1.0

    def test_non_finite_is_failure(self):
        sim = ObjectiveSimulation(lambda p, rng: float("nan"))
        out = sim.run_unit(WorkItem(_point(0, 0), 1), SimulationConfig(3))
        assert not out.ok
        assert out.error.error_type == "ValueError"

    def test_scorer_exception_is_failure(self):
        def scorer(coords):
            raise ConnectionError("bridge down")

        sim = ObjectiveSimulation(CallbackObjective(scorer))
        out = sim.run_unit(WorkItem(_point(0, 0), 1), SimulationConfig(1))
        assert out.error.error_type == "ConnectionError"
        assert out.error.message == "bridge down"

    @pytest.mark.parametrize("latency", [-1, -0.5, float("nan"), float("inf")])
    def test_invalid_latency(self, latency):
        with pytest.raises(ConfigurationError, match="latency"):
            ObjectiveSimulation(GaussianYieldSurface(), latency=latency)
