import numpy as np
import pytest

from mcsweep import ConfigurationError, InventoryItem, SimulationConfig
from mcsweep.seeding import make_stream
from mcsweep.sims import InventoryState, StockoutSimulation, simulate_stockout
from mcsweep.units import WorkItem


class TestInventoryItem:
    """Test item validation"""

    def test_identity_is_id(self):
        assert InventoryItem("MED-101", 500, 12.5, 3.0).identity == "MED-101"

    def test_empty_id(self):
        with pytest.raises(ConfigurationError):
            InventoryItem("", 1, 1, 1)

    def test_negative_std(self):
        with pytest.raises(ConfigurationError):
            InventoryItem("A", 1, 1, -0.1)

    def test_non_finite_level(self):
        with pytest.raises(ConfigurationError):
            InventoryItem("ERR-999", float("nan"), 10.0, 2.0)

    def test_negative_level_allowed(self):
        assert InventoryItem("MED-104", -5, 10.0, 1.0).current_level == -5


class TestSimulateStockout:
    """Test the depletion state machine"""

    def test_states(self):
        assert InventoryState.alive.value == "alive"
        assert InventoryState.stockout.value == "stockout"

    def test_non_positive_start_is_stockout(self):
        rng = make_stream(1)
        assert simulate_stockout(InventoryItem("A", 0, 1.0, 0.0), 30, rng)
        assert simulate_stockout(InventoryItem("B", -5, 10.0, 1.0), 30, rng)

    def test_zero_horizon(self):
        """No days simulated: only the starting level decides"""
        rng = make_stream(1)
        assert not simulate_stockout(InventoryItem("A", 1, 100.0, 0.0), 0, rng)

    def test_deterministic_demand(self):
        """With zero variance, stockout happens iff horizon * mean >= level"""
        rng = make_stream(1)
        item = InventoryItem("A", 100, 10.0, 0.0)
        assert not simulate_stockout(item, 9, rng)
        assert simulate_stockout(item, 10, rng)

    def test_negative_demand_clipped(self):
        """Demand drawn below zero never restocks"""
        rng = make_stream(1)
        item = InventoryItem("A", 1, -1000.0, 0.0)
        assert not simulate_stockout(item, 365, rng)

    def test_consumes_fixed_draws(self):
        """Exactly `horizon` normals are drawn even after an early stockout"""
        rng = make_stream(5)
        simulate_stockout(InventoryItem("A", 1, 50.0, 1.0), 30, rng)
        ref = make_stream(5)
        ref.normal(size=30)
        assert rng.random() == ref.random()


class TestStockoutSimulation:
    """Test per-unit trial runs"""

    def test_run_unit_bool_outcomes(self):
        sim = StockoutSimulation()
        cfg = SimulationConfig(200, 30, 42)
        out = sim.run_unit(WorkItem(InventoryItem("MED-102", 100, 5.0, 1.5), 7), cfg)
        assert out.ok
        assert out.values.dtype == bool
        assert out.values.size == 200

    def test_certain_stockout(self):
        sim = StockoutSimulation()
        cfg = SimulationConfig(50, 30, 42)
        out = sim.run_unit(WorkItem(InventoryItem("MED-104", -5, 10.0, 1.0), 1), cfg)
        assert out.values.all()

    def test_same_seed_same_outcomes(self):
        sim = StockoutSimulation()
        cfg = SimulationConfig(300, 30, 0)
        item = InventoryItem("MED-103", 25, 2.0, 5.0)
        a = sim.run_unit(WorkItem(item, 11), cfg).values
        b = sim.run_unit(WorkItem(item, 11), cfg).values
        np.testing.assert_array_equal(a, b)

    def test_trial_error_recorded(self, flaky_simulation):
        cfg = SimulationConfig(10, 30, 0)
        out = flaky_simulation.run_unit(WorkItem(InventoryItem("MED-103", 25, 2.0, 5.0), 1), cfg)
        assert not out.ok
        assert out.values.size == 0
        assert out.error.identity == "MED-103"
        assert out.error.trial_index == 0
        assert out.error.error_type == "RuntimeError"
        assert "sensor offline" in str(out.error)
