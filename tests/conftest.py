import multiprocessing as mp

import numpy as np
import pytest

from mcsweep import InventoryItem, ParameterGrid, SimulationConfig
from mcsweep.sims import StockoutSimulation
from mcsweep.simulation import TrialSimulation


class CountingSim(TrialSimulation):
    """Deterministic: every trial returns the iteration count."""
    def __init__(self):
        super().__init__("CountingSim")

    def single_trial(self, unit, rng, config):
        return float(config.iterations_per_unit)


class FlakyStockoutSim(StockoutSimulation):
    """Stockout sim whose trials raise for one item id."""
    def __init__(self, bad_id: str):
        super().__init__("FlakyStockout")
        self.bad_id = bad_id

    def single_trial(self, item, rng, config):
        if item.id == self.bad_id:
            raise RuntimeError(f"sensor offline for {item.id}")
        return super().single_trial(item, rng, config)


@pytest.fixture(scope="session", autouse=True)
def _set_spawn_start_method():
    try:
        mp.set_start_method("spawn")
    except RuntimeError:
        pass  # already set


@pytest.fixture
def sample_data():
    """Fixture providing sample data for testing"""
    rng = np.random.default_rng(42)
    return rng.normal(5.0, 2.0, 1000)


@pytest.fixture
def inventory():
    """The sample inventory from the stockout report."""
    return [
        InventoryItem("MED-101", 500, 12.5, 3.0),
        InventoryItem("MED-102", 100, 5.0, 1.5),
        InventoryItem("MED-103", 25, 2.0, 5.0),
        InventoryItem("MED-104", -5, 10.0, 1.0),
        InventoryItem("MED-105", 200, 6.0, 0.5),
    ]


@pytest.fixture
def risk_config():
    return SimulationConfig(iterations_per_unit=1000, trial_horizon=30, base_seed=42)


@pytest.fixture
def yield_grid():
    """11 x 11 pressure/temperature grid over [0, 10]."""
    return ParameterGrid.from_specs({"pressure": (0.0, 10.0, 1.0), "temperature": (0.0, 10.0, 1.0)})


@pytest.fixture
def counting_simulation():
    return CountingSim()


@pytest.fixture
def flaky_simulation():
    return FlakyStockoutSim("MED-103")
