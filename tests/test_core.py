import logging

import numpy as np
import pytest

from mcsweep import (
    CallbackObjective,
    ConfigurationError,
    DimensionRange,
    ExperimentConfig,
    GaussianYieldSurface,
    InventoryItem,
    ParameterPoint,
    SimulationConfig,
    StockoutSimulation,
    SweepRunner,
    run_experiment,
    run_grid_search,
    run_stockout_risk,
    run_units,
)
from mcsweep.core import create_backend, resolve_backend
from mcsweep.backends import ProcessBackend, SequentialBackend, ThreadBackend


class TestResolveBackend:
    """Test backend selection"""

    def test_explicit_names_pass_through(self):
        for name in ("sequential", "thread", "process"):
            assert resolve_backend(name, 100, 4) == name

    def test_auto_small_batches_run_sequentially(self):
        assert resolve_backend("auto", 1, 8) == "sequential"
        assert resolve_backend("auto", 100, 1) == "sequential"

    def test_auto_prefers_threads(self, monkeypatch):
        monkeypatch.setattr("mcsweep.core.is_windows_platform", lambda: False)
        assert resolve_backend("auto", 100, 4) == "thread"

    def test_auto_uses_processes_on_windows(self, monkeypatch):
        monkeypatch.setattr("mcsweep.core.is_windows_platform", lambda: True)
        assert resolve_backend("auto", 100, 4) == "process"

    def test_unknown(self):
        with pytest.raises(ConfigurationError):
            resolve_backend("gpu", 1, 1)

    def test_create_backend(self):
        assert isinstance(create_backend("sequential", 4), SequentialBackend)
        assert create_backend("thread", 3).n_workers == 3
        assert isinstance(create_backend("process", 2), ProcessBackend)
        with pytest.raises(ConfigurationError):
            create_backend("auto", 2)


class TestValidation:
    """Configuration problems surface before any trial runs"""

    def test_bad_parallelism(self, inventory, risk_config):
        with pytest.raises(ConfigurationError):
            run_stockout_risk(inventory, risk_config, degree_of_parallelism=0)

    def test_bad_config_type(self, inventory):
        with pytest.raises(ConfigurationError):
            run_stockout_risk(inventory, {"iterations_per_unit": 10})

    def test_duplicate_identities(self, risk_config):
        items = [InventoryItem("A", 1, 1, 1), InventoryItem("A", 2, 1, 1)]
        with pytest.raises(ConfigurationError, match="duplicate"):
            run_stockout_risk(items, risk_config)

    def test_value_equal_points_are_duplicates(self):
        """5, 5.0 and np.float64(5.0) name the same grid point"""
        for other in (5.0, np.float64(5.0)):
            points = [ParameterPoint(("x",), (5,)), ParameterPoint(("x",), (other,))]
            with pytest.raises(ConfigurationError, match="duplicate"):
                run_grid_search(points, GaussianYieldSurface(dimensions=("x", "x")), SimulationConfig(1))

    def test_invalid_latency_rejected(self, yield_grid):
        with pytest.raises(ConfigurationError, match="latency"):
            run_grid_search(yield_grid, GaussianYieldSurface(), SimulationConfig(1), latency=float("nan"))

    def test_wrong_unit_type(self, risk_config):
        with pytest.raises(ConfigurationError):
            run_stockout_risk([ParameterPoint(("x",), (1.0,))], risk_config)

    def test_bad_confidence(self):
        with pytest.raises(ConfigurationError):
            SweepRunner(confidence=1.5)

    def test_nothing_runs_on_error(self, risk_config):
        calls = []

        class Recording(StockoutSimulation):
            def single_trial(self, item, rng, config):
                calls.append(item.id)
                return False

        items = [InventoryItem("A", 1, 1, 1), InventoryItem("A", 1, 1, 1)]
        with pytest.raises(ConfigurationError):
            run_units(Recording(), items, risk_config, backend="sequential")
        assert calls == []


class TestStockoutRisk:
    """Risk-horizon runs end to end"""

    def test_scenario_low_risk_item_is_reproducible(self):
        """MED-101 with 500 units and mean demand 12.5 over 30 days rarely stocks out"""
        item = InventoryItem("MED-101", 500, 12.5, 3.0)
        cfg = SimulationConfig(iterations_per_unit=1000, trial_horizon=30, base_seed=42)
        first = run_stockout_risk([item], cfg)
        second = run_stockout_risk([item], cfg)
        p = first.results[0].probability
        assert p == second.results[0].probability
        assert 0.0 <= p < 0.05

    def test_one_estimate_per_item(self, inventory, risk_config):
        report = run_stockout_risk(inventory, risk_config, backend="thread", degree_of_parallelism=3)
        assert sorted(e.identity for e in report.results) == sorted(i.id for i in inventory)
        assert report.failed == []
        probs = [e.probability for e in report.results]
        assert probs == sorted(probs, reverse=True)
        assert all(0.0 <= p <= 1.0 for p in probs)

    def test_expected_ranking(self, inventory, risk_config):
        report = run_stockout_risk(inventory, risk_config)
        p = report.probabilities()
        assert p["MED-104"] == 1.0
        assert p["MED-101"] < 0.05
        assert p["MED-105"] == 0.0
        # MED-102 and MED-104 both stock out for sure; ties go by id
        assert [e.identity for e in report.results[:2]] == ["MED-102", "MED-104"]

    @pytest.mark.parametrize("backend, dop", [("thread", 1), ("thread", 2), ("thread", 8), ("process", 2)])
    def test_independent_of_backend_and_parallelism(self, inventory, risk_config, backend, dop):
        ref = run_stockout_risk(inventory, risk_config, backend="sequential")
        other = run_stockout_risk(inventory, risk_config, backend=backend, degree_of_parallelism=dop)
        assert other.probabilities() == ref.probabilities()

    def test_independent_of_batch_composition(self, inventory, risk_config):
        """An item's estimate does not depend on which other items run with it"""
        mid = InventoryItem("MID-1", 60, 2.0, 1.0)
        alone = run_stockout_risk([mid], risk_config).probabilities()
        together = run_stockout_risk(inventory + [mid], risk_config).probabilities()
        assert alone["MID-1"] == together["MID-1"]
        assert 0.0 < alone["MID-1"] < 1.0

    def test_base_seed_matters(self, risk_config):
        item = [InventoryItem("MID-1", 60, 2.0, 1.0)]
        a = run_stockout_risk(item, risk_config).results[0].probability
        b = run_stockout_risk(item, risk_config.with_overrides(base_seed=7)).results[0].probability
        assert a != b

    @pytest.mark.parametrize("backend", ["sequential", "thread"])
    def test_failing_item_is_isolated(self, inventory, risk_config, flaky_simulation, backend, caplog):
        """One item's trials raise; every other item matches a clean run"""
        clean = run_stockout_risk(inventory, risk_config, backend="sequential").probabilities()
        with caplog.at_level(logging.WARNING, logger="mcsweep"):
            report = run_stockout_risk(
                inventory, risk_config, backend=backend, degree_of_parallelism=4, simulation=flaky_simulation
            )
        assert [f.identity for f in report.failed] == ["MED-103"]
        assert report.failed[0].error.error_type == "RuntimeError"
        assert "MED-103" not in report.probabilities()
        for item_id, p in report.probabilities().items():
            assert p == clean[item_id]
        assert report.metadata["n_failed"] == 1
        assert any("MED-103" in r.getMessage() for r in caplog.records)

    def test_empty_input(self, risk_config):
        report = run_stockout_risk([], risk_config)
        assert report.results == []
        assert report.failed == []

    def test_metadata(self, inventory, risk_config):
        report = run_stockout_risk(inventory, risk_config, backend="thread", degree_of_parallelism=2)
        md = report.metadata
        assert md["simulation_name"] == "Stockout Risk"
        assert md["base_seed"] == 42
        assert md["iterations_per_unit"] == 1000
        assert md["trial_horizon"] == 30
        assert md["backend"] == "thread"
        assert md["n_workers"] == 2
        assert md["execution_time"] >= 0.0
        assert "Next 30 Days" in report.to_string()

    def test_progress_callback(self, inventory, risk_config):
        calls = []
        run_stockout_risk(inventory, risk_config, backend="sequential", progress_callback=lambda c, t: calls.append(c))
        assert calls[-1] == len(inventory)


class TestGridSearch:
    """Objective-evaluation runs end to end"""

    def test_scenario_yield_peak_found(self, yield_grid):
        """121 points; best lands on the peak at (5, 5)"""
        report = run_grid_search(
            yield_grid,
            GaussianYieldSurface(),
            SimulationConfig(iterations_per_unit=1, base_seed=42),
            latency=0.005,
            backend="thread",
            degree_of_parallelism=16,
        )
        assert len(report) == 121
        best = report.best()
        assert abs(best.unit["pressure"] - 5.0) <= 1.0
        assert abs(best.unit["temperature"] - 5.0) <= 1.0
        assert best.mean == pytest.approx(100.0, abs=1.0)

    def test_noisy_replicates_deterministic(self, yield_grid):
        cfg = SimulationConfig(iterations_per_unit=5, base_seed=3)
        surface = GaussianYieldSurface(noise=2.0)
        a = run_grid_search(yield_grid, surface, cfg, backend="sequential")
        b = run_grid_search(yield_grid, surface, cfg, backend="process", degree_of_parallelism=2)
        assert [e.mean for e in a.results] == [e.mean for e in b.results]
        assert all(not np.isnan(e.ci_low) for e in a.results)

    def test_pivot_for_heatmap(self, yield_grid):
        report = run_grid_search(yield_grid, GaussianYieldSurface(), SimulationConfig(1))
        table = report.pivot(rows="temperature", columns="pressure")
        assert table.shape == (11, 11)
        assert table.cell(5.0, 5.0) == pytest.approx(100.0)

    def test_failing_points_isolated(self, yield_grid):
        def scorer(coords):
            if coords["pressure"] == 0.0:
                raise ConnectionError("bridge down")
            return coords["pressure"]

        report = run_grid_search(yield_grid, CallbackObjective(scorer), SimulationConfig(1), backend="thread")
        assert len(report.failed) == 11
        assert len(report) == 110
        table = report.pivot(rows="temperature", columns="pressure")
        assert table.shape == (11, 11)
        assert np.isnan(table.cell(3.0, 0.0))
        assert table.cell(3.0, 4.0) == 4.0

    def test_explicit_points(self):
        points = [ParameterPoint(("x",), (v,)) for v in (3.0, 1.0, 2.0)]
        report = run_grid_search(points, lambda p, rng: p["x"] ** 2, SimulationConfig(1), backend="sequential")
        assert [e.mean for e in report.results] == [9.0, 1.0, 4.0]
        assert report.best(maximize=False).unit == points[1]

    def test_empty_points(self):
        report = run_grid_search([], GaussianYieldSurface(), SimulationConfig(1))
        assert len(report) == 0
        assert report.best() is None

    def test_run_experiment(self):
        exp = ExperimentConfig(
            simulation=SimulationConfig(1, 0, 42),
            dimensions=(DimensionRange("pressure", 4.0, 6.0, 1.0), DimensionRange("temperature", 4.0, 6.0, 1.0)),
            degree_of_parallelism=2,
            backend="thread",
        )
        report = run_experiment(exp, GaussianYieldSurface())
        assert len(report) == 9
        assert report.best().unit.as_dict() == {"pressure": 5.0, "temperature": 5.0}
        assert report.metadata["backend"] == "thread"


class TestRunUnits:
    """Raw outcomes"""

    def test_outcomes_aligned_with_input(self, inventory, risk_config):
        outs = run_units(StockoutSimulation(), inventory, risk_config, backend="thread", degree_of_parallelism=2)
        assert [o.identity for o in outs] == [i.id for i in inventory]
        assert all(o.values.size == 1000 for o in outs)

    def test_runner_reuse(self, inventory, risk_config):
        runner = SweepRunner(backend="sequential")
        a = runner.run_stockout_risk(inventory, risk_config)
        b = runner.run_stockout_risk(inventory, risk_config)
        assert a.probabilities() == b.probabilities()
        assert runner.last_metadata["n_units"] == len(inventory)

    def test_not_a_simulation(self, inventory, risk_config):
        with pytest.raises(ConfigurationError):
            run_units(object(), inventory, risk_config)

    def test_thread_backend_instance(self):
        assert ThreadBackend(n_workers=2).n_workers == 2
