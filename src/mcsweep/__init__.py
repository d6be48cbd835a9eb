"""mcsweep package public API."""

from .aggregation import (
    HIGH_RISK_THRESHOLD,
    FailedUnit,
    GridReport,
    ObjectiveEstimate,
    PivotTable,
    RiskEstimate,
    RiskReport,
    aggregate_objective,
    aggregate_risk,
    pivot,
)
from .config import ExperimentConfig, SimulationConfig
from .core import (
    SweepRunner,
    run_experiment,
    run_grid_search,
    run_stockout_risk,
    run_units,
)
from .exceptions import (
    AggregationError,
    ConfigurationError,
    McSweepError,
    TrialError,
    Validated,
)
from .grid import DimensionRange, ParameterGrid
from .seeding import derive_seed, make_stream
from .simulation import TrialSimulation, UnitOutcome
from .sims import (
    CallbackObjective,
    GaussianYieldSurface,
    ObjectiveSimulation,
    StockoutSimulation,
)
from .stats_engine import (
    DEFAULT_ENGINE,
    FnMetric,
    StatsContext,
    StatsEngine,
)
from .units import InventoryItem, ParameterPoint, SimulationUnit
from .utils import autocrit, t_crit, z_crit

__all__ = [
    # Units and configuration
    "SimulationUnit",
    "ParameterPoint",
    "InventoryItem",
    "DimensionRange",
    "ParameterGrid",
    "SimulationConfig",
    "ExperimentConfig",
    # Execution
    "TrialSimulation",
    "UnitOutcome",
    "StockoutSimulation",
    "ObjectiveSimulation",
    "GaussianYieldSurface",
    "CallbackObjective",
    "SweepRunner",
    "run_units",
    "run_stockout_risk",
    "run_grid_search",
    "run_experiment",
    "derive_seed",
    "make_stream",
    # Aggregation
    "RiskEstimate",
    "ObjectiveEstimate",
    "FailedUnit",
    "RiskReport",
    "GridReport",
    "PivotTable",
    "HIGH_RISK_THRESHOLD",
    "aggregate_risk",
    "aggregate_objective",
    "pivot",
    # Errors
    "McSweepError",
    "ConfigurationError",
    "TrialError",
    "AggregationError",
    "Validated",
    # Statistics
    "StatsEngine",
    "StatsContext",
    "FnMetric",
    "DEFAULT_ENGINE",
    "z_crit",
    "t_crit",
    "autocrit",
]

__version__ = "0.1.0"
