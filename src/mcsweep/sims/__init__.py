"""Simulation catalog for :mod:`mcsweep`."""

from __future__ import annotations

from .objective import CallbackObjective, GaussianYieldSurface, Objective, ObjectiveSimulation
from .stockout import InventoryState, StockoutSimulation, simulate_stockout

__all__ = [
    "StockoutSimulation",
    "InventoryState",
    "simulate_stockout",
    "ObjectiveSimulation",
    "Objective",
    "GaussianYieldSurface",
    "CallbackObjective",
]
