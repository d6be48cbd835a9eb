"""Stockout-risk simulation over a demand horizon."""

from __future__ import annotations

from enum import Enum

import numpy as np
from numpy.random import Generator

from ..config import SimulationConfig
from ..simulation import TrialSimulation
from ..units import InventoryItem

__all__ = ["InventoryState", "simulate_stockout", "StockoutSimulation"]


class InventoryState(str, Enum):
    r"""
    States of one depletion trajectory.

    Attributes
    ----------
    alive : str
        Stock remains positive.
    stockout : str
        Stock reached zero or below. Terminal.
    """

    alive = "alive"
    stockout = "stockout"


def simulate_stockout(item: InventoryItem, horizon: int, rng: Generator) -> bool:
    r"""
    Simulate ``horizon`` days of depletion and report whether stock ran out.

    Daily demand is :math:`D_t = \max(0, \mathcal{N}(\mu, \sigma))`. Starting from
    ``item.current_level``, stock moves to ``stockout`` the first time
    :math:`S_t = S_0 - \sum_{k \le t} D_k \le 0`; an item that starts at or below
    zero is already stocked out.

    Parameters
    ----------
    item : InventoryItem
        Starting level and demand distribution.
    horizon : int
        Number of days, ``>= 0``.
    rng : numpy.random.Generator
        Private stream of the item's unit.

    Returns
    -------
    bool
        ``True`` iff the terminal state is ``stockout``.

    Notes
    -----
    All ``horizon`` demands are drawn up front so the number of draws per trial
    is fixed, which keeps streams aligned between trials whatever the outcome.
    """
    demands = np.maximum(rng.normal(item.mean_demand, item.std_dev_demand, size=horizon), 0.0)
    remaining = item.current_level
    state = InventoryState.stockout if remaining <= 0 else InventoryState.alive
    for demand in demands:
        if state is InventoryState.stockout:
            break
        remaining -= demand
        if remaining <= 0:
            state = InventoryState.stockout
    return state is InventoryState.stockout


class StockoutSimulation(TrialSimulation):
    r"""
    Per-item Monte Carlo stockout risk.

    Each trial is one :func:`simulate_stockout` trajectory over
    ``config.trial_horizon`` days; the aggregate is the fraction of trajectories
    that stocked out.

    Example
    -------
    >>> from mcsweep import SimulationConfig, InventoryItem, run_stockout_risk
    >>> item = InventoryItem("MED-101", 500, 12.5, 3.0)
    >>> report = run_stockout_risk([item], SimulationConfig(1000, 30, 42))  # doctest: +SKIP
    """

    outcome_dtype = bool

    def __init__(self, name: str = "Stockout Risk"):
        super().__init__(name)

    def single_trial(  # pylint: disable=arguments-renamed
        self,
        item: InventoryItem,
        rng: Generator,
        config: SimulationConfig,
    ) -> bool:
        return simulate_stockout(item, config.trial_horizon, rng)
