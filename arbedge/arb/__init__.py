"""
ArbEdge Arbitrage Module.

Components:
- engine: Best-price selection and stake split per event
- stakes: Money-amount expansion of detected opportunities
"""

from arbedge.arb.engine import ArbitrageEngine, balance_stakes, round_half_up
from arbedge.arb.stakes import calculate_stake_amounts, format_opportunity, guaranteed_profit

__all__ = [
    "ArbitrageEngine",
    "balance_stakes",
    "round_half_up",
    "calculate_stake_amounts",
    "format_opportunity",
    "guaranteed_profit",
]
