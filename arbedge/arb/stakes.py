"""
Stake expansion for stored opportunities.

Turns stake percentages into concrete amounts for a total stake. Pure
projection, no state.
"""

import math
from typing import Any, Optional

from arbedge.arb.engine import round_half_up
from arbedge.domain.models import Opportunity


def _validate_stake(total_stake: float) -> float:
    try:
        value = float(total_stake)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid stake: {total_stake!r}")
    if not math.isfinite(value) or value <= 0:
        raise ValueError(f"Stake must be a positive number, got {total_stake!r}")
    return value


def calculate_stake_amounts(
    opportunity: Opportunity,
    total_stake: float,
) -> list[dict[str, Any]]:
    """
    Expand each leg into money amounts.

    stake_amount = total_stake * stake_percent / 100
    potential_return = stake_amount * price

    Args:
        opportunity: Detected or stored opportunity
        total_stake: Amount to spread across all legs

    Returns:
        One dict per leg with outcome, bookmaker, price, stake_percent,
        stake_amount and potential_return
    """
    stake = _validate_stake(total_stake)
    bets = []
    for leg in opportunity.legs:
        amount = stake * leg.stake_percent / 100
        bets.append({
            **leg.to_dict(),
            "stake_amount": round_half_up(amount),
            "potential_return": round_half_up(amount * leg.price),
        })
    return bets


def guaranteed_profit(opportunity: Opportunity, total_stake: float) -> float:
    """Profit locked in by staking total_stake across the legs."""
    stake = _validate_stake(total_stake)
    return round_half_up(stake * opportunity.profit_percent / 100)


def format_opportunity(
    opportunity: Opportunity,
    stake: Optional[float] = None,
) -> dict[str, Any]:
    """
    Render an opportunity for API/CLI consumers.

    With a stake, bets carry money amounts and the result gains
    total_stake and guaranteed_profit.
    """
    formatted: dict[str, Any] = {
        "id": opportunity.id,
        "match": {
            "id": opportunity.event_id,
            "name": opportunity.event_name,
            "sport": opportunity.sport,
            "side_a": opportunity.side_a,
            "side_b": opportunity.side_b,
        },
        "profit_percent": opportunity.profit_percent,
        "bets": [leg.to_dict() for leg in opportunity.legs],
        "detected_at": opportunity.detected_at.isoformat(),
    }

    if stake is not None:
        formatted["bets"] = calculate_stake_amounts(opportunity, stake)
        formatted["total_stake"] = float(stake)
        formatted["guaranteed_profit"] = guaranteed_profit(opportunity, stake)

    return formatted
