"""Tests for stake expansion."""

import math
from datetime import datetime, timezone

import pytest

from arbedge.arb.stakes import (
    calculate_stake_amounts,
    format_opportunity,
    guaranteed_profit,
)
from arbedge.domain.models import Leg, Opportunity


@pytest.fixture
def opportunity():
    return Opportunity(
        event_id="match_djokovic_nadal",
        sport="tennis",
        event_name="Djokovic vs Nadal",
        side_a="Djokovic",
        side_b="Nadal",
        profit_percent=5.0,
        legs=[
            Leg("Djokovic", "B1", 2.1, 50.0),
            Leg("Nadal", "B2", 2.1, 50.0),
        ],
        detected_at=datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc),
        id=3,
    )


class TestStakeAmounts:
    """Tests for calculate_stake_amounts and guaranteed_profit."""

    def test_amounts_and_returns(self, opportunity):
        bets = calculate_stake_amounts(opportunity, 100)

        assert [b["stake_amount"] for b in bets] == [50.0, 50.0]
        assert [b["potential_return"] for b in bets] == [105.0, 105.0]
        assert bets[0]["bookmaker"] == "B1"
        assert bets[0]["outcome"] == "Djokovic"

    def test_guaranteed_profit(self, opportunity):
        assert guaranteed_profit(opportunity, 100) == 5.0
        assert guaranteed_profit(opportunity, 250) == 12.5

    @pytest.mark.parametrize("stake", [0, -5, math.nan, math.inf, "abc", None])
    def test_invalid_stake_raises(self, opportunity, stake):
        with pytest.raises(ValueError):
            calculate_stake_amounts(opportunity, stake)


class TestFormatOpportunity:
    """Tests for format_opportunity."""

    def test_without_stake(self, opportunity):
        formatted = format_opportunity(opportunity)

        assert formatted["id"] == 3
        assert formatted["match"]["name"] == "Djokovic vs Nadal"
        assert formatted["profit_percent"] == 5.0
        assert formatted["detected_at"] == "2026-10-18T12:00:00+00:00"
        assert "total_stake" not in formatted
        assert "stake_amount" not in formatted["bets"][0]

    def test_with_stake(self, opportunity):
        formatted = format_opportunity(opportunity, stake=200)

        assert formatted["total_stake"] == 200.0
        assert formatted["guaranteed_profit"] == 10.0
        assert formatted["bets"][1]["stake_amount"] == 100.0
