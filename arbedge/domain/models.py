"""
Core data models for ArbEdge.

All models are dataclasses with to_dict()/from_dict() for JSON
serialization. Timestamps are timezone-aware UTC datetimes in memory and
ISO strings in dict form.
"""

import math
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from arbedge.core.timeutil import now_utc


class Sport(str, Enum):
    """Sports covered by the quote sources."""
    SOCCER = "soccer"
    BASKETBALL = "basketball"
    TENNIS = "tennis"
    NFL = "nfl"
    MLB = "mlb"

    @property
    def has_draw(self) -> bool:
        """Whether the match result market has three outcomes."""
        return self in _THREE_WAY_SPORTS


_THREE_WAY_SPORTS = {Sport.SOCCER}

DRAW_LABEL = "Draw"


def normalize_side(name: str) -> str:
    """Lower-case a side name and collapse internal whitespace."""
    return re.sub(r"\s+", " ", (name or "").strip().lower())


def side_key(name: str) -> str:
    """Per-side token used in event ids: normalized, spaces as hyphens."""
    return normalize_side(name).replace(" ", "-")


def make_event_id(side_a: str, side_b: str) -> str:
    """
    Build the stable identifier for a matchup.

    The id depends only on the unordered, normalized pair of side names, so
    every source and every fetch maps the same matchup to the same id.

    Example:
        >>> make_event_id("Liverpool", "Arsenal")
        'match_arsenal_liverpool'
    """
    parts = sorted(side_key(s) for s in (side_a, side_b))
    return "match_" + "_".join(parts)


def is_valid_price(price: Optional[float]) -> bool:
    """Decimal odds are usable only when finite and strictly above 1.0."""
    if price is None or isinstance(price, bool):
        return False
    try:
        value = float(price)
    except (TypeError, ValueError):
        return False
    return math.isfinite(value) and value > 1.0


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt else None


def _parse_iso(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


@dataclass
class Quote:
    """
    One bookmaker's price for one event at one point in time.

    Prices are decimal odds. price_draw is only set for three-outcome
    markets.
    """
    sport: str
    event_id: str
    event_name: str
    side_a: str
    side_b: str
    bookmaker: str
    price_a: Optional[float]
    price_b: Optional[float]
    price_draw: Optional[float] = None
    event_time: Optional[datetime] = None
    observed_at: datetime = field(default_factory=now_utc)

    def to_dict(self) -> dict[str, Any]:
        return {
            "sport": self.sport,
            "event_id": self.event_id,
            "event_name": self.event_name,
            "side_a": self.side_a,
            "side_b": self.side_b,
            "bookmaker": self.bookmaker,
            "price_a": self.price_a,
            "price_b": self.price_b,
            "price_draw": self.price_draw,
            "event_time": _iso(self.event_time),
            "observed_at": _iso(self.observed_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Quote":
        data = dict(data)
        data["event_time"] = _parse_iso(data.get("event_time"))
        observed = _parse_iso(data.get("observed_at"))
        data["observed_at"] = observed or now_utc()
        return cls(**data)


def build_quote(
    sport: str,
    side_a: str,
    side_b: str,
    bookmaker: str,
    price_a: Optional[float],
    price_b: Optional[float],
    price_draw: Optional[float] = None,
    *,
    event_time: Optional[datetime] = None,
    observed_at: Optional[datetime] = None,
) -> Quote:
    """
    Factory for quotes that derives event_id and event_name.

    Args:
        sport: Sport name (use Sport enum values)
        side_a: First side as reported by the source
        side_b: Second side as reported by the source
        bookmaker: Bookmaker display name
        price_a: Decimal odds for side_a
        price_b: Decimal odds for side_b
        price_draw: Decimal odds for the draw, three-outcome sports only
        event_time: Scheduled start
        observed_at: Capture time, defaults to now

    Returns:
        Quote
    """
    side_a = side_a.strip()
    side_b = side_b.strip()
    return Quote(
        sport=str(sport.value if isinstance(sport, Sport) else sport),
        event_id=make_event_id(side_a, side_b),
        event_name=f"{side_a} vs {side_b}",
        side_a=side_a,
        side_b=side_b,
        bookmaker=bookmaker,
        price_a=price_a,
        price_b=price_b,
        price_draw=price_draw,
        event_time=event_time,
        observed_at=observed_at or now_utc(),
    )


@dataclass
class Event:
    """A matchup reconstructed by grouping quotes that share event_id."""
    event_id: str
    sport: str
    event_name: str
    side_a: str
    side_b: str
    event_time: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "sport": self.sport,
            "event_name": self.event_name,
            "side_a": self.side_a,
            "side_b": self.side_b,
            "event_time": _iso(self.event_time),
        }

    @classmethod
    def from_quote(cls, quote: Quote) -> "Event":
        return cls(
            event_id=quote.event_id,
            sport=quote.sport,
            event_name=quote.event_name,
            side_a=quote.side_a,
            side_b=quote.side_b,
            event_time=quote.event_time,
        )


@dataclass
class Leg:
    """One bet of an arbitrage: which outcome, where, at what price, how much."""
    outcome: str
    bookmaker: str
    price: float
    stake_percent: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "outcome": self.outcome,
            "bookmaker": self.bookmaker,
            "price": self.price,
            "stake_percent": self.stake_percent,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Leg":
        return cls(
            outcome=data["outcome"],
            bookmaker=data["bookmaker"],
            price=float(data["price"]),
            stake_percent=float(data["stake_percent"]),
        )


@dataclass
class Opportunity:
    """
    A detected arbitrage for one event.

    Legs are ordered side_a, draw (three-outcome only), side_b and their
    stake percentages sum to 100. id is assigned by the store.
    """
    event_id: str
    sport: str
    event_name: str
    side_a: str
    side_b: str
    profit_percent: float
    legs: list[Leg]
    detected_at: datetime = field(default_factory=now_utc)
    id: Optional[int] = None

    @property
    def total_stake_percent(self) -> float:
        return round(sum(leg.stake_percent for leg in self.legs), 2)

    @property
    def is_three_way(self) -> bool:
        return len(self.legs) == 3

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "event_id": self.event_id,
            "sport": self.sport,
            "event_name": self.event_name,
            "side_a": self.side_a,
            "side_b": self.side_b,
            "profit_percent": self.profit_percent,
            "legs": [leg.to_dict() for leg in self.legs],
            "detected_at": _iso(self.detected_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Opportunity":
        return cls(
            id=data.get("id"),
            event_id=data["event_id"],
            sport=data["sport"],
            event_name=data["event_name"],
            side_a=data["side_a"],
            side_b=data["side_b"],
            profit_percent=float(data["profit_percent"]),
            legs=[Leg.from_dict(leg) for leg in data.get("legs", [])],
            detected_at=_parse_iso(data.get("detected_at")) or now_utc(),
        )


@dataclass
class RefreshResult:
    """
    Outcome of one RefreshCoordinator.ensure_fresh() call.

    refreshed is True only for the caller that performed a successful
    fetch. waited_for_other means another caller's refresh was in flight;
    it says nothing about whether that refresh succeeded.
    """
    refreshed: bool
    cache_age_seconds: Optional[float] = None
    waited_for_other: bool = False
    quote_count: int = 0
    opportunity_count: int = 0
    trigger: str = "on_demand"
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "refreshed": self.refreshed,
            "cache_age_seconds": self.cache_age_seconds,
            "waited_for_other": self.waited_for_other,
            "quote_count": self.quote_count,
            "opportunity_count": self.opportunity_count,
            "trigger": self.trigger,
            "error": self.error,
        }
