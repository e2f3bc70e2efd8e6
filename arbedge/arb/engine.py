"""
Arbitrage Engine.

Decides whether the best available prices for one event guarantee a
profit and how to split a stake across outcomes to lock it in.

Core Logic:
1. Check the quotes describe a single event (at least two of them)
2. Three outcomes if any quote carries a valid draw price, else two
3. Pick the maximum valid price per outcome, bookmakers may differ
4. Sum implied probabilities (1 / price)
5. Arbitrage iff the sum is strictly below 1
6. profit = 1 / sum - 1, stake per outcome = implied / sum
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Sequence

from arbedge.core.logging import LoggerMixin
from arbedge.core.timeutil import now_utc
from arbedge.domain.models import (
    DRAW_LABEL,
    Leg,
    Opportunity,
    Quote,
    is_valid_price,
    side_key,
)

SIDE_A = "side_a"
DRAW = "draw"
SIDE_B = "side_b"

_CENT = Decimal("0.01")


def round_half_up(value: float) -> float:
    """Round to 2 decimals, halves away from zero."""
    return float(Decimal(str(value)).quantize(_CENT, rounding=ROUND_HALF_UP))


def implied_probability(price: float) -> float:
    return 1.0 / price


def balance_stakes(raw_percents: Sequence[float]) -> list[float]:
    """
    Round stake percentages so they still add up to exactly 100.

    Each value is rounded half-up to cents; whatever residual that leaves
    (never more than one cent) is absorbed by the largest stake.
    """
    rounded = [
        Decimal(str(p)).quantize(_CENT, rounding=ROUND_HALF_UP) for p in raw_percents
    ]
    residual = Decimal("100.00") - sum(rounded, Decimal("0"))
    if rounded and residual != 0:
        largest = max(range(len(raw_percents)), key=lambda i: raw_percents[i])
        rounded[largest] += residual
    return [float(r) for r in rounded]


@dataclass
class BestPrice:
    """Highest price seen for one outcome and who offered it."""
    price: float
    bookmaker: str


class ArbitrageEngine(LoggerMixin):
    """
    Pure arbitrage detector over the quotes of one event.

    Malformed prices (missing, non-finite, or <= 1.0) are skipped per
    outcome; detect() never raises on bad quote data.
    """

    def detect(
        self,
        quotes: Sequence[Quote],
        now: Optional[datetime] = None,
    ) -> Optional[Opportunity]:
        """
        Evaluate one event's quotes for a guaranteed-profit split.

        Args:
            quotes: All current quotes for a single event
            now: Detection timestamp, defaults to current UTC time

        Returns:
            Opportunity if profit_percent > 0, None otherwise
        """
        if not quotes or len(quotes) < 2:
            return None

        reference = quotes[0]
        if any(q.event_id != reference.event_id for q in quotes):
            self.logger.debug(
                f"Rejected mixed event set starting with {reference.event_id}"
            )
            return None

        three_way = any(is_valid_price(q.price_draw) for q in quotes)
        outcomes = [SIDE_A, DRAW, SIDE_B] if three_way else [SIDE_A, SIDE_B]

        best = self._best_prices(quotes, reference, three_way)
        if any(best[o] is None for o in outcomes):
            self.logger.debug(
                f"Event {reference.event_id}: missing price for "
                f"{[o for o in outcomes if best[o] is None]}"
            )
            return None

        implied = {o: implied_probability(best[o].price) for o in outcomes}
        total = sum(implied.values())

        if total >= 1.0:
            self.logger.debug(
                f"Event {reference.event_id}: implied sum {total:.4f}, no arbitrage"
            )
            return None

        profit_percent = round_half_up((1.0 / total - 1.0) * 100)
        if profit_percent <= 0:
            return None

        stakes = balance_stakes([implied[o] / total * 100 for o in outcomes])
        labels = {
            SIDE_A: reference.side_a,
            DRAW: DRAW_LABEL,
            SIDE_B: reference.side_b,
        }
        legs = [
            Leg(
                outcome=labels[o],
                bookmaker=best[o].bookmaker,
                price=best[o].price,
                stake_percent=stake,
            )
            for o, stake in zip(outcomes, stakes)
        ]

        opportunity = Opportunity(
            event_id=reference.event_id,
            sport=reference.sport,
            event_name=reference.event_name,
            side_a=reference.side_a,
            side_b=reference.side_b,
            profit_percent=profit_percent,
            legs=legs,
            detected_at=now or now_utc(),
        )

        self.logger.info(
            f"Arbitrage detected: {reference.event_name} "
            f"profit={profit_percent:.2f}% legs={len(legs)}"
        )
        return opportunity

    def detect_all(
        self,
        quotes_by_event: dict[str, Sequence[Quote]],
        now: Optional[datetime] = None,
    ) -> list[Opportunity]:
        """Run detect() per event and keep the hits."""
        timestamp = now or now_utc()
        found = []
        for quotes in quotes_by_event.values():
            opportunity = self.detect(quotes, now=timestamp)
            if opportunity:
                found.append(opportunity)
        return found

    def _best_prices(
        self,
        quotes: Sequence[Quote],
        reference: Quote,
        three_way: bool,
    ) -> dict[str, Optional[BestPrice]]:
        best: dict[str, Optional[BestPrice]] = {SIDE_A: None, DRAW: None, SIDE_B: None}

        for quote in quotes:
            price_a, price_b = _aligned_prices(quote, reference)
            candidates = [(SIDE_A, price_a), (SIDE_B, price_b)]
            if three_way:
                candidates.append((DRAW, quote.price_draw))

            for outcome, price in candidates:
                if not is_valid_price(price):
                    continue
                price = float(price)
                current = best[outcome]
                if current is None or price > current.price:
                    best[outcome] = BestPrice(price=price, bookmaker=quote.bookmaker)

        return best


def _aligned_prices(quote: Quote, reference: Quote) -> tuple:
    """
    Return (price for reference.side_a, price for reference.side_b).

    Sources disagree on home/away order; a quote whose side_a is the
    reference's side_b has its prices swapped.
    """
    if (
        side_key(quote.side_a) == side_key(reference.side_b)
        and side_key(quote.side_b) == side_key(reference.side_a)
    ):
        return quote.price_b, quote.price_a
    return quote.price_a, quote.price_b
