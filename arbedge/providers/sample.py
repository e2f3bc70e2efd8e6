"""
Synthetic quote source for local development.

Produces plausible prices for a fixed set of matchups across ten
bookmakers. Per-bookmaker jitter occasionally yields an arbitrage.
"""

import random
from datetime import timedelta
from typing import Optional

from arbedge.core.timeutil import now_utc
from arbedge.domain.models import Quote, build_quote
from arbedge.providers.base import (
    HealthCheckResult,
    ProviderStatus,
    QuoteProvider,
    SportConfig,
)

BOOKMAKERS = [
    "Bet365", "DraftKings", "FanDuel", "BetMGM", "Caesars",
    "PointsBet", "BetRivers", "Unibet", "William Hill", "888sport",
]

MATCHUPS = {
    "soccer": [
        ("Manchester United", "Liverpool"),
        ("Barcelona", "Real Madrid"),
        ("Bayern Munich", "Dortmund"),
        ("PSG", "Marseille"),
        ("Arsenal", "Chelsea"),
    ],
    "basketball": [
        ("Lakers", "Celtics"),
        ("Warriors", "Nets"),
        ("Heat", "Bucks"),
        ("Nuggets", "Suns"),
    ],
    "tennis": [
        ("Djokovic", "Nadal"),
        ("Alcaraz", "Medvedev"),
        ("Swiatek", "Sabalenka"),
    ],
    "nfl": [
        ("Chiefs", "Bills"),
        ("49ers", "Eagles"),
        ("Cowboys", "Packers"),
    ],
    "mlb": [
        ("Yankees", "Red Sox"),
        ("Dodgers", "Giants"),
        ("Astros", "Rangers"),
    ],
}


class SampleQuoteProvider(QuoteProvider):
    """Seeded random quotes; no network, no quota."""

    name = "sample"

    def __init__(self, *args, seed: Optional[int] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self._rng = random.Random(seed)

    def healthcheck(self) -> HealthCheckResult:
        return HealthCheckResult(
            status=ProviderStatus.HEALTHY,
            message="Sample data is always available",
            latency_ms=0.0,
        )

    def fetch_quotes(self, sport: SportConfig) -> list[Quote]:
        observed_at = now_utc()
        quotes = []

        for i, (side_a, side_b) in enumerate(MATCHUPS.get(sport.name, [])):
            event_time = observed_at + timedelta(days=i + 1)
            for bookmaker in BOOKMAKERS:
                base_a = 1.5 + self._rng.random() * 3
                base_b = 1.5 + self._rng.random() * 3
                variation = (self._rng.random() - 0.5) * 0.3

                price_draw = None
                if sport.has_draw:
                    price_draw = round(3.0 + self._rng.random() * 2, 2)

                quotes.append(
                    build_quote(
                        sport.name,
                        side_a,
                        side_b,
                        bookmaker,
                        round(base_a + variation, 2),
                        round(base_b - variation, 2),
                        price_draw,
                        event_time=event_time,
                        observed_at=observed_at,
                    )
                )

        return quotes
