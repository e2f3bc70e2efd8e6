"""
The Odds API provider.

Fetches head-to-head (match result) prices in decimal format from many
bookmakers per request. Each request is metered upstream, so every call
goes through the quota manager first.

API docs: https://the-odds-api.com/liveapi/guides/v4/
"""

import time
from typing import Any, Optional

from arbedge.core.errors import AuthenticationError, PayloadError, ProviderError
from arbedge.core.http import HttpClient, get_http_client
from arbedge.core.timeutil import now_utc, parse_timestamp
from arbedge.domain.models import DRAW_LABEL, Quote, build_quote, normalize_side
from arbedge.providers.base import (
    HealthCheckResult,
    ProviderStatus,
    QuoteProvider,
    SportConfig,
)


class OddsApiProvider(QuoteProvider):
    """Quote source backed by The Odds API v4."""

    name = "odds_api"

    BASE_URL = "https://api.the-odds-api.com/v4"

    def __init__(
        self,
        *args,
        http_client: Optional[HttpClient] = None,
        api_key: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(*args, **kwargs)
        self.http = http_client or get_http_client()
        self.api_key = api_key or self.settings.odds_api_key
        self.regions = self.settings.odds_api_regions

    def _require_key(self) -> str:
        if not self.api_key:
            raise AuthenticationError(
                "ODDS_API_KEY is not configured",
                provider=self.name,
            )
        return self.api_key

    def healthcheck(self) -> HealthCheckResult:
        """Hit the free /sports endpoint."""
        start_time = time.time()
        try:
            self.http.get(
                f"{self.BASE_URL}/sports",
                params={"apiKey": self._require_key()},
                provider_name=self.name,
            )
        except ProviderError as e:
            return HealthCheckResult(
                status=ProviderStatus.UNAVAILABLE,
                message=str(e),
            )

        return HealthCheckResult(
            status=ProviderStatus.HEALTHY,
            message="The Odds API is responding",
            latency_ms=(time.time() - start_time) * 1000,
            details={"requests_remaining": self.http.last_headers.get("x-requests-remaining")},
        )

    def fetch_quotes(self, sport: SportConfig) -> list[Quote]:
        """Fetch h2h decimal odds for one sport."""
        if not sport.odds_api_key:
            self.logger.debug(f"No Odds API key mapped for {sport.name}")
            return []

        api_key = self._require_key()
        self._consume_quota()

        payload = self.http.get(
            f"{self.BASE_URL}/sports/{sport.odds_api_key}/odds",
            params={
                "apiKey": api_key,
                "regions": self.regions,
                "markets": "h2h",
                "oddsFormat": "decimal",
            },
            provider_name=self.name,
        )

        remaining = self.http.last_headers.get("x-requests-remaining")
        if remaining is not None:
            self.logger.info(f"Odds API requests remaining: {remaining}")
            self.quota_manager.record_upstream_remaining(self.name, remaining)

        if not isinstance(payload, list):
            raise PayloadError(
                f"Unexpected payload for {sport.odds_api_key}",
                provider=self.name,
            )

        observed_at = now_utc()
        quotes = []
        for event in payload:
            quotes.extend(self._parse_event(event, sport, observed_at))
        return quotes

    def _parse_event(
        self,
        event: dict[str, Any],
        sport: SportConfig,
        observed_at,
    ) -> list[Quote]:
        """Turn one API event into one quote per bookmaker."""
        home = event.get("home_team")
        away = event.get("away_team")
        if not home or not away:
            return []

        event_time = None
        commence = event.get("commence_time")
        if commence:
            try:
                event_time = parse_timestamp(commence)
            except ValueError:
                self.logger.debug(f"Unparseable commence_time: {commence}")

        quotes = []
        for bookmaker in event.get("bookmakers", []):
            market = next(
                (m for m in bookmaker.get("markets", []) if m.get("key") == "h2h"),
                None,
            )
            if market is None:
                continue

            prices = {
                normalize_side(o.get("name", "")): o.get("price")
                for o in market.get("outcomes", [])
            }
            price_draw = prices.get(normalize_side(DRAW_LABEL)) if sport.has_draw else None

            quotes.append(
                build_quote(
                    sport.name,
                    home,
                    away,
                    bookmaker.get("title") or bookmaker.get("key", "unknown"),
                    prices.get(normalize_side(home)),
                    prices.get(normalize_side(away)),
                    price_draw,
                    event_time=event_time,
                    observed_at=observed_at,
                )
            )
        return quotes
