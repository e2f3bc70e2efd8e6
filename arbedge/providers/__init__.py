"""
Providers module - Quote sources

Each provider wraps an upstream feed and returns Quote domain models.
"""

from typing import Optional

from arbedge.core.config import Settings, get_settings
from arbedge.providers.base import (
    HealthCheckResult,
    ProviderStatus,
    QuoteProvider,
    SportConfig,
)
from arbedge.providers.odds_api import OddsApiProvider
from arbedge.providers.sample import SampleQuoteProvider


def create_quote_provider(
    settings: Optional[Settings] = None,
    config: Optional[dict] = None,
) -> QuoteProvider:
    """Build the provider selected by settings.quote_source."""
    settings = settings or get_settings()
    if settings.quote_source == "odds_api":
        return OddsApiProvider(settings=settings, config=config)
    return SampleQuoteProvider(settings=settings, config=config)


__all__ = [
    "HealthCheckResult",
    "ProviderStatus",
    "QuoteProvider",
    "SportConfig",
    "OddsApiProvider",
    "SampleQuoteProvider",
    "create_quote_provider",
]
