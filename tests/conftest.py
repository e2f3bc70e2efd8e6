"""Shared fixtures."""

from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from arbedge.domain.models import build_quote
from arbedge.services.persistence import SQLitePersistence


TEST_CONFIG = {
    "refresh": {
        "freshness_window_seconds": 1800,
        "max_wait_seconds": 5,
    },
    "store": {
        "active_window_hours": 2,
        "opportunity_max_age_minutes": 60,
        "page_size": 50,
        "quote_retention_hours": 3,
        "opportunity_retention_hours": 24,
    },
    "scheduler": {
        "refresh": {"enabled": True, "interval_minutes": 5},
        "cleanup": {"enabled": True, "cron": "0 * * * *"},
    },
    "sports": [
        {"name": "soccer", "display_name": "Soccer", "has_draw": True, "odds_api_key": "soccer_epl"},
        {"name": "tennis", "display_name": "Tennis", "has_draw": False, "odds_api_key": "tennis_atp"},
    ],
    "usage": {
        "enabled": True,
        "quotas": {"odds_api": {"per_minute": 2, "per_day": 10}},
    },
}


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime = None):
        self.now = start or datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def config():
    return TEST_CONFIG


@pytest.fixture
def settings():
    settings = Mock()
    settings.timezone = "UTC"
    settings.odds_api_key = "test_api_key"
    settings.odds_api_regions = "us"
    settings.http_timeout = 5
    return settings


@pytest.fixture
def persistence(tmp_path):
    return SQLitePersistence(
        database_url=f"sqlite:///{tmp_path / 'arbedge_test.db'}",
        config=TEST_CONFIG,
    )


@pytest.fixture
def clock():
    return FakeClock()


def arb_quotes(observed_at=None):
    """Two tennis quotes whose best prices (2.10 / 2.10) form an arbitrage."""
    return [
        build_quote("tennis", "Djokovic", "Nadal", "B1", 2.10, 1.50, observed_at=observed_at),
        build_quote("tennis", "Djokovic", "Nadal", "B2", 1.50, 2.10, observed_at=observed_at),
    ]


def flat_quotes(observed_at=None):
    """Two tennis quotes without an arbitrage."""
    return [
        build_quote("tennis", "Alcaraz", "Medvedev", "B1", 1.50, 1.50, observed_at=observed_at),
        build_quote("tennis", "Alcaraz", "Medvedev", "B2", 1.50, 1.50, observed_at=observed_at),
    ]
