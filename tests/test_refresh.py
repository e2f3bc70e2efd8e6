"""Tests for the refresh coordinator."""

import threading
import time
from unittest.mock import Mock

import pytest

from arbedge.core.errors import ProviderError
from arbedge.domain.models import build_quote
from arbedge.services.refresh import RefreshCoordinator
from tests.conftest import TEST_CONFIG, arb_quotes, flat_quotes


@pytest.fixture
def provider(clock):
    provider = Mock()
    provider.name = "fake"
    provider.fetch_all_quotes.return_value = arb_quotes(observed_at=clock.now)
    return provider


@pytest.fixture
def coordinator(provider, persistence, clock):
    return RefreshCoordinator(provider, persistence, config=TEST_CONFIG, clock=clock)


class TestFreshness:
    """Tests for the staleness gate."""

    def test_first_call_refreshes(self, coordinator, provider, persistence, clock):
        result = coordinator.ensure_fresh()

        assert result.refreshed
        assert result.quote_count == 2
        assert result.opportunity_count == 1
        assert provider.fetch_all_quotes.call_count == 1

        stored = persistence.list_opportunities(now=clock.now)
        assert len(stored) == 1
        assert stored[0].profit_percent == 5.0
        assert coordinator.cache_status()["last_refresh_at"] == clock.now

    def test_fresh_cache_skips_fetch(self, coordinator, provider, clock):
        coordinator.ensure_fresh()
        clock.advance(minutes=10)

        result = coordinator.ensure_fresh()

        assert not result.refreshed
        assert result.cache_age_seconds == 600.0
        assert provider.fetch_all_quotes.call_count == 1

    def test_stale_cache_refetches(self, coordinator, provider, clock):
        coordinator.ensure_fresh()
        clock.advance(minutes=31)

        result = coordinator.ensure_fresh(trigger="scheduled")

        assert result.refreshed
        assert result.trigger == "scheduled"
        assert provider.fetch_all_quotes.call_count == 2

    def test_force_skips_freshness_check(self, coordinator, provider):
        coordinator.ensure_fresh()

        result = coordinator.ensure_fresh(force=True)

        assert result.refreshed
        assert provider.fetch_all_quotes.call_count == 2

    def test_reevaluation_replaces_opportunity(self, coordinator, persistence, clock):
        coordinator.ensure_fresh()
        clock.advance(minutes=1)
        coordinator.ensure_fresh(force=True)

        live = persistence.list_opportunities(now=clock.now)
        assert len(live) == 1
        assert live[0].detected_at == clock.now

    def test_vanished_arbitrage_is_expired(self, coordinator, provider, persistence, clock):
        coordinator.ensure_fresh()
        assert len(persistence.list_opportunities(now=clock.now)) == 1

        clock.advance(minutes=5)
        provider.fetch_all_quotes.return_value = [
            build_quote("tennis", "Djokovic", "Nadal", bookmaker, 1.5, 1.5, observed_at=clock.now)
            for bookmaker in ("B1", "B2")
        ]
        result = coordinator.ensure_fresh(force=True)

        assert result.opportunity_count == 0
        assert persistence.list_opportunities(now=clock.now) == []

    def test_no_arbitrage_stores_quotes_only(self, coordinator, provider, persistence, clock):
        provider.fetch_all_quotes.return_value = flat_quotes()

        result = coordinator.ensure_fresh()

        assert result.refreshed
        assert result.opportunity_count == 0
        assert len(persistence.quotes_for_event(flat_quotes()[0].event_id)) == 2


class TestFailures:
    """Tests for failed and empty refreshes."""

    def test_fetch_error_propagates_and_clears_flag(self, coordinator, provider):
        provider.fetch_all_quotes.side_effect = ProviderError("upstream down", provider="fake")

        with pytest.raises(ProviderError):
            coordinator.ensure_fresh()

        status = coordinator.cache_status()
        assert not status["refresh_in_flight"]
        assert status["last_refresh_at"] is None

        provider.fetch_all_quotes.side_effect = None
        assert coordinator.ensure_fresh().refreshed
        assert provider.fetch_all_quotes.call_count == 2

    def test_store_error_propagates(self, provider, clock):
        persistence = Mock()
        persistence.upsert_quotes.side_effect = RuntimeError("disk full")
        coordinator = RefreshCoordinator(provider, persistence, config=TEST_CONFIG, clock=clock)

        with pytest.raises(RuntimeError):
            coordinator.ensure_fresh()

        assert not coordinator.cache_status()["refresh_in_flight"]
        assert coordinator.cache_status()["last_refresh_at"] is None

    def test_empty_result_leaves_cache_stale(self, coordinator, provider, persistence):
        provider.fetch_all_quotes.return_value = []

        result = coordinator.ensure_fresh()

        assert not result.refreshed
        assert result.error == "No quotes returned"
        assert coordinator.cache_status()["last_refresh_at"] is None
        assert persistence.stats()["quotes"] == 0

        coordinator.ensure_fresh()
        assert provider.fetch_all_quotes.call_count == 2


class TestSingleFlight:
    """Tests for concurrent callers."""

    def test_concurrent_callers_fetch_once(self, provider, persistence):
        started = threading.Event()
        release = threading.Event()

        def slow_fetch():
            started.set()
            release.wait(timeout=5)
            return arb_quotes()

        provider.fetch_all_quotes.side_effect = slow_fetch
        coordinator = RefreshCoordinator(provider, persistence, config=TEST_CONFIG)

        results = []
        results_lock = threading.Lock()

        def call():
            result = coordinator.ensure_fresh()
            with results_lock:
                results.append(result)

        first = threading.Thread(target=call)
        first.start()
        assert started.wait(timeout=5)

        others = [threading.Thread(target=call) for _ in range(4)]
        for thread in others:
            thread.start()
        time.sleep(0.2)
        release.set()

        for thread in [first] + others:
            thread.join(timeout=10)

        assert len(results) == 5
        assert provider.fetch_all_quotes.call_count == 1
        assert sum(1 for r in results if r.refreshed) == 1
        assert all(r.waited_for_other for r in results if not r.refreshed)

    def test_waiter_does_not_see_failure(self, provider, persistence):
        started = threading.Event()
        release = threading.Event()

        def failing_fetch():
            started.set()
            release.wait(timeout=5)
            raise ProviderError("upstream down", provider="fake")

        provider.fetch_all_quotes.side_effect = failing_fetch
        coordinator = RefreshCoordinator(provider, persistence, config=TEST_CONFIG)

        errors = []

        def refresher():
            try:
                coordinator.ensure_fresh()
            except ProviderError as e:
                errors.append(e)

        first = threading.Thread(target=refresher)
        first.start()
        assert started.wait(timeout=5)

        waiter_results = []
        waiter = threading.Thread(target=lambda: waiter_results.append(coordinator.ensure_fresh()))
        waiter.start()
        time.sleep(0.2)
        release.set()
        first.join(timeout=10)
        waiter.join(timeout=10)

        assert len(errors) == 1
        assert waiter_results[0].waited_for_other
        assert not waiter_results[0].refreshed
        assert provider.fetch_all_quotes.call_count == 1

    def test_waiter_times_out(self, provider, persistence):
        started = threading.Event()
        release = threading.Event()

        def slow_fetch():
            started.set()
            release.wait(timeout=5)
            return arb_quotes()

        provider.fetch_all_quotes.side_effect = slow_fetch
        config = {**TEST_CONFIG, "refresh": {"freshness_window_seconds": 1800, "max_wait_seconds": 0.1}}
        coordinator = RefreshCoordinator(provider, persistence, config=config)

        first = threading.Thread(target=coordinator.ensure_fresh)
        first.start()
        assert started.wait(timeout=5)

        begin = time.monotonic()
        result = coordinator.ensure_fresh()
        elapsed = time.monotonic() - begin

        release.set()
        first.join(timeout=10)

        assert result.waited_for_other
        assert not result.refreshed
        assert elapsed < 2
        assert provider.fetch_all_quotes.call_count == 1
