"""
Refresh coordinator.

Gates every upstream quote fetch behind a staleness check and a
single-flight guarantee: however many callers arrive while the cache is
stale, at most one fetch runs, and the others wait for it to finish.

Flow of a refresh:
1. Fetch quotes for all sports from the provider
2. Upsert them (one transaction)
3. Run the arbitrage engine over every event in the batch
4. Expire superseded opportunities, store the new ones
5. Mark the cache fresh
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from threading import Condition
from typing import Callable, Optional

from arbedge.arb.engine import ArbitrageEngine
from arbedge.core.config import load_yaml_config
from arbedge.core.logging import LoggerMixin
from arbedge.core.timeutil import now_utc
from arbedge.domain.models import RefreshResult
from arbedge.providers.base import QuoteProvider
from arbedge.services.persistence import PersistenceService


@dataclass
class CacheState:
    """Process-wide freshness state, owned by one RefreshCoordinator."""
    last_refresh_at: Optional[datetime] = None
    refresh_in_flight: bool = False

    def age_seconds(self, now: datetime) -> Optional[float]:
        if self.last_refresh_at is None:
            return None
        return (now - self.last_refresh_at).total_seconds()

    def is_fresh(self, now: datetime, window: timedelta) -> bool:
        if self.last_refresh_at is None:
            return False
        return now - self.last_refresh_at < window


class RefreshCoordinator(LoggerMixin):
    """
    Single-flight, staleness-gated refresh of cached quotes.

    Both the scheduler and on-demand callers go through ensure_fresh().
    The cache state is guarded by a Condition: the refreshing caller
    notifies all waiters when it finishes, whatever the outcome, and
    waiters give up after max_wait_seconds.
    """

    def __init__(
        self,
        provider: QuoteProvider,
        persistence: PersistenceService,
        engine: Optional[ArbitrageEngine] = None,
        config: Optional[dict] = None,
        clock: Callable[[], datetime] = now_utc,
    ):
        """
        Initialize coordinator.

        Args:
            provider: Quote source
            persistence: Quote and opportunity store
            engine: Arbitrage engine, a default one if not provided
            config: Configuration dict (or load from yaml)
            clock: Returns the current UTC time
        """
        if config is None:
            config = load_yaml_config()
        refresh_config = config.get("refresh", {})

        self.freshness_window = timedelta(
            seconds=refresh_config.get("freshness_window_seconds", 1800)
        )
        self.max_wait_seconds = float(refresh_config.get("max_wait_seconds", 60))

        self.provider = provider
        self.persistence = persistence
        self.engine = engine or ArbitrageEngine()
        self._clock = clock

        self._state = CacheState()
        self._condition = Condition()

    def ensure_fresh(
        self,
        trigger: str = "on_demand",
        force: bool = False,
    ) -> RefreshResult:
        """
        Make sure cached quotes are fresh, refreshing at most once at a time.

        Args:
            trigger: Who is asking ("on_demand", "scheduled", "cli"), for logs
            force: Skip the freshness check; the single-flight gate still applies

        Returns:
            RefreshResult describing what this call did

        Raises:
            ProviderError: When this call's fetch fails
            Exception: Store errors from this call's refresh
        """
        with self._condition:
            now = self._clock()

            if not force and self._state.is_fresh(now, self.freshness_window):
                age = self._state.age_seconds(now)
                self.logger.info(f"[{trigger}] Using cached quotes ({age / 60:.1f} min old)")
                return RefreshResult(
                    refreshed=False,
                    cache_age_seconds=round(age, 1),
                    trigger=trigger,
                )

            if self._state.refresh_in_flight:
                self.logger.info(f"[{trigger}] Refresh already in progress, waiting")
                finished = self._condition.wait_for(
                    lambda: not self._state.refresh_in_flight,
                    timeout=self.max_wait_seconds,
                )
                if not finished:
                    self.logger.warning(
                        f"[{trigger}] Gave up waiting after {self.max_wait_seconds:.0f}s; "
                        f"quotes may be stale"
                    )
                return RefreshResult(
                    refreshed=False,
                    waited_for_other=True,
                    trigger=trigger,
                )

            self._state.refresh_in_flight = True

        succeeded = False
        try:
            result = self._refresh(trigger)
            succeeded = result.refreshed
            return result
        finally:
            with self._condition:
                self._state.refresh_in_flight = False
                if succeeded:
                    self._state.last_refresh_at = self._clock()
                self._condition.notify_all()

    def _refresh(self, trigger: str) -> RefreshResult:
        """Fetch, store and evaluate. Runs outside the lock."""
        self.logger.info(f"[{trigger}] Quotes are stale, fetching from {self.provider.name}")

        try:
            quotes = self.provider.fetch_all_quotes()
        except Exception as e:
            self.logger.error(f"[{trigger}] Quote fetch failed: {e}")
            raise

        if not quotes:
            self.logger.warning(f"[{trigger}] No quotes returned, cache left stale")
            return RefreshResult(
                refreshed=False,
                trigger=trigger,
                error="No quotes returned",
            )

        self.persistence.upsert_quotes(quotes)

        event_ids = list(dict.fromkeys(q.event_id for q in quotes))
        opportunity_count = self._detect(event_ids)

        self.logger.info(
            f"[{trigger}] Refreshed {len(quotes)} quotes across {len(event_ids)} events, "
            f"{opportunity_count} opportunities"
        )
        return RefreshResult(
            refreshed=True,
            quote_count=len(quotes),
            opportunity_count=opportunity_count,
            trigger=trigger,
        )

    def _detect(self, event_ids: list[str]) -> int:
        """Evaluate stored quotes of each event and persist any arbitrage."""
        detected_at = self._clock()
        opportunities = []

        for event_id in event_ids:
            quotes = self.persistence.quotes_for_event(event_id)
            opportunity = self.engine.detect(quotes, now=detected_at)
            if opportunity:
                opportunities.append(opportunity)

        self.persistence.expire_opportunities(event_ids)
        for opportunity in opportunities:
            self.persistence.insert_opportunity(opportunity)

        return len(opportunities)

    def cache_status(self) -> dict:
        """Snapshot of the cache state for status displays."""
        with self._condition:
            now = self._clock()
            return {
                "last_refresh_at": self._state.last_refresh_at,
                "cache_age_seconds": self._state.age_seconds(now),
                "is_fresh": self._state.is_fresh(now, self.freshness_window),
                "refresh_in_flight": self._state.refresh_in_flight,
                "freshness_window_seconds": self.freshness_window.total_seconds(),
            }
