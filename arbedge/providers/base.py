"""
Base provider class for all quote sources.

All providers must:
- Inherit from QuoteProvider
- Implement fetch_quotes(sport) and healthcheck()
- Return Quote domain models, not raw API responses
- Raise ProviderError subclasses on failure
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from arbedge.core.config import Settings, get_settings, load_yaml_config
from arbedge.core.errors import ProviderError, QuotaExceededError
from arbedge.core.logging import LoggerMixin
from arbedge.core.quota import QuotaManager, get_quota_manager
from arbedge.domain.models import Quote


class ProviderStatus(str, Enum):
    """Provider health status."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNAVAILABLE = "unavailable"


@dataclass
class HealthCheckResult:
    """Result of a provider health check."""
    status: ProviderStatus
    message: str
    latency_ms: Optional[float] = None
    details: Optional[dict[str, Any]] = None


@dataclass
class SportConfig:
    """One entry of the sports section in config.yaml."""
    name: str
    display_name: str
    has_draw: bool = False
    odds_api_key: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SportConfig":
        return cls(
            name=data["name"],
            display_name=data.get("display_name", data["name"].title()),
            has_draw=bool(data.get("has_draw", False)),
            odds_api_key=data.get("odds_api_key"),
        )


class QuoteProvider(ABC, LoggerMixin):
    """
    Abstract base class for quote sources.

    fetch_all_quotes() walks the configured sports. A recoverable failure
    for one sport is logged and that sport skipped; anything else aborts
    the whole fetch.
    """

    name: str = "base"

    def __init__(
        self,
        settings: Optional[Settings] = None,
        config: Optional[dict] = None,
        quota_manager: Optional[QuotaManager] = None,
    ):
        self.settings = settings or get_settings()
        self.config = config if config is not None else load_yaml_config()
        self.sports = [SportConfig.from_dict(s) for s in self.config.get("sports", [])]
        self._quota_manager = quota_manager

    @abstractmethod
    def fetch_quotes(self, sport: SportConfig) -> list[Quote]:
        """
        Fetch current quotes for one sport.

        Raises:
            ProviderError: On upstream failure
        """
        pass

    @abstractmethod
    def healthcheck(self) -> HealthCheckResult:
        """Check if the provider is reachable."""
        pass

    def fetch_all_quotes(self) -> list[Quote]:
        """
        Fetch quotes for every configured sport.

        Returns:
            Concatenated quotes, possibly empty

        Raises:
            ProviderError: On a non-recoverable failure for any sport
        """
        all_quotes: list[Quote] = []

        for sport in self.sports:
            try:
                quotes = self.fetch_quotes(sport)
            except ProviderError as e:
                if not e.recoverable:
                    raise
                self.logger.warning(
                    f"Provider {self.name}: skipping {sport.name} after error: {e}"
                )
                continue

            self.logger.info(f"Provider {self.name}: {len(quotes)} quotes for {sport.name}")
            all_quotes.extend(quotes)

        self.logger.info(f"Provider {self.name}: {len(all_quotes)} quotes total")
        return all_quotes

    @property
    def quota_manager(self) -> QuotaManager:
        if self._quota_manager is None:
            self._quota_manager = get_quota_manager()
        return self._quota_manager

    def _consume_quota(self, cost: int = 1) -> None:
        """Reserve upstream requests; raises QuotaExceededError when refused."""
        result = self.quota_manager.check_and_consume(self.name, cost=cost)
        if not result.allowed:
            raise QuotaExceededError(
                f"{self.name} quota exceeded: {result.reason}",
                provider=self.name,
            )
