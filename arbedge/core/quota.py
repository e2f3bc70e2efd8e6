"""
Request budgets for metered quote sources.

Two limits apply to each provider:
- local per-minute / per-day counters from config.yaml (usage.quotas)
- the remaining-request count the upstream itself reports, when it does
  (The Odds API sends x-requests-remaining on every response)

A request is allowed only if both agree.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from functools import lru_cache
from threading import Lock
from typing import Callable, Optional

from cachetools import TTLCache

from arbedge.core.config import load_yaml_config
from arbedge.core.logging import get_logger

logger = get_logger("quota")

WINDOWS = {"per_minute": 60, "per_day": 86400}


@dataclass
class QuotaCheckResult:
    allowed: bool
    reason: str = ""


class QuotaManager:
    """
    Per-provider request budget.

    Local counters live in TTL caches keyed by provider. Each entry is a
    one-element list that is inserted once and then updated in place, so a
    window opens at the first request and closes one TTL later.
    """

    def __init__(
        self,
        config: Optional[dict] = None,
        timer: Callable[[], float] = time.monotonic,
    ):
        self.config = config if config is not None else load_yaml_config()
        usage = self.config.get("usage", {})
        self.enabled = usage.get("enabled", True)
        self.quotas = usage.get("quotas", {})

        self._counters = {
            window: TTLCache(maxsize=256, ttl=ttl, timer=timer)
            for window, ttl in WINDOWS.items()
        }
        self._upstream_remaining: dict[str, int] = {}
        self._lock = Lock()

    def check_and_consume(self, provider: str, cost: int = 1) -> QuotaCheckResult:
        """
        Reserve `cost` requests for provider, or refuse without consuming.

        Args:
            provider: Provider name
            cost: Number of upstream requests about to be made
        """
        if not self.enabled:
            return QuotaCheckResult(True)

        with self._lock:
            remaining = self._upstream_remaining.get(provider)
            if remaining is not None and remaining < cost:
                return QuotaCheckResult(
                    False, f"upstream reports {remaining} requests remaining"
                )

            limits = self.quotas.get(provider, {})
            for window, counter in self._counters.items():
                limit = limits.get(window)
                if limit is not None and counter.get(provider, [0])[0] + cost > limit:
                    return QuotaCheckResult(False, f"{window} quota exceeded")

            for window, counter in self._counters.items():
                if limits.get(window) is not None:
                    counter.setdefault(provider, [0])[0] += cost
            if remaining is not None:
                self._upstream_remaining[provider] = remaining - cost

        return QuotaCheckResult(True)

    def record_upstream_remaining(self, provider: str, remaining) -> None:
        """Store the remaining-request count reported by the upstream."""
        try:
            value = int(float(remaining))
        except (TypeError, ValueError):
            logger.debug(f"Ignoring remaining-request header for {provider}: {remaining!r}")
            return

        with self._lock:
            self._upstream_remaining[provider] = value

        if value < 10:
            logger.warning(f"{provider}: only {value} upstream requests remaining")

    def get_usage(self, provider: str) -> dict[str, Optional[int]]:
        """Current counters for a provider."""
        with self._lock:
            usage = {
                window: counter.get(provider, [0])[0]
                for window, counter in self._counters.items()
            }
            usage["upstream_remaining"] = self._upstream_remaining.get(provider)
        return usage


@lru_cache()
def get_quota_manager() -> QuotaManager:
    """Get a cached QuotaManager instance."""
    return QuotaManager()
