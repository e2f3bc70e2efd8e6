"""
Synchronous HTTP access for quote providers.

Transport failures (timeouts, dropped connections) are retried with
exponential backoff. HTTP error statuses are never retried here: they are
translated into the provider error hierarchy and the provider decides
what a failure costs.

API keys travel as query parameters, so they are masked before any URL or
parameter set reaches the logs.
"""

from typing import Any, Optional

import httpx
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from arbedge.core.config import get_settings
from arbedge.core.errors import (
    AuthenticationError,
    PayloadError,
    ProviderError,
    RateLimitError,
)
from arbedge.core.logging import get_logger

logger = get_logger("http")

SECRET_PARAMS = {"apikey", "api_key", "key", "token"}

TRANSIENT_ERRORS = (httpx.TimeoutException, httpx.NetworkError, httpx.RemoteProtocolError)


def redact_params(params: Optional[dict[str, Any]]) -> dict[str, Any]:
    """Copy of params with secret values masked."""
    return {
        k: ("***" if k.lower() in SECRET_PARAMS else v)
        for k, v in (params or {}).items()
    }


def error_for_response(response: httpx.Response, provider: str) -> Optional[ProviderError]:
    """Map an HTTP error status onto a ProviderError, None for success."""
    status = response.status_code
    if status < 400:
        return None

    if status == 429:
        retry_after = response.headers.get("Retry-After")
        return RateLimitError(
            "Rate limit exceeded",
            provider=provider,
            retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
        )

    if status in (401, 403):
        return AuthenticationError(
            f"HTTP {status}: {response.reason_phrase}",
            provider=provider,
        )

    # 5xx may clear up on the next refresh; other 4xx will not
    return ProviderError(
        f"HTTP {status}: {response.reason_phrase}",
        provider=provider,
        recoverable=status >= 500,
    )


class HttpClient:
    """
    Thin httpx wrapper shared by providers.

    last_headers holds the (lower-cased) headers of the most recent
    response, which is where metered APIs report remaining budget.
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        headers: Optional[dict[str, str]] = None,
        max_attempts: int = 3,
    ):
        self.timeout = timeout or get_settings().http_timeout
        self.default_headers = headers or {}
        self.max_attempts = max_attempts
        self.last_headers: dict[str, str] = {}

        self._client: Optional[httpx.Client] = None

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                timeout=self.timeout,
                headers=self.default_headers,
            )
        return self._client

    def close(self) -> None:
        if self._client:
            self._client.close()
            self._client = None

    def __enter__(self) -> "HttpClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _send_with_retry(
        self,
        url: str,
        params: Optional[dict[str, Any]],
        headers: Optional[dict[str, str]],
    ) -> httpx.Response:
        retrying = Retrying(
            retry=retry_if_exception_type(TRANSIENT_ERRORS),
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            before_sleep=lambda state: logger.warning(
                f"GET {url} attempt {state.attempt_number} failed: "
                f"{state.outcome.exception()}; retrying"
            ),
            reraise=True,
        )
        for attempt in retrying:
            with attempt:
                return self.client.get(url, params=params, headers=headers)

    def get(
        self,
        url: str,
        *,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
        provider_name: str = "unknown",
    ) -> Any:
        """
        GET a JSON document.

        Args:
            url: Absolute request URL
            params: Query parameters (secrets are masked in logs)
            headers: Extra request headers
            provider_name: Attributed on raised errors

        Returns:
            Decoded JSON body

        Raises:
            RateLimitError: On 429
            AuthenticationError: On 401/403
            PayloadError: On a body that is not JSON
            ProviderError: On any other failure
        """
        logger.debug(f"GET {url} params={redact_params(params)}")

        try:
            response = self._send_with_retry(url, params, headers)
        except httpx.TimeoutException as e:
            logger.warning(f"Timeout on GET {url} after {self.max_attempts} attempts")
            raise ProviderError(
                f"Request timeout: {url}",
                provider=provider_name,
                recoverable=True,
            ) from e
        except httpx.TransportError as e:
            logger.error(f"Transport error on GET {url}: {e}")
            raise ProviderError(
                f"Network error: {e}",
                provider=provider_name,
                recoverable=True,
            ) from e

        self.last_headers = {k.lower(): v for k, v in response.headers.items()}

        error = error_for_response(response, provider_name)
        if error is not None:
            logger.error(f"GET {url} -> HTTP {response.status_code}: {response.text[:200]}")
            raise error

        try:
            return response.json()
        except ValueError as e:
            raise PayloadError(
                f"Invalid JSON from {url}",
                provider=provider_name,
            ) from e


_default_client: Optional[HttpClient] = None


def get_http_client() -> HttpClient:
    """Shared client for providers that are not handed one."""
    global _default_client
    if _default_client is None:
        _default_client = HttpClient()
    return _default_client
