"""
HTTP infrastructure layer with retry logic for provider requests.

Provides:
- RetryConfig: Exponential backoff configuration
- HTTPClient: Async HTTP client with bounded timeouts and optional retries

Every failure surfaces as HTTPClientError, which is a FetchFailedError so
adapters and the worker treat transport problems as job-local errors.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any

import httpx

from feed_ingest.feeds.errors import FetchFailedError

logger = logging.getLogger(__name__)

RETRYABLE_EXCEPTIONS = (
    httpx.TimeoutException,
    httpx.ConnectError,
    httpx.ReadError,
)


@dataclass
class RetryConfig:
    """
    Exponential backoff configuration for HTTP retries.

    Defaults to a single attempt per request (MAX_HTTP_RETRIES=0).

    Formula: min(max_backoff, base_delay * 2^attempt) * (1 + random(0, jitter_factor))
    """

    max_retries: int = 0
    max_backoff_seconds: float = 10.0
    base_delay: float = 0.5
    jitter_factor: float = 0.1

    def calculate_backoff(self, attempt: int) -> float:
        """
        Calculate backoff duration for a given retry attempt.

        Args:
            attempt: The retry attempt number (0-indexed)

        Returns:
            Backoff duration in seconds with jitter applied
        """
        delay = min(self.base_delay * (2**attempt), self.max_backoff_seconds)
        return delay + delay * self.jitter_factor * random.random()

    def is_retryable_status(self, status_code: int) -> bool:
        """429 and the transient 5xx codes are retried."""
        return status_code in {429, 500, 502, 503, 504}


class HTTPClientError(FetchFailedError):
    """Raised when a request fails or returns a non-success status."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ):
        super().__init__(message, status_code=status_code)
        self.response_body = response_body


class RateLimitError(HTTPClientError):
    """Raised when rate limit is hit and all retries exhausted."""


class HTTPClient:
    """
    Async HTTP client with per-request timeouts and retry logic.

    Example:
        async with HTTPClient(timeout=5.0) as client:
            text = await client.get_text("https://example.com/feed.xml")
            favicon = await client.get("https://example.com/icon.png", timeout=1.0)
    """

    def __init__(
        self,
        retry_config: RetryConfig | None = None,
        timeout: float = 5.0,
        user_agent: str | None = None,
    ):
        """
        Initialize HTTP client.

        Args:
            retry_config: Configuration for retry behavior. Uses defaults if None.
            timeout: Default request timeout in seconds.
            user_agent: Value of the User-Agent header sent with every request.
        """
        self.retry_config = retry_config or RetryConfig()
        self.timeout = timeout
        self._user_agent = user_agent
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "HTTPClient":
        headers = {"User-Agent": self._user_agent} if self._user_agent else None
        self._client = httpx.AsyncClient(
            timeout=self.timeout,
            headers=headers,
            follow_redirects=True,
        )
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        """
        Perform GET request with retry logic.

        Raises:
            HTTPClientError: On non-success status, timeout or transport error
            RateLimitError: When rate limited and retries exhausted
        """
        return await self._request_with_retry(
            "GET", url, params=params, headers=headers, timeout=timeout
        )

    async def post(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        json_body: dict[str, Any] | None = None,
        content: bytes | None = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        """Perform POST request with a JSON or raw body."""
        return await self._request_with_retry(
            "POST",
            url,
            params=params,
            headers=headers,
            json_body=json_body,
            content=content,
            timeout=timeout,
        )

    async def get_text(self, url: str, **kwargs: Any) -> str:
        response = await self.get(url, **kwargs)
        return response.text

    async def get_json(self, url: str, **kwargs: Any) -> Any:
        response = await self.get(url, **kwargs)
        try:
            return response.json()
        except ValueError as e:
            raise HTTPClientError(
                f"Invalid JSON from {url}",
                status_code=response.status_code,
                response_body=response.text[:500],
            ) from e

    async def _request_with_retry(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        json_body: dict[str, Any] | None = None,
        content: bytes | None = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        if not self._client:
            raise RuntimeError("HTTPClient must be used as async context manager")

        attempts = self.retry_config.max_retries + 1
        last_status_code: int | None = None

        for attempt in range(attempts):
            try:
                response = await self._client.request(
                    method,
                    url,
                    params=params,
                    headers=headers,
                    json=json_body,
                    content=content,
                    timeout=timeout if timeout is not None else self.timeout,
                )
            except RETRYABLE_EXCEPTIONS as e:
                if attempt < self.retry_config.max_retries:
                    backoff = self.retry_config.calculate_backoff(attempt)
                    logger.warning(
                        f"Retryable error {type(e).__name__} for {url}, "
                        f"attempt {attempt + 1}/{attempts}, backing off {backoff:.2f}s"
                    )
                    await asyncio.sleep(backoff)
                    continue
                raise HTTPClientError(
                    f"Request to {url} failed after {attempt + 1} attempts: {type(e).__name__}",
                    status_code=last_status_code,
                ) from e
            except httpx.HTTPError as e:
                raise HTTPClientError(f"Request to {url} failed: {e}") from e

            if self.retry_config.is_retryable_status(response.status_code):
                last_status_code = response.status_code
                if attempt < self.retry_config.max_retries:
                    backoff = self.retry_config.calculate_backoff(attempt)
                    logger.warning(
                        f"Retryable status {response.status_code} from {url}, "
                        f"attempt {attempt + 1}/{attempts}, backing off {backoff:.2f}s"
                    )
                    await asyncio.sleep(backoff)
                    continue

                error_cls = RateLimitError if response.status_code == 429 else HTTPClientError
                raise error_cls(
                    f"Request to {url} failed with status {response.status_code} "
                    f"after {attempt + 1} attempts",
                    status_code=response.status_code,
                    response_body=response.text[:500],
                )

            if response.status_code >= 400:
                raise HTTPClientError(
                    f"Request to {url} failed with status {response.status_code}",
                    status_code=response.status_code,
                    response_body=response.text[:500],
                )

            return response

        raise HTTPClientError(
            f"Request to {url} failed after {attempts} attempts",
            status_code=last_status_code,
        )
