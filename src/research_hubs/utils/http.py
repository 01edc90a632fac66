import asyncio
import logging
from dataclasses import dataclass
from typing import Any

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from ..core.errors import TransportError

log = structlog.get_logger()
# Get standard logger for tenacity callbacks
std_log = logging.getLogger(__name__)

RETRYABLE_STATUS = (408, 429, 500, 502, 503, 504)


def should_retry(exception: BaseException) -> bool:
    """Determine if we should retry based on exception type or status code."""
    if isinstance(exception, httpx.HTTPStatusError):
        return exception.response.status_code in RETRYABLE_STATUS
    return isinstance(exception, httpx.TransportError)


@dataclass
class JsonResponse:
    """Outcome of a GET that reached the server."""

    status_code: int
    data: Any = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


async def get_json(
    client: httpx.AsyncClient,
    url: str,
    params: dict[str, Any] | None = None,
    retries: int = 0,
) -> JsonResponse:
    """
    Issue a GET request and decode its JSON body.

    Args:
        client: Shared async client
        url: The URL to request
        params: Optional query parameters
        retries: Extra attempts on 408/429/5xx and network errors (default: none)

    Returns:
        JsonResponse with the status code; ``data`` is None for non-2xx responses

    Raises:
        TransportError: Network failure or an undecodable 2xx body
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(retries + 1),
        wait=wait_exponential(multiplier=1, min=2, max=60),
        retry=retry_if_exception(should_retry),
        before_sleep=before_sleep_log(std_log, logging.WARNING),
        reraise=True,
    )

    try:
        async for attempt in retrying:
            with attempt:
                resp = await client.get(url, params=params)
                log.debug("http_request_done", url=url, params=params, status=resp.status_code)
                if resp.status_code in RETRYABLE_STATUS:
                    resp.raise_for_status()
    except httpx.HTTPStatusError as e:
        log.warning("http_status_error", url=url, status=e.response.status_code)
        return JsonResponse(status_code=e.response.status_code)
    except httpx.TransportError as e:
        log.error("http_network_error", url=url, error=str(e), error_type=type(e).__name__)
        raise TransportError(f"{type(e).__name__}: {e}") from e

    if not 200 <= resp.status_code < 300:
        log.warning("http_non_2xx", url=url, status=resp.status_code)
        return JsonResponse(status_code=resp.status_code)

    try:
        data = resp.json()
    except ValueError as e:
        log.error("http_json_parse_error", url=url, error=str(e), response_text=resp.text[:500])
        raise TransportError(f"invalid JSON from {url}") from e

    return JsonResponse(status_code=resp.status_code, data=data)


def get_client(mailto: str | None = None, timeout: float = 30.0) -> httpx.AsyncClient:
    """
    Create an httpx AsyncClient with sensible defaults.

    Args:
        mailto: Optional email for polite user agent
        timeout: Request timeout in seconds (default: 30)

    Returns:
        Configured httpx.AsyncClient
    """
    headers = {
        "User-Agent": (
            f"research_hubs/1.0 (mailto:{mailto})" if mailto else "research_hubs/1.0"
        )
    }

    # Requests are strictly sequential; a small pool is enough
    limits = httpx.Limits(
        max_keepalive_connections=2,
        max_connections=4,
        keepalive_expiry=30.0,
    )

    return httpx.AsyncClient(
        headers=headers,
        timeout=timeout,
        limits=limits,
        follow_redirects=True,
    )


class RequestThrottle:
    """Fixed pause inserted after every external call."""

    def __init__(self, delay_seconds: float = 0.2) -> None:
        """
        Initialize throttle.

        Args:
            delay_seconds: Seconds to sleep on each ``wait()``
        """
        self.delay_seconds = max(delay_seconds, 0.0)
        self.waits = 0

    @classmethod
    def from_milliseconds(cls, delay_ms: int) -> "RequestThrottle":
        return cls(delay_ms / 1000.0)

    async def wait(self) -> None:
        """Sleep for the configured delay."""
        self.waits += 1
        if self.delay_seconds:
            log.debug("throttle_wait", wait_time=self.delay_seconds)
            await asyncio.sleep(self.delay_seconds)
