"""Tests for the request throttle and JSON GET helper."""

import asyncio
import time

import httpx
import pytest

from research_hubs.core.errors import TransportError
from research_hubs.utils.http import RequestThrottle, get_client, get_json, should_retry


@pytest.mark.asyncio
async def test_throttle_basic() -> None:
    """Each wait sleeps for the configured delay."""
    throttle = RequestThrottle.from_milliseconds(200)

    start = time.time()
    await throttle.wait()
    await throttle.wait()
    elapsed = time.time() - start

    # Two waits of 0.2s each
    assert elapsed >= 0.4, f"Throttle too fast: {elapsed}s"
    assert elapsed < 0.8, f"Throttle too slow: {elapsed}s"
    assert throttle.waits == 2


@pytest.mark.asyncio
async def test_zero_delay_does_not_sleep(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fail_sleep(delay: float) -> None:
        raise AssertionError("sleep should not be called")

    monkeypatch.setattr(asyncio, "sleep", fail_sleep)
    throttle = RequestThrottle(0)
    await throttle.wait()
    assert throttle.waits == 1


def test_negative_delay_is_clamped() -> None:
    assert RequestThrottle(-1).delay_seconds == 0.0


def test_throttle_across_asyncio_run_calls() -> None:
    """
    The throttle holds no loop-bound state, so the CLI can reuse it
    across several asyncio.run() calls.
    """
    throttle = RequestThrottle(0.01)
    asyncio.run(throttle.wait())
    asyncio.run(throttle.wait())
    assert throttle.waits == 2


def test_should_retry() -> None:
    request = httpx.Request("GET", "https://api.openalex.org/works")
    retryable = httpx.HTTPStatusError("x", request=request, response=httpx.Response(503))
    final = httpx.HTTPStatusError("x", request=request, response=httpx.Response(404))
    assert should_retry(retryable)
    assert not should_retry(final)
    assert should_retry(httpx.ConnectError("boom"))
    assert not should_retry(ValueError("nope"))


@pytest.mark.asyncio
async def test_get_json_non_2xx_has_no_data() -> None:
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(404)))
    resp = await get_json(client, "https://api.openalex.org/works/W1")
    assert resp.status_code == 404
    assert not resp.ok
    assert resp.data is None


@pytest.mark.asyncio
async def test_get_json_network_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    with pytest.raises(TransportError):
        await get_json(client, "https://api.openalex.org/works/W1")


@pytest.mark.asyncio
async def test_client_user_agent() -> None:
    async with get_client(mailto="me@example.org") as client:
        assert client.headers["User-Agent"] == "research_hubs/1.0 (mailto:me@example.org)"
    async with get_client() as client:
        assert client.headers["User-Agent"] == "research_hubs/1.0"
