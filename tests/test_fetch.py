"""Tests for the resilient fetch layer (deadline, retry with backoff, JSON client)."""
import asyncio

import httpx
import pytest

from supmap.core.errors import FetchTimeoutError, NetworkError
from supmap.providers.http import HTTPClient, fetch_with_retry, fetch_with_timeout


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


@pytest.mark.asyncio
async def test_retry_makes_max_retries_plus_one_attempts():
    attempts = 0
    sleep = RecordingSleep()

    async def always_fails():
        nonlocal attempts
        attempts += 1
        raise ConnectionError("connection refused")

    with pytest.raises(ConnectionError):
        await fetch_with_retry(always_fails, max_retries=2, initial_delay_s=0.5, sleep=sleep)

    assert attempts == 3
    assert sleep.delays == [0.5, 1.0]


@pytest.mark.asyncio
async def test_retry_returns_first_success():
    attempts = 0
    sleep = RecordingSleep()

    async def flaky():
        nonlocal attempts
        attempts += 1
        if attempts < 2:
            raise ConnectionError("reset")
        return "ok"

    assert await fetch_with_retry(flaky, max_retries=2, initial_delay_s=0.5, sleep=sleep) == "ok"
    assert attempts == 2
    assert sleep.delays == [0.5]


@pytest.mark.asyncio
async def test_zero_retries_means_single_attempt():
    attempts = 0

    async def fails():
        nonlocal attempts
        attempts += 1
        raise ValueError("bad")

    with pytest.raises(ValueError):
        await fetch_with_retry(fails, max_retries=0, initial_delay_s=0.5, sleep=RecordingSleep())
    assert attempts == 1


@pytest.mark.asyncio
async def test_timeout_aborts_slow_request():
    async def slow(request):
        await asyncio.sleep(5)
        return httpx.Response(200, json={})

    async with httpx.AsyncClient(transport=httpx.MockTransport(slow)) as client:
        request = client.build_request("GET", "http://slow.test/")
        with pytest.raises(FetchTimeoutError):
            await fetch_with_timeout(client, request, timeout_s=0.05)


def test_fetch_timeout_is_a_timeout_error():
    assert issubclass(FetchTimeoutError, TimeoutError)


@pytest.mark.asyncio
async def test_client_returns_json_and_drops_none_params():
    seen = {}

    def handler(request):
        seen["params"] = dict(request.url.params)
        seen["ua"] = request.headers["user-agent"]
        return httpx.Response(200, json={"ok": True})

    async with HTTPClient(
        user_agent="supmap-tests",
        base_url="http://api.test",
        max_retries=0,
        transport=httpx.MockTransport(handler),
    ) as http:
        data = await http.get_json("/thing", params={"a": 1, "b": None})

    assert data == {"ok": True}
    assert seen["params"] == {"a": "1"}
    assert seen["ua"] == "supmap-tests"


@pytest.mark.asyncio
async def test_client_wraps_http_errors_after_retries():
    calls = 0

    def handler(request):
        nonlocal calls
        calls += 1
        return httpx.Response(500, text="boom")

    http = HTTPClient(
        user_agent="supmap-tests",
        base_url="http://api.test",
        max_retries=1,
        initial_delay_s=0.0,
        transport=httpx.MockTransport(handler),
    )
    with pytest.raises(NetworkError):
        await http.post_json("/route", {"x": 1})
    await http.aclose()
    assert calls == 2


@pytest.mark.asyncio
async def test_client_empty_body_is_none():
    http = HTTPClient(
        user_agent="supmap-tests",
        base_url="http://api.test",
        max_retries=0,
        transport=httpx.MockTransport(lambda request: httpx.Response(204)),
    )
    assert await http.put_json("/status", {"isActive": False}) is None
    await http.aclose()
