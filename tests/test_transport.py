from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from bithub.config import Credentials
from bithub.errors import PermanentServiceError, TransientServiceError
from bithub.transport import TransportGate, parse_retry_after


def _gate(handler, clock, **kwargs) -> TransportGate:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    creds = Credentials(base_url="https://hub.test", api_key="test-key")
    return TransportGate(creds, http_client=client, sleep_fn=clock.sleep, clock=clock, **kwargs)


@pytest.mark.asyncio
async def test_back_to_back_calls_are_spaced(fake_clock):
    starts: list[float] = []

    def handler(request: httpx.Request) -> httpx.Response:
        starts.append(fake_clock.now)
        return httpx.Response(200, json={"ok": True})

    gate = _gate(handler, fake_clock, min_interval_s=1.2)
    for i in range(4):
        await gate.execute("GET", f"/t/{i}.json")

    assert len(starts) == 4
    for earlier, later in zip(starts, starts[1:]):
        assert later - earlier >= 1.2 - 1e-9


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_pacing_clock(fake_clock):
    starts: list[float] = []

    def handler(request: httpx.Request) -> httpx.Response:
        starts.append(fake_clock.now)
        return httpx.Response(200, json={})

    gate = _gate(handler, fake_clock, min_interval_s=1.2)
    await asyncio.gather(*(gate.execute("GET", f"/posts/{i}.json") for i in range(3)))

    starts.sort()
    assert len(starts) == 3
    for earlier, later in zip(starts, starts[1:]):
        assert later - earlier >= 1.2 - 1e-9


@pytest.mark.asyncio
async def test_429_honors_retry_after_without_consuming_attempt(fake_clock):
    responses = [
        httpx.Response(429, headers={"Retry-After": "2"}),
        httpx.Response(200, json={"id": 1}),
    ]
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return responses[len(calls) - 1]

    gate = _gate(handler, fake_clock)
    # a single attempt would be exhausted if the 429 counted against it
    result = await gate.execute("GET", "/t/1.json", max_retries=1)

    assert result == {"id": 1}
    assert len(calls) == 2
    assert fake_clock.sleeps == [2.0]


@pytest.mark.asyncio
async def test_429_without_hint_waits_default(fake_clock):
    responses = [httpx.Response(429), httpx.Response(200, json={})]
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return responses[len(calls) - 1]

    gate = _gate(handler, fake_clock, default_retry_after_s=5.0)
    await gate.execute("GET", "/t/1.json")
    assert fake_clock.sleeps == [5.0]


@pytest.mark.asyncio
async def test_persistent_500_raises_after_max_retries(fake_clock):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(500, text="boom")

    gate = _gate(handler, fake_clock, min_interval_s=0, max_retries=3, backoff_base_s=1.0)
    with pytest.raises(PermanentServiceError) as excinfo:
        await gate.execute("GET", "/t/1.json")

    assert excinfo.value.status_code == 500
    assert excinfo.value.body == "boom"
    assert len(calls) == 3
    assert fake_clock.sleeps == [1.0, 2.0]


@pytest.mark.asyncio
async def test_network_error_is_retried_then_succeeds(fake_clock):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if len(calls) == 1:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json={"id": 9})

    gate = _gate(handler, fake_clock, min_interval_s=0)
    assert await gate.execute("GET", "/posts/9.json") == {"id": 9}
    assert fake_clock.sleeps == [1.0]


@pytest.mark.asyncio
async def test_network_error_exhausts_as_transient(fake_clock):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    gate = _gate(handler, fake_clock, min_interval_s=0, max_retries=2)
    with pytest.raises(TransientServiceError):
        await gate.execute("GET", "/posts/9.json")


@pytest.mark.asyncio
async def test_request_carries_headers_and_json_body(fake_clock):
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id": 5, "topic_id": 3})

    gate = _gate(handler, fake_clock, client_id="Bithub-Bridge/test")
    await gate.execute("POST", "/posts.json", {"raw": "hello"})

    request = seen[0]
    assert str(request.url) == "https://hub.test/posts.json"
    assert request.method == "POST"
    assert request.headers["User-Api-Key"] == "test-key"
    assert request.headers["Content-Type"] == "application/json"
    assert request.headers["User-Agent"] == "Bithub-Bridge/test"
    assert json.loads(request.content) == {"raw": "hello"}


@pytest.mark.asyncio
async def test_empty_body_decodes_to_empty_dict(fake_clock):
    gate = _gate(lambda request: httpx.Response(200), fake_clock)
    assert await gate.execute("DELETE", "/t/4.json") == {}


@pytest.mark.asyncio
async def test_non_json_success_body_is_a_retried_service_error(fake_clock):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if len(calls) == 1:
            return httpx.Response(200, text="<html>maintenance</html>")
        return httpx.Response(200, json={"id": 7})

    gate = _gate(handler, fake_clock, min_interval_s=0)
    assert await gate.execute("GET", "/t/7.json") == {"id": 7}
    assert fake_clock.sleeps == [1.0]

    calls.clear()
    single = _gate(handler, fake_clock, min_interval_s=0, max_retries=1)
    with pytest.raises(PermanentServiceError) as excinfo:
        await single.execute("GET", "/t/7.json")
    assert excinfo.value.status_code == 200
    assert "maintenance" in excinfo.value.body


def test_parse_retry_after():
    assert parse_retry_after("3", 5.0) == 3.0
    assert parse_retry_after(None, 5.0) == 5.0
    assert parse_retry_after("soon", 5.0) == 5.0
    assert parse_retry_after("-1", 5.0) == 5.0
