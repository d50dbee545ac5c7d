from __future__ import annotations

import httpx
import pytest

from bithub.adapters.http import HttpForumAdapter
from bithub.adapters.mock import MockForumAdapter
from bithub.config import Credentials, Settings
from bithub.domain import PrivateMessage, RemoteTopic
from bithub.errors import TransientServiceError
from bithub.poller import PollState, ReplyPoller
from bithub.transport import TransportGate


def _settings(**overrides) -> Settings:
    defaults = dict(POLL_INTERVAL_S=5.0, SETTLE_DELAY_MS=1000, CONTENT_RETRY_DELAY_MS=2000)
    defaults.update(overrides)
    return Settings(**defaults)


async def _open_pm(adapter: MockForumAdapter):
    return await adapter.create_private_message(
        PrivateMessage(recipients=["@peer"], title="Query", raw="What is new?")
    )


@pytest.mark.asyncio
async def test_detects_new_post_and_waits_for_content(fake_clock):
    settings = _settings()
    adapter = MockForumAdapter(settings, auto_reply="All nominal.", reply_after_polls=2, render_lag=1)
    created = await _open_pm(adapter)
    poller = ReplyPoller(adapter, settings, sleep_fn=fake_clock.sleep, clock=fake_clock)

    post = await poller.wait_for_reply(created.topic_id, created.post_id, timeout_s=60)

    assert post is not None
    assert post.id == created.post_id + 1
    assert post.raw == "All nominal."
    # one poll interval, one settle delay, one content retry delay
    assert fake_clock.sleeps == [5.0, 1.0, 2.0]
    assert adapter.calls.count("get_post") == 2
    assert poller.state is PollState.DONE


@pytest.mark.asyncio
async def test_times_out_when_stream_never_advances(fake_clock):
    settings = _settings()
    adapter = MockForumAdapter(settings)
    created = await _open_pm(adapter)
    poller = ReplyPoller(adapter, settings, sleep_fn=fake_clock.sleep, clock=fake_clock)

    post = await poller.wait_for_reply(created.topic_id, created.post_id, timeout_s=1)

    assert post is None
    assert poller.state is PollState.TIMED_OUT
    # the wait is capped at the deadline, not the full poll interval
    assert sum(fake_clock.sleeps) <= 1.0


@pytest.mark.asyncio
async def test_returns_empty_post_when_deadline_hits_during_render(fake_clock):
    settings = _settings()
    adapter = MockForumAdapter(settings, auto_reply="late", reply_after_polls=1, render_lag=100)
    created = await _open_pm(adapter)
    poller = ReplyPoller(adapter, settings, sleep_fn=fake_clock.sleep, clock=fake_clock)

    post = await poller.wait_for_reply(created.topic_id, created.post_id, timeout_s=10)

    assert post is not None
    assert post.has_content is False
    assert fake_clock.now - 1000.0 < 10 + settings.CONTENT_RETRY_DELAY_MS / 1000.0 + 1e-9


@pytest.mark.asyncio
async def test_fetch_errors_do_not_abort_polling(fake_clock):
    settings = _settings()

    class FlakyForum(MockForumAdapter):
        failures = 2

        async def get_topic(self, topic_id: int) -> RemoteTopic:
            if self.failures:
                self.failures -= 1
                raise TransientServiceError("connection reset")
            return await super().get_topic(topic_id)

    adapter = FlakyForum(settings, auto_reply="Back online.", reply_after_polls=1)
    created = await _open_pm(adapter)
    poller = ReplyPoller(adapter, settings, sleep_fn=fake_clock.sleep, clock=fake_clock)

    post = await poller.wait_for_reply(created.topic_id, created.post_id, timeout_s=60)

    assert post is not None and post.raw == "Back online."
    assert fake_clock.sleeps[:2] == [5.0, 5.0]


@pytest.mark.asyncio
@pytest.mark.parametrize("topic_id", [None, 0, -1])
async def test_invalid_topic_id_returns_none(topic_id, fake_clock):
    settings = _settings()
    adapter = MockForumAdapter(settings)
    poller = ReplyPoller(adapter, settings, sleep_fn=fake_clock.sleep, clock=fake_clock)

    assert await poller.wait_for_reply(topic_id, 1) is None
    assert adapter.calls == []


@pytest.mark.asyncio
async def test_garbled_topic_responses_do_not_abort_polling(fake_clock):
    settings = _settings()
    topic_answers = [
        httpx.Response(200, text="<html>maintenance</html>"),
        httpx.Response(200, json={"title": "half-rendered"}),
    ]
    topic_calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/t/7.json":
            topic_calls.append(request)
            if topic_answers:
                return topic_answers.pop(0)
            return httpx.Response(200, json={"id": 7, "post_stream": {"stream": [10, 11]}})
        return httpx.Response(200, json={"id": 11, "topic_id": 7, "raw": "pong", "cooked": "<p>pong</p>"})

    gate = TransportGate(
        Credentials(base_url="https://hub.test", api_key="k"),
        min_interval_s=0,
        max_retries=1,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        sleep_fn=fake_clock.sleep,
        clock=fake_clock,
    )
    poller = ReplyPoller(HttpForumAdapter(gate), settings, sleep_fn=fake_clock.sleep, clock=fake_clock)

    post = await poller.wait_for_reply(7, 10, timeout_s=60)

    assert post is not None and post.id == 11
    assert post.raw == "pong"
    assert len(topic_calls) == 3
    assert fake_clock.sleeps == [5.0, 5.0, 1.0]
    assert poller.state is PollState.DONE
