from __future__ import annotations

import asyncio
import time
from enum import Enum

from bithub.adapters.base import ForumAdapter
from bithub.config import Settings
from bithub.domain import RemotePost
from bithub.errors import ServiceError
from bithub.logging_setup import get_logger
from bithub.transport import ClockFn, SleepFn


class PollState(str, Enum):
    WAITING = "waiting"
    FETCHING_CONTENT = "fetching_content"
    DONE = "done"
    TIMED_OUT = "timed_out"


class ReplyPoller:
    """Waits for a new post to appear in a topic, bounded by a wall-clock deadline.

    The forum has no push notifications, so the topic's post stream is polled.
    Every wait is preceded by a deadline check; a slow call can overrun the
    deadline by at most one poll/settle/retry cycle.
    """

    def __init__(
        self,
        adapter: ForumAdapter,
        settings: Settings,
        *,
        sleep_fn: SleepFn | None = None,
        clock: ClockFn | None = None,
    ) -> None:
        self.adapter = adapter
        self.poll_interval_s = settings.POLL_INTERVAL_S
        self.settle_delay_s = settings.SETTLE_DELAY_MS / 1000.0
        self.retry_delay_s = settings.CONTENT_RETRY_DELAY_MS / 1000.0
        self.default_timeout_s = settings.REPLY_TIMEOUT_S
        self._sleep = sleep_fn or asyncio.sleep
        self._clock = clock or time.monotonic
        self._logger = get_logger(self.__class__.__name__)
        self.state = PollState.WAITING

    async def wait_for_reply(
        self,
        topic_id: int | None,
        baseline_post_id: int,
        timeout_s: float | None = None,
    ) -> RemotePost | None:
        """Return the first post newer than ``baseline_post_id``, or None on timeout.

        The returned post may have empty content if the deadline passed while
        the forum was still rendering it.
        """
        if not topic_id or topic_id <= 0:
            self._logger.warning("Invalid topic id %r; not polling for a reply", topic_id)
            return None

        timeout = self.default_timeout_s if timeout_s is None else timeout_s
        start = self._clock()
        deadline = start + timeout
        self.state = PollState.WAITING
        self._logger.info("Polling topic %s for a reply after post %s", topic_id, baseline_post_id)

        while self._clock() < deadline:
            try:
                topic = await self.adapter.get_topic(topic_id)
                new_post_id = topic.last_post_id
                if new_post_id is not None and new_post_id > baseline_post_id:
                    self._logger.info("New reply detected in topic %s: post %s", topic_id, new_post_id)
                    return await self._fetch_content(new_post_id, start, deadline)
            except ServiceError as exc:
                self._logger.error("Error while polling topic %s: %s", topic_id, exc)

            remaining = deadline - self._clock()
            if remaining <= 0:
                break
            await self._sleep(min(self.poll_interval_s, remaining))

        self.state = PollState.TIMED_OUT
        self._logger.info("Timeout reached waiting for a reply in topic %s", topic_id)
        return None

    async def _fetch_content(self, post_id: int, start: float, deadline: float) -> RemotePost:
        self.state = PollState.FETCHING_CONTENT
        # Rendering lags behind the post stream.
        await self._sleep(self.settle_delay_s)
        post = await self.adapter.get_post(post_id)

        retries = 0
        while not post.has_content and self._clock() < deadline:
            retries += 1
            self._logger.info(
                "Post %s content still loading, retrying (attempt %d, %.1fs elapsed)",
                post_id,
                retries,
                self._clock() - start,
            )
            await self._sleep(self.retry_delay_s)
            post = await self.adapter.get_post(post_id)

        elapsed = self._clock() - start
        if post.has_content:
            self._logger.info(
                "Post %s content loaded after %d retries (%.1fs total)", post_id, retries, elapsed
            )
        else:
            self._logger.warning(
                "Post %s content still empty after %.1fs (%d retries, timeout reached)",
                post_id,
                elapsed,
                retries,
            )
        self.state = PollState.DONE
        return post
