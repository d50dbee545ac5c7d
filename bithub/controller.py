from __future__ import annotations

import asyncio
import time

from bithub.adapters.base import ForumAdapter
from bithub.config import Settings
from bithub.directory import PeerDirectory, parse_registry_table
from bithub.domain import (
    NO_RESPONSE_TEXT,
    CreatedPost,
    PeerEntry,
    PrivateMessage,
    SendResult,
    TopicDraft,
)
from bithub.errors import ServiceError
from bithub.logging_setup import get_logger
from bithub.poller import ReplyPoller
from bithub.sanitize import sanitize_html
from bithub.transport import ClockFn, SleepFn
from bithub.validation import normalize_handle


class Controller:
    """Composes adapter calls into the multi-step flows the command layer needs."""

    def __init__(
        self,
        adapter: ForumAdapter,
        settings: Settings,
        sleep_fn: SleepFn | None = None,
        clock: ClockFn | None = None,
    ) -> None:
        self.adapter = adapter
        self.settings = settings
        self._sleep = sleep_fn or asyncio.sleep
        self._clock = clock or time.monotonic
        self._logger = get_logger(self.__class__.__name__)

    async def send_private_message_and_wait(
        self,
        payload: PrivateMessage,
        *,
        wait_for_response: bool = False,
        timeout_s: float | None = None,
    ) -> SendResult:
        """Send a PM and optionally wait for the first reply.

        A remote failure while creating the PM yields ``success=False``; a
        timeout while waiting is a success carrying NO_RESPONSE_TEXT.
        Validation errors propagate.
        """
        try:
            created = await self.adapter.create_private_message(payload)
        except ServiceError as exc:
            self._logger.error("Private message creation failed: %s", exc)
            return SendResult(success=False)

        if not wait_for_response:
            return SendResult(success=True, topic_id=created.topic_id, post_id=created.post_id)

        timeout = self.settings.REPLY_TIMEOUT_S if timeout_s is None else timeout_s
        self._logger.info(
            "Waiting for swarm response (topic: %s, timeout: %ss)", created.topic_id, timeout
        )
        # Let the forum finish materializing the topic before the first poll.
        await self._sleep(self.settings.PRE_POLL_DELAY_MS / 1000.0)
        # One poller per wait; its state belongs to this flow only.
        poller = ReplyPoller(self.adapter, self.settings, sleep_fn=self._sleep, clock=self._clock)
        reply = await poller.wait_for_reply(created.topic_id, created.post_id, timeout)

        if reply is None:
            return SendResult(
                success=True,
                topic_id=created.topic_id,
                post_id=created.post_id,
                reply_text=NO_RESPONSE_TEXT,
            )
        return SendResult(
            success=True,
            topic_id=created.topic_id,
            post_id=created.post_id,
            reply=reply,
            reply_text=sanitize_html(reply.cooked or reply.raw or ""),
        )

    async def send_handshake(
        self,
        target: str,
        content: str,
        *,
        category_id: int | None = None,
        directory: PeerDirectory | None = None,
    ) -> CreatedPost:
        """Open a regular topic addressed to ``target`` in its routed category."""
        handle = normalize_handle(target)
        if category_id is None:
            category_id = (
                directory.resolve_category_id(handle)
                if directory is not None
                else self.settings.HANDSHAKE_CATEGORY_ID
            )
        draft = TopicDraft(title=f"Swarm Handshake to @{handle}", raw=content, category_id=category_id)
        return await self.adapter.create_topic(draft)

    async def fetch_registry(self, topic_id: int | None = None) -> list[PeerEntry]:
        """Read the swarm registry table from the first post of the registry topic."""
        topic = await self.adapter.get_topic(topic_id or self.settings.REGISTRY_TOPIC_ID)
        first_post_id = topic.first_post_id or (topic.post_stream[0] if topic.post_stream else None)
        if first_post_id is None:
            return []
        post = await self.adapter.get_post(first_post_id)
        return parse_registry_table(post.raw or "")
