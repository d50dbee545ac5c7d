from __future__ import annotations

import itertools
from dataclasses import dataclass, field

from bithub.adapters.base import ForumAdapter
from bithub.config import Settings
from bithub.domain import CreatedPost, PrivateMessage, RemotePost, RemoteTopic, TopicDraft, TopicSummary
from bithub.errors import PermanentServiceError
from bithub.logging_setup import get_logger
from bithub.policy import TopicPolicy
from bithub.validation import (
    check_chat_message,
    check_content,
    check_positive_id,
    check_private_message,
    check_topic,
)


@dataclass
class _Topic:
    id: int
    title: str
    category_id: int | None
    post_ids: list[int] = field(default_factory=list)
    # Scripted reply: (text, get_topic calls remaining before it appears)
    pending_reply: tuple[str, int] | None = None


class MockForumAdapter(ForumAdapter):
    """In-memory forum for offline runs and tests.

    - Optionally answers every private message with ``auto_reply`` after
      ``reply_after_polls`` topic fetches
    - Simulates rendering lag: new replies return empty content for the first
      ``render_lag`` post fetches
    - ``fail_deletes`` makes delete_topic fail with a 500 for the listed ids
    """

    def __init__(
        self,
        settings: Settings,
        *,
        auto_reply: str | None = None,
        reply_after_polls: int = 1,
        render_lag: int = 0,
        reply_username: str = "swarm_peer",
    ) -> None:
        self.settings = settings
        self.auto_reply = auto_reply
        self.reply_after_polls = reply_after_polls
        self.render_lag = render_lag
        self.reply_username = reply_username
        self.fail_deletes: set[int] = set()
        self._logger = get_logger(self.__class__.__name__)

        self._topic_ids = itertools.count(1)
        self._post_ids = itertools.count(1)
        self._topics: dict[int, _Topic] = {}
        self._posts: dict[int, RemotePost] = {}
        self._unrendered: dict[int, int] = {}
        self.chat_log: dict[int, list[str]] = {}
        self.calls: list[str] = []

    # Public API -----------------------------------------------------------------
    async def get_topic(self, topic_id: int) -> RemoteTopic:
        self.calls.append("get_topic")
        topic = self._require_topic(topic_id)
        self._advance_pending_reply(topic)
        return RemoteTopic(
            id=topic.id,
            title=topic.title,
            post_stream=list(topic.post_ids),
            first_post_id=topic.post_ids[0] if topic.post_ids else None,
        )

    async def get_post(self, post_id: int) -> RemotePost:
        self.calls.append("get_post")
        post = self._posts.get(post_id)
        if post is None:
            raise PermanentServiceError(404, f"post {post_id} not found")
        lag = self._unrendered.get(post_id, 0)
        if lag > 0:
            self._unrendered[post_id] = lag - 1
            return post.model_copy(update={"raw": None, "cooked": None})
        return post

    async def create_private_message(self, payload: PrivateMessage) -> CreatedPost:
        recipients = check_private_message(payload, self.settings.MAX_CONTENT_LENGTH)
        self.calls.append("create_private_message")
        created = self._new_topic(payload.title, payload.raw, category_id=None)
        if self.auto_reply is not None:
            self._topics[created.topic_id].pending_reply = (self.auto_reply, self.reply_after_polls)
        self._logger.info("PM %s -> %s", created.topic_id, ",".join(recipients))
        return created

    async def create_topic(self, draft: TopicDraft, policy: TopicPolicy | None = None) -> CreatedPost:
        category_id = check_topic(draft, self.settings.MAX_CONTENT_LENGTH)
        if policy is not None:
            policy.check(draft)
        self.calls.append("create_topic")
        return self._new_topic(draft.title, draft.raw, category_id=category_id)

    async def reply_to_post(
        self, topic_id: int, raw: str, reply_to_post_number: int | None = None
    ) -> CreatedPost:
        check_positive_id(topic_id, "Topic id")
        check_content(raw, self.settings.MAX_CONTENT_LENGTH)
        self.calls.append("reply_to_post")
        topic = self._require_topic(topic_id)
        post = self._append_post(topic, raw, username="bridge")
        return CreatedPost(topic_id=topic.id, post_id=post.id)

    async def create_chat_message(self, channel_id: int, message: str) -> bool:
        check_chat_message(channel_id, message)
        self.calls.append("create_chat_message")
        self.chat_log.setdefault(channel_id, []).append(message)
        return True

    async def list_category_topics(self, category_id: int) -> list[TopicSummary]:
        check_positive_id(category_id, "Category id")
        self.calls.append("list_category_topics")
        return [
            TopicSummary(id=t.id, title=t.title)
            for t in self._topics.values()
            if t.category_id == category_id
        ]

    async def delete_topic(self, topic_id: int) -> bool:
        self.calls.append("delete_topic")
        if topic_id in self.fail_deletes:
            raise PermanentServiceError(500, f"cannot delete topic {topic_id}")
        topic = self._require_topic(topic_id)
        for pid in topic.post_ids:
            self._posts.pop(pid, None)
        del self._topics[topic_id]
        return True

    # Introspection helpers for tests -------------------------------------------
    def seed_topic(self, title: str, raw: str, *, category_id: int | None = None) -> CreatedPost:
        return self._new_topic(title, raw, category_id=category_id)

    def get_state_snapshot(self) -> dict[str, int]:
        return {
            "topics": len(self._topics),
            "posts": len(self._posts),
            "chat_messages": sum(len(v) for v in self.chat_log.values()),
        }

    # Internals -----------------------------------------------------------------
    def _require_topic(self, topic_id: int) -> _Topic:
        topic = self._topics.get(topic_id)
        if topic is None:
            raise PermanentServiceError(404, f"topic {topic_id} not found")
        return topic

    def _new_topic(self, title: str, raw: str, *, category_id: int | None) -> CreatedPost:
        topic = _Topic(id=next(self._topic_ids), title=title, category_id=category_id)
        self._topics[topic.id] = topic
        post = self._append_post(topic, raw, username="bridge")
        return CreatedPost(topic_id=topic.id, post_id=post.id)

    def _append_post(self, topic: _Topic, raw: str, *, username: str) -> RemotePost:
        post = RemotePost(
            id=next(self._post_ids),
            topic_id=topic.id,
            raw=raw,
            cooked=f"<p>{raw}</p>",
            username=username,
            post_number=len(topic.post_ids) + 1,
        )
        self._posts[post.id] = post
        topic.post_ids.append(post.id)
        return post

    def _advance_pending_reply(self, topic: _Topic) -> None:
        if topic.pending_reply is None:
            return
        text, remaining = topic.pending_reply
        if remaining > 1:
            topic.pending_reply = (text, remaining - 1)
            return
        topic.pending_reply = None
        post = self._append_post(topic, text, username=self.reply_username)
        if self.render_lag > 0:
            self._unrendered[post.id] = self.render_lag
