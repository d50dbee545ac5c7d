from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

import pydantic

from bithub.adapters.base import ForumAdapter
from bithub.domain import (
    Archetype,
    CreatedPost,
    PrivateMessage,
    RemotePost,
    RemoteTopic,
    TopicDraft,
    TopicSummary,
)
from bithub.errors import MalformedResponseError
from bithub.policy import TopicPolicy
from bithub.transport import TransportGate
from bithub.validation import (
    check_chat_message,
    check_content,
    check_positive_id,
    check_private_message,
    check_topic,
)

T = TypeVar("T")


def _decode(build: Callable[[Any], T], data: Any, what: str) -> T:
    try:
        return build(data)
    except (KeyError, TypeError, AttributeError, ValueError, pydantic.ValidationError) as exc:
        raise MalformedResponseError(f"Unexpected {what} payload: {exc!r}") from exc


def _created(resp: Any) -> CreatedPost:
    return _decode(lambda d: CreatedPost(topic_id=d["topic_id"], post_id=d["id"]), resp, "created post")


def _topic_summaries(data: Any) -> list[TopicSummary]:
    topics = (data.get("topic_list") or {}).get("topics") or []
    return [TopicSummary(id=t["id"], title=t.get("title")) for t in topics]


class HttpForumAdapter(ForumAdapter):
    """Forum adapter speaking the Discourse JSON API through a TransportGate."""

    def __init__(self, gate: TransportGate, *, max_content_length: int = 32000) -> None:
        self.gate = gate
        self.max_content_length = max_content_length

    async def get_topic(self, topic_id: int) -> RemoteTopic:
        data = await self.gate.execute("GET", f"/t/{topic_id}.json")
        return _decode(RemoteTopic.from_api, data, "topic")

    async def get_post(self, post_id: int) -> RemotePost:
        data = await self.gate.execute("GET", f"/posts/{post_id}.json")
        return _decode(RemotePost.model_validate, data, "post")

    async def create_private_message(self, payload: PrivateMessage) -> CreatedPost:
        recipients = check_private_message(payload, self.max_content_length)
        body = {
            "title": payload.title,
            "raw": payload.raw,
            "archetype": Archetype.PRIVATE_MESSAGE.value,
            "target_recipients": ",".join(recipients),
        }
        return _created(await self.gate.execute("POST", "/posts.json", body))

    async def create_topic(self, draft: TopicDraft, policy: TopicPolicy | None = None) -> CreatedPost:
        category_id = check_topic(draft, self.max_content_length)
        if policy is not None:
            policy.check(draft)
        body = {
            "title": draft.title,
            "raw": draft.raw,
            "category": category_id,
            "archetype": Archetype.REGULAR.value,
        }
        return _created(await self.gate.execute("POST", "/posts.json", body))

    async def reply_to_post(
        self, topic_id: int, raw: str, reply_to_post_number: int | None = None
    ) -> CreatedPost:
        check_positive_id(topic_id, "Topic id")
        check_content(raw, self.max_content_length)
        body: dict[str, Any] = {"topic_id": topic_id, "raw": raw}
        if reply_to_post_number is not None:
            body["reply_to_post_number"] = reply_to_post_number
        return _created(await self.gate.execute("POST", "/posts.json", body))

    async def create_chat_message(self, channel_id: int, message: str) -> bool:
        check_chat_message(channel_id, message)
        await self.gate.execute("POST", f"/chat/{channel_id}.json", {"message": message})
        return True

    async def list_category_topics(self, category_id: int) -> list[TopicSummary]:
        check_positive_id(category_id, "Category id")
        data = await self.gate.execute("GET", f"/c/{category_id}.json")
        return _decode(_topic_summaries, data, "category")

    async def delete_topic(self, topic_id: int) -> bool:
        await self.gate.execute("DELETE", f"/t/{topic_id}.json")
        return True

    async def aclose(self) -> None:
        await self.gate.aclose()
