from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

NO_RESPONSE_TEXT = "No response received within timeout"


class Archetype(str, Enum):
    REGULAR = "regular"
    PRIVATE_MESSAGE = "private_message"


class RemoteTopic(BaseModel):
    """A forum topic as seen by the bridge, fetched fresh on every call."""

    id: int
    title: str | None = None
    post_stream: list[int] = Field(default_factory=list)
    first_post_id: int | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> RemoteTopic:
        stream_obj = data.get("post_stream") or {}
        posts = stream_obj.get("posts") or []
        stream = stream_obj.get("stream")
        if stream is None:
            stream = [p["id"] for p in posts if "id" in p]
        return cls(
            id=data["id"],
            title=data.get("title"),
            post_stream=sorted(int(pid) for pid in stream),
            first_post_id=posts[0].get("id") if posts else None,
        )

    @property
    def last_post_id(self) -> int | None:
        return self.post_stream[-1] if self.post_stream else None


class RemotePost(BaseModel):
    """One message in a topic. raw/cooked may still be empty right after creation."""

    id: int
    topic_id: int
    raw: str | None = None
    cooked: str | None = None
    username: str | None = None
    post_number: int | None = None

    @property
    def has_content(self) -> bool:
        return bool(self.raw or self.cooked)


class TopicSummary(BaseModel):
    id: int
    title: str | None = None


class CreatedPost(BaseModel):
    """Identifiers returned by the forum after a topic, PM or reply is created."""

    topic_id: int
    post_id: int


class PrivateMessage(BaseModel):
    recipients: list[str]
    title: str
    raw: str


class TopicDraft(BaseModel):
    title: str
    raw: str
    category_id: int | None = None


class SendResult(BaseModel):
    """Outcome of send-and-wait. A timeout is a success carrying NO_RESPONSE_TEXT."""

    success: bool
    topic_id: int | None = None
    post_id: int | None = None
    reply: RemotePost | None = None
    reply_text: str | None = None

    @property
    def timed_out(self) -> bool:
        return self.success and self.reply is None and self.reply_text == NO_RESPONSE_TEXT


class DeletionCount(BaseModel):
    deleted_count: int = Field(ge=0)


class PeerType(str, Enum):
    PERSONA = "persona"
    LLM = "llm"
    UNKNOWN = "unknown"


class PeerEntry(BaseModel):
    """A row of the swarm registry table."""

    type: PeerType
    username: str
    name: str
