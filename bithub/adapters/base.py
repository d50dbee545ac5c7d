from __future__ import annotations

from abc import ABC, abstractmethod

from bithub.domain import (
    CreatedPost,
    PrivateMessage,
    RemotePost,
    RemoteTopic,
    TopicDraft,
    TopicSummary,
)
from bithub.policy import TopicPolicy


class ForumAdapter(ABC):
    """Adapter interface for a Discourse-style forum.

    Validation errors are raised before anything is transmitted; remote failures
    surface as ``ServiceError`` subclasses.
    """

    @abstractmethod
    async def get_topic(self, topic_id: int) -> RemoteTopic:  # pragma: no cover - interface
        ...

    @abstractmethod
    async def get_post(self, post_id: int) -> RemotePost:  # pragma: no cover - interface
        ...

    @abstractmethod
    async def create_private_message(self, payload: PrivateMessage) -> CreatedPost:  # pragma: no cover - interface
        ...

    @abstractmethod
    async def create_topic(
        self, draft: TopicDraft, policy: TopicPolicy | None = None
    ) -> CreatedPost:  # pragma: no cover - interface
        ...

    @abstractmethod
    async def reply_to_post(
        self, topic_id: int, raw: str, reply_to_post_number: int | None = None
    ) -> CreatedPost:  # pragma: no cover - interface
        ...

    @abstractmethod
    async def create_chat_message(self, channel_id: int, message: str) -> bool:  # pragma: no cover - interface
        ...

    @abstractmethod
    async def list_category_topics(self, category_id: int) -> list[TopicSummary]:  # pragma: no cover - interface
        ...

    @abstractmethod
    async def delete_topic(self, topic_id: int) -> bool:  # pragma: no cover - interface
        ...

    async def aclose(self) -> None:
        return None
