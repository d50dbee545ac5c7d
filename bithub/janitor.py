from __future__ import annotations

from bithub.adapters.base import ForumAdapter
from bithub.domain import DeletionCount
from bithub.logging_setup import get_logger


class Janitor:
    """Bulk cleanup of forum categories."""

    def __init__(self, adapter: ForumAdapter) -> None:
        self.adapter = adapter
        self._logger = get_logger(self.__class__.__name__)

    async def nuke_category(self, category_id: int) -> DeletionCount:
        """Delete every topic listed in ``category_id``, one at a time.

        The count is the number of topics listed. A failed delete propagates
        and the remaining topics are left untouched.
        """
        topics = await self.adapter.list_category_topics(category_id)
        self._logger.info("Nuking %d topic(s) in category %s", len(topics), category_id)
        for topic in topics:
            await self.adapter.delete_topic(topic.id)
            self._logger.info("Deleted topic %s (%s)", topic.id, topic.title or "untitled")
        return DeletionCount(deleted_count=len(topics))
