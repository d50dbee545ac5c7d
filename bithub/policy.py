from __future__ import annotations

import re
from collections.abc import Iterable
from typing import Protocol

from bithub.domain import TopicDraft
from bithub.errors import ValidationError

_MENTION_RE = re.compile(r"(?<![\w@])@([\w-]+)")


class TopicPolicy(Protocol):
    def check(self, draft: TopicDraft) -> None:  # pragma: no cover - protocol
        ...


class GenesisPurityPolicy:
    """Reject @mentions in topics created inside the configured categories."""

    def __init__(self, category_ids: Iterable[int]) -> None:
        self.category_ids = frozenset(category_ids)

    def check(self, draft: TopicDraft) -> None:
        if draft.category_id not in self.category_ids:
            return
        mentions = _MENTION_RE.findall(draft.raw)
        if mentions:
            raise ValidationError(
                f"Genesis purity violation: category {draft.category_id} does not accept "
                f"@mentions (found: {', '.join('@' + m for m in mentions)})."
            )
