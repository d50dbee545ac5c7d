from .base import ForumAdapter
from .http import HttpForumAdapter
from .mock import MockForumAdapter

__all__ = ["ForumAdapter", "HttpForumAdapter", "MockForumAdapter"]
