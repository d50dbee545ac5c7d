"""Bithub Bridge - forum API adapter for conversational agents.

This package turns agent commands into calls against a Discourse-style forum
(topics, posts, private messages, chat channels, categories). Every outbound
call goes through a single paced, retrying transport gate; "ask and wait"
commands poll the created topic until a reply shows up or a deadline passes.
"""

__all__ = [
    "__version__",
]

__version__ = "0.1.0"
