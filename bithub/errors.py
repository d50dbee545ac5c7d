from __future__ import annotations


class BithubError(Exception):
    """Base class for every error raised by the bridge."""


class ConfigurationError(BithubError):
    """Missing credential or malformed base URL. Fatal at initialization."""


class ValidationError(BithubError):
    """A payload was rejected locally, before any network call."""


class ServiceError(BithubError):
    """The remote forum could not fulfil a request."""


class TransientServiceError(ServiceError):
    """Network-level failure that outlived the retry budget."""


class PermanentServiceError(ServiceError):
    """Non-2xx response that persisted across retries."""

    def __init__(self, status_code: int, body: str = "") -> None:
        super().__init__(f"Bithub API error ({status_code}): {body}")
        self.status_code = status_code
        self.body = body


class MalformedResponseError(ServiceError):
    """A 2xx response whose body does not have the expected shape."""
