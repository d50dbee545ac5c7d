from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from bithub.errors import ConfigurationError


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Adapter + credentials
    ADAPTER: str = Field(default="http")
    BITHUB_URL: str = Field(default="https://hub.bitwiki.org")
    BITHUB_USER_API_KEY: str = Field(default="")
    CLIENT_ID: str = Field(default="Bithub-Bridge/0.1")

    # Transport gate
    SYNAPTIC_INTERVAL_MS: int = Field(default=1200)
    MAX_RETRIES: int = Field(default=3)
    BACKOFF_BASE_S: float = Field(default=1.0)
    DEFAULT_RETRY_AFTER_S: float = Field(default=5.0)
    REQUEST_TIMEOUT_S: float = Field(default=30.0)

    # Payload limits
    MAX_CONTENT_LENGTH: int = Field(default=32000)

    # Reply polling
    REPLY_TIMEOUT_S: float = Field(default=60)
    POLL_INTERVAL_S: float = Field(default=5.0)
    SETTLE_DELAY_MS: int = Field(default=1000)
    CONTENT_RETRY_DELAY_MS: int = Field(default=2000)
    PRE_POLL_DELAY_MS: int = Field(default=2000)

    # Routing and registries
    HANDSHAKE_CATEGORY_ID: int = Field(default=2)
    REGISTRY_TOPIC_ID: int = Field(default=30145)
    GENESIS_CATEGORY_IDS: list[int] = Field(default_factory=list)
    RESOURCES_DIR: Path = Field(default=Path("resources"))
    DIRECTORY_TTL_S: float = Field(default=3600)

    # Global behavior
    LOG_JSON: bool = Field(default=False)
    LOG_LEVEL: str = Field(default="INFO")
    JANITOR_CRON: str = Field(default="0 3 * * *")

    @field_validator("BITHUB_URL", mode="before")
    @classmethod
    def _strip_trailing_slash(cls, v):  # type: ignore[override]
        return str(v).strip().rstrip("/")


class Credentials(BaseModel):
    """Base URL and API key, fixed for the lifetime of a transport gate."""

    model_config = ConfigDict(frozen=True)

    base_url: str
    api_key: str

    @classmethod
    def from_settings(cls, settings: Settings) -> Credentials:
        if not settings.BITHUB_USER_API_KEY:
            raise ConfigurationError(
                "BITHUB_USER_API_KEY is missing; the bridge cannot initialize."
            )
        if not settings.BITHUB_URL.startswith(("http://", "https://")):
            raise ConfigurationError(f"Invalid BITHUB_URL format: {settings.BITHUB_URL!r}")
        return cls(base_url=settings.BITHUB_URL, api_key=settings.BITHUB_USER_API_KEY)


def load_settings() -> Settings:
    return Settings()
