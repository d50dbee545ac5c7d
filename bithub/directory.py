from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from bithub.domain import PeerEntry, PeerType
from bithub.logging_setup import get_logger
from bithub.transport import ClockFn

BOT_REGISTRY_FILE = "bot_registry.json"
CORES_REGISTRY_FILE = "cores_registry.json"


class CoreEntry(BaseModel):
    id: int
    name: str
    slug: str | None = None
    description: str | None = None


class PeerDirectory:
    """Read-through cache over the local bot and core registries.

    Files are re-read lazily once ``ttl_s`` has elapsed since the last load.
    A missing or unreadable file counts as an empty registry.
    """

    def __init__(
        self,
        resources_dir: Path,
        *,
        default_category_id: int = 2,
        ttl_s: float = 3600,
        clock: ClockFn | None = None,
    ) -> None:
        self.resources_dir = Path(resources_dir)
        self.default_category_id = default_category_id
        self.ttl_s = ttl_s
        self._clock = clock or time.monotonic
        self._loaded_at: float | None = None
        self._bots: list[dict[str, Any]] = []
        self._cores: list[CoreEntry] = []
        self._logger = get_logger(self.__class__.__name__)

    def resolve_category_id(self, name: str) -> int:
        """Category for a bot handle or core name; bots and unknowns use the default."""
        self._refresh()
        key = name.strip().lstrip("@").lower()
        for bot in self._bots:
            if key in (str(bot.get("username", "")).lower(), str(bot.get("name", "")).lower()):
                return self.default_category_id
        for core in self._cores:
            if key == core.name.lower() or (core.slug and key == core.slug.lower()):
                return core.id
        return self.default_category_id

    def list_cores(self) -> list[CoreEntry]:
        self._refresh()
        return list(self._cores)

    def _refresh(self) -> None:
        now = self._clock()
        if self._loaded_at is not None and now - self._loaded_at < self.ttl_s:
            return
        self._bots = [b for b in self._read(BOT_REGISTRY_FILE) if isinstance(b, dict)]
        self._cores = [CoreEntry(**c) for c in self._read(CORES_REGISTRY_FILE) if isinstance(c, dict)]
        self._loaded_at = now
        self._logger.info(
            "Loaded %d bots and %d cores from %s", len(self._bots), len(self._cores), self.resources_dir
        )

    def _read(self, filename: str) -> list[Any]:
        path = self.resources_dir / filename
        if not path.exists():
            return []
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            self._logger.error("Cannot read registry %s: %s", path, exc)
            return []
        return data if isinstance(data, list) else []


def parse_registry_table(markdown: str) -> list[PeerEntry]:
    """Parse the markdown peer tables of the swarm registry post."""
    peers: list[PeerEntry] = []
    section = PeerType.UNKNOWN
    for line in markdown.splitlines():
        stripped = line.strip()
        if stripped.startswith("#") and "Active Personas" in stripped:
            section = PeerType.PERSONA
        elif stripped.startswith("#") and "Available LLMs" in stripped:
            section = PeerType.LLM
        elif stripped.startswith("|") and "---" not in stripped and "Name" not in stripped:
            parts = [p.strip() for p in stripped.split("|") if p.strip()]
            if len(parts) >= 3:
                peers.append(
                    PeerEntry(
                        type=section,
                        username=parts[2].replace("`", "").replace("@", ""),
                        name=parts[1].replace("**", ""),
                    )
                )
    return peers
