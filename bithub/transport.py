from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from bithub.config import Credentials, Settings
from bithub.errors import PermanentServiceError, TransientServiceError
from bithub.logging_setup import get_logger

SleepFn = Callable[[float], Awaitable[None]]
ClockFn = Callable[[], float]


def parse_retry_after(value: str | None, default: float) -> float:
    """Seconds to wait from a Retry-After header; ``default`` if absent or unparseable."""
    if value is None:
        return default
    try:
        seconds = float(value.strip())
    except ValueError:
        return default
    return seconds if seconds >= 0 else default


class TransportGate:
    """Single choke point for every outbound call to the forum.

    - Paces call starts at least ``min_interval_s`` apart, across all callers
    - Honors 429 Retry-After hints without consuming a retry attempt
    - Retries other failures with exponential backoff up to ``max_retries`` attempts
    """

    def __init__(
        self,
        credentials: Credentials,
        *,
        min_interval_s: float = 1.2,
        max_retries: int = 3,
        backoff_base_s: float = 1.0,
        default_retry_after_s: float = 5.0,
        timeout_s: float = 30.0,
        client_id: str = "Bithub-Bridge/0.1",
        http_client: httpx.AsyncClient | None = None,
        sleep_fn: SleepFn | None = None,
        clock: ClockFn | None = None,
    ) -> None:
        self.credentials = credentials
        self.min_interval_s = min_interval_s
        self.max_retries = max_retries
        self.backoff_base_s = backoff_base_s
        self.default_retry_after_s = default_retry_after_s
        self._headers = {
            "Content-Type": "application/json",
            "User-Api-Key": credentials.api_key,
            "User-Agent": client_id,
        }
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout_s)
        self._sleep = sleep_fn or asyncio.sleep
        self._clock = clock or time.monotonic
        self._lock = asyncio.Lock()
        self._last_call: float | None = None
        self._logger = get_logger(self.__class__.__name__)

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> TransportGate:
        return cls(
            Credentials.from_settings(settings),
            min_interval_s=settings.SYNAPTIC_INTERVAL_MS / 1000.0,
            max_retries=settings.MAX_RETRIES,
            backoff_base_s=settings.BACKOFF_BASE_S,
            default_retry_after_s=settings.DEFAULT_RETRY_AFTER_S,
            timeout_s=settings.REQUEST_TIMEOUT_S,
            client_id=settings.CLIENT_ID,
            **kwargs,
        )

    async def __aenter__(self) -> TransportGate:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # Public API -----------------------------------------------------------------
    async def execute(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None = None,
        max_retries: int | None = None,
    ) -> Any:
        """Issue one call and return its decoded JSON body ({} when empty).

        Raises PermanentServiceError (non-2xx or undecodable body) or
        TransientServiceError (network) once ``max_retries`` attempts have failed.
        """
        retries = max(1, self.max_retries if max_retries is None else max_retries)
        url = f"{self.credentials.base_url}{path}"
        attempt = 0
        while True:
            await self._pace()
            error: PermanentServiceError | TransientServiceError
            try:
                response = await self._client.request(method, url, json=body, headers=self._headers)
            except httpx.TransportError as exc:
                error = TransientServiceError(f"{method} {path} failed: {exc!r}")
            else:
                if response.status_code == 429:
                    delay = parse_retry_after(
                        response.headers.get("Retry-After"), self.default_retry_after_s
                    )
                    self._logger.warning("Rate limited on %s %s; waiting %.1fs", method, path, delay)
                    await self._sleep(delay)
                    continue
                if response.is_success:
                    if not response.content:
                        return {}
                    try:
                        return response.json()
                    except ValueError:
                        # e.g. an HTML maintenance page served with 200
                        error = PermanentServiceError(response.status_code, response.text)
                else:
                    error = PermanentServiceError(response.status_code, response.text)

            attempt += 1
            if attempt >= retries:
                self._logger.error("%s %s gave up after %d attempt(s): %s", method, path, attempt, error)
                raise error
            backoff = self.backoff_base_s * (2 ** (attempt - 1))
            self._logger.warning(
                "%s %s attempt %d/%d failed (%s); retrying in %.1fs",
                method,
                path,
                attempt,
                retries,
                error,
                backoff,
            )
            await self._sleep(backoff)

    # Internals -----------------------------------------------------------------
    async def _pace(self) -> None:
        # Check-then-record under one lock so concurrent callers cannot both skip the wait.
        async with self._lock:
            if self._last_call is not None:
                elapsed = self._clock() - self._last_call
                if elapsed < self.min_interval_s:
                    await self._sleep(self.min_interval_s - elapsed)
            self._last_call = self._clock()
