from __future__ import annotations

from asyncio import Lock
from dataclasses import dataclass
import time
from typing import Any, Awaitable, Callable, Hashable

from .config import LIVE_SESSION_TTL_SECONDS


@dataclass
class _Entry:
    value: Any
    expires_at: float


class TTLCache:
    """In-memory registry whose entries expire after ``ttl_seconds`` idle.

    Every read through :meth:`get` or :meth:`get_or_create` pushes the expiry
    back, so an entry in active use never disappears under its user.
    """

    def __init__(
        self, ttl_seconds: float = 300.0, clock: Callable[[], float] = time.monotonic
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._lock = Lock()
        self._entries: dict[Hashable, _Entry] = {}

    def _live(self, key: Hashable, now: float) -> _Entry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= now:
            del self._entries[key]
            return None
        entry.expires_at = now + self._ttl
        return entry

    async def get(self, key: Hashable) -> Any | None:
        async with self._lock:
            entry = self._live(key, self._clock())
            return entry.value if entry else None

    async def get_or_create(
        self, key: Hashable, factory: Callable[[], Awaitable[Any]]
    ) -> Any:
        """Return the entry for ``key``, awaiting ``factory()`` to build a missing one.

        The factory runs under the registry lock, so two concurrent callers
        never build the same entry twice.  If it raises, nothing is stored.
        """

        async with self._lock:
            now = self._clock()
            entry = self._live(key, now)
            if entry is None:
                entry = _Entry(await factory(), now + self._ttl)
                self._entries[key] = entry
            return entry.value

    async def invalidate(self, key: Hashable) -> None:
        async with self._lock:
            self._entries.pop(key, None)

    async def invalidate_match(self, match_id: str) -> None:
        """Drop every ``(match_id, ...)`` entry."""

        async with self._lock:
            for key in [k for k in self._entries if isinstance(k, tuple) and k[:1] == (match_id,)]:
                del self._entries[key]

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


# SetRecorder instances keyed by (match_id, set_no)
live_recorders = TTLCache(ttl_seconds=LIVE_SESSION_TTL_SECONDS)
