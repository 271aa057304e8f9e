"""Process-wide cache of each user's playlist directory.

Entries are keyed by access token and live for `ttl_seconds`. Concurrent
callers for the same token share one in-flight upstream fetch (single-flight)
instead of each issuing their own. When the upstream call is rate limited, an
existing entry is served even if it has expired. At most `max_entries`
tokens are remembered; the least recently refreshed one is dropped first.

The cache is a plain service object: the FastAPI app builds one at startup and
hands it to routes through a dependency.
"""

import asyncio
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional

from playlist_sorter.config import MAX_CACHED_DIRECTORIES, PLAYLIST_CACHE_TTL_SECONDS
from playlist_sorter.core import Playlist, log_info, log_warning
from playlist_sorter.spotify import RateLimited

PlaylistFetcher = Callable[[str], Awaitable[List[Playlist]]]


@dataclass
class _CacheEntry:
    data: List[Playlist]
    expires_at: float


class PlaylistDirectoryCache:
    def __init__(
        self,
        fetcher: PlaylistFetcher,
        ttl_seconds: float = PLAYLIST_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        max_entries: int = MAX_CACHED_DIRECTORIES,
    ) -> None:
        self._fetcher = fetcher
        self._ttl = ttl_seconds
        self._clock = clock
        self._max_entries = max_entries
        self._entries: "OrderedDict[str, _CacheEntry]" = OrderedDict()
        self._in_flight: Dict[str, "asyncio.Future[List[Playlist]]"] = {}

    async def get_playlists(self, access_token: str) -> List[Playlist]:
        entry = self._entries.get(access_token)
        if entry is not None and self._clock() < entry.expires_at:
            return list(entry.data)

        task = self._in_flight.get(access_token)
        if task is None:
            task = asyncio.ensure_future(self._refresh(access_token))
            self._in_flight[access_token] = task
            task.add_done_callback(
                lambda done, token=access_token: self._forget_in_flight(token, done)
            )

        try:
            # shield: one caller going away must not cancel the shared fetch
            data = await asyncio.shield(task)
        except RateLimited:
            stale = self._entries.get(access_token)
            if stale is None:
                raise
            log_warning("Playlist directory rate limited; serving cached playlists.")
            return list(stale.data)

        return list(data)

    async def _refresh(self, access_token: str) -> List[Playlist]:
        data = await self._fetcher(access_token)
        self._entries[access_token] = _CacheEntry(
            data=list(data),
            expires_at=self._clock() + self._ttl,
        )
        self._entries.move_to_end(access_token)
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)
        log_info(f"Playlist directory cached ({len(data)} playlists).")
        return data

    def _forget_in_flight(self, access_token: str, done: "asyncio.Future") -> None:
        if self._in_flight.get(access_token) is done:
            del self._in_flight[access_token]
        # Mark the exception retrieved; awaiting callers re-raise it themselves.
        if not done.cancelled():
            done.exception()

    def peek(self, access_token: str) -> Optional[List[Playlist]]:
        """Return the cached entry (fresh or stale) without fetching."""
        entry = self._entries.get(access_token)
        return list(entry.data) if entry else None

    def is_in_flight(self, access_token: str) -> bool:
        return access_token in self._in_flight

    def invalidate(self, access_token: Optional[str] = None) -> None:
        if access_token is None:
            self._entries.clear()
        else:
            self._entries.pop(access_token, None)
