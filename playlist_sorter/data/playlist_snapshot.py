import time
from dataclasses import asdict
from typing import Callable, List, Optional

from playlist_sorter.config import (
    CLIENT_PLAYLIST_CACHE_TTL_SECONDS,
    RATE_LIMIT_COOLDOWN_SECONDS,
)
from playlist_sorter.core import Playlist, log_warning

from .preferences import (
    PLAYLIST_CACHE_AT_KEY,
    PLAYLIST_CACHE_KEY,
    PLAYLIST_RATE_LIMIT_AT_KEY,
    PreferenceStore,
)


class PlaylistSnapshotCache:
    """
    Per-client copy of the playlist directory kept in the preference store.

    It survives navigation between sessions, unlike the process-wide
    directory cache. After a 429 the snapshot is served for a cooldown window
    even when stale, so the upstream API is not hit again right away.
    """

    def __init__(
        self,
        store: PreferenceStore,
        ttl_seconds: float = CLIENT_PLAYLIST_CACHE_TTL_SECONDS,
        cooldown_seconds: float = RATE_LIMIT_COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._ttl = ttl_seconds
        self._cooldown = cooldown_seconds
        self._clock = clock

    def _timestamp(self, key: str) -> float:
        raw = self._store.get(key)
        try:
            return float(raw) if raw is not None else 0.0
        except (TypeError, ValueError):
            return 0.0

    def cached(self) -> Optional[List[Playlist]]:
        raw = self._store.get(PLAYLIST_CACHE_KEY)
        if not isinstance(raw, list):
            return None
        try:
            return [Playlist.from_dict(item) for item in raw]
        except (KeyError, TypeError, ValueError, AttributeError):
            log_warning("Stored playlist snapshot is corrupted; ignoring it.")
            return None

    def is_fresh(self) -> bool:
        cached_at = self._timestamp(PLAYLIST_CACHE_AT_KEY)
        return cached_at > 0 and self._clock() - cached_at < self._ttl

    def in_cooldown(self) -> bool:
        limited_at = self._timestamp(PLAYLIST_RATE_LIMIT_AT_KEY)
        return limited_at > 0 and self._clock() - limited_at < self._cooldown

    def should_use_cache(self) -> bool:
        if not self.cached():
            return False
        return self.is_fresh() or self.in_cooldown()

    def save(self, playlists: List[Playlist]) -> None:
        self._store.set(PLAYLIST_CACHE_KEY, [asdict(p) for p in playlists])
        self._store.set(PLAYLIST_CACHE_AT_KEY, self._clock())
        self._store.remove(PLAYLIST_RATE_LIMIT_AT_KEY)

    def invalidate(self) -> None:
        """Keep the snapshot but force the next read to go upstream."""
        self._store.remove(PLAYLIST_CACHE_AT_KEY)

    def record_rate_limit(self) -> None:
        self._store.set(PLAYLIST_RATE_LIMIT_AT_KEY, self._clock())
