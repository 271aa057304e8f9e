"""Per-playlist track membership, restricted to the user's liked tracks.

An entry for a playlist exists only once its full track listing has been
fetched. A missing entry means "unknown", never "empty": callers must not
treat it as proof that a track is absent.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Set

from playlist_sorter.core import log_info, log_warning
from playlist_sorter.spotify import CatalogError, Unauthorized

TrackIdFetcher = Callable[[str], Awaitable[List[str]]]


@dataclass
class MembershipBuildResult:
    all_succeeded: bool
    loaded: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)


class MembershipIndex:
    def __init__(self, liked_ids: Iterable[str]) -> None:
        self._liked: Set[str] = set(liked_ids)
        self._members: Dict[str, Set[str]] = {}
        self._selected: List[str] = []

    @property
    def ready(self) -> bool:
        """True when every selected playlist has a loaded entry."""
        return bool(self._selected) and all(pid in self._members for pid in self._selected)

    def is_known(self, playlist_id: str) -> bool:
        return playlist_id in self._members

    def contains(self, playlist_id: str, track_id: str) -> Optional[bool]:
        members = self._members.get(playlist_id)
        if members is None:
            return None
        return track_id in members

    def count(self, track_id: str) -> int:
        return sum(1 for members in self._members.values() if track_id in members)

    def playlists_containing(self, track_id: str) -> List[str]:
        return [pid for pid, members in self._members.items() if track_id in members]

    def record_add(self, playlist_id: str, track_id: str) -> bool:
        members = self._members.get(playlist_id)
        if members is None or track_id not in self._liked:
            return False
        members.add(track_id)
        return True

    def record_remove(self, playlist_id: str, track_id: str) -> bool:
        members = self._members.get(playlist_id)
        if members is None or track_id not in members:
            return False
        members.discard(track_id)
        return True

    def set_liked_ids(self, liked_ids: Iterable[str]) -> None:
        self._liked = set(liked_ids)
        for pid in self._members:
            self._members[pid] &= self._liked

    def clear(self) -> None:
        self._members.clear()
        self._selected = []

    async def build(
        self,
        playlist_ids: Iterable[str],
        fetch_ids: TrackIdFetcher,
    ) -> MembershipBuildResult:
        """
        Load membership for every selected playlist concurrently.

        One playlist failing does not abort the others; the result reports
        which playlists failed. Entries for playlists no longer selected are
        dropped, entries that failed to refresh are kept as they were.
        An Unauthorized failure is re-raised once every fetch has settled.
        """
        self._selected = list(dict.fromkeys(playlist_ids))
        for pid in list(self._members):
            if pid not in self._selected:
                del self._members[pid]

        results = await asyncio.gather(
            *(fetch_ids(pid) for pid in self._selected),
            return_exceptions=True,
        )

        result = MembershipBuildResult(all_succeeded=True)
        unauthorized: Optional[Unauthorized] = None

        for pid, outcome in zip(self._selected, results):
            if isinstance(outcome, Unauthorized):
                unauthorized = outcome
                result.failed[pid] = outcome.user_message()
            elif isinstance(outcome, CatalogError):
                result.failed[pid] = outcome.user_message()
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                self._members[pid] = {tid for tid in outcome if tid in self._liked}
                result.loaded.append(pid)

        result.all_succeeded = not result.failed
        if unauthorized is not None:
            raise unauthorized

        if result.failed:
            log_warning(
                f"Could not load playlist contents for {len(result.failed)} of "
                f"{len(self._selected)} playlists."
            )
        else:
            log_info(f"Playlist membership loaded for {len(result.loaded)} playlists.")
        return result
