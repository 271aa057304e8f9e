"""The ordered queue of tracks still waiting to be sorted.

Every track of the session carries a TrackState. The visible queue is
derived: filter → sort → drop processed tracks, with tracks brought back by
undo pinned to the front. Recomputing the derivation (new filter, new sort
order, new track list) never resurrects a processed track; only restore()
moves a track back to pending.
"""

from typing import Callable, Dict, Iterable, List, Optional

from playlist_sorter.core import SortDirection, SortKey, Track, TrackState
from playlist_sorter.data import FilterSettings

from .filters import matches_filter, sort_tracks

ExclusionFn = Callable[[Track], bool]


class SortQueue:
    def __init__(
        self,
        tracks: Iterable[Track],
        filters: Optional[FilterSettings] = None,
        sort_key: SortKey = SortKey.SAVED_AT,
        direction: SortDirection = SortDirection.DESC,
    ) -> None:
        self._tracks: Dict[str, Track] = {}
        self._states: Dict[str, TrackState] = {}
        self._front: List[str] = []
        self._filters = filters or FilterSettings()
        self._sort_key = sort_key
        self._direction = direction
        self._exclude: Optional[ExclusionFn] = None
        self._ordered: List[Track] = []
        self._queue: List[Track] = []
        self._load(tracks)
        self.recompute()

    def _load(self, tracks: Iterable[Track]) -> None:
        previous = self._states
        self._tracks = {}
        self._states = {}
        for track in tracks:
            if track.id in self._tracks:
                continue
            self._tracks[track.id] = track
            self._states[track.id] = previous.get(track.id, TrackState.PENDING)
        self._front = [tid for tid in self._front if tid in self._tracks]

    # ---------- derivation ----------

    def recompute(self) -> None:
        candidates = [
            t
            for t in self._tracks.values()
            if matches_filter(t, self._filters) and not (self._exclude and self._exclude(t))
        ]
        self._ordered = sort_tracks(candidates, self._sort_key, self._direction)

        visible = {t.id for t in candidates}
        pinned = [
            self._tracks[tid]
            for tid in self._front
            if tid in visible and self._states[tid] == TrackState.PENDING
        ]
        pinned_ids = {t.id for t in pinned}
        self._queue = pinned + [
            t
            for t in self._ordered
            if self._states[t.id] == TrackState.PENDING and t.id not in pinned_ids
        ]

    def set_filter(self, filters: FilterSettings) -> None:
        self._filters = filters
        self.recompute()

    def set_sort(self, key: SortKey, direction: SortDirection) -> None:
        self._sort_key = key
        self._direction = direction
        self.recompute()

    def set_exclusion(self, predicate: Optional[ExclusionFn]) -> None:
        self._exclude = predicate
        self.recompute()

    def replace_tracks(self, tracks: Iterable[Track]) -> None:
        """Swap the underlying track list, keeping states of surviving ids."""
        self._load(tracks)
        self.recompute()

    # ---------- transitions ----------

    def mark_processed(self, track_id: str) -> bool:
        if self._states.get(track_id) != TrackState.PENDING:
            return False
        self._states[track_id] = TrackState.PROCESSED
        if track_id in self._front:
            self._front.remove(track_id)
        self._queue = [t for t in self._queue if t.id != track_id]
        return True

    def restore(self, track_id: str) -> bool:
        """processed → pending, pinned at the front of the queue."""
        if self._states.get(track_id) != TrackState.PROCESSED:
            return False
        self._states[track_id] = TrackState.PENDING
        self._front.insert(0, track_id)
        self.recompute()
        return True

    def skip_to(self, track_id: str) -> Optional[int]:
        """
        Mark every track ahead of `track_id` in the current queue as processed.

        Returns how many tracks were skipped, or None when the track is not
        in the queue.
        """
        ids = [t.id for t in self._queue]
        if track_id not in ids:
            return None
        ahead = ids[: ids.index(track_id)]
        for tid in ahead:
            self.mark_processed(tid)
        return len(ahead)

    # ---------- queries ----------

    @property
    def queue(self) -> List[Track]:
        return list(self._queue)

    @property
    def ordered(self) -> List[Track]:
        """Filtered and sorted tracks, processed ones included."""
        return list(self._ordered)

    @property
    def sort_key(self) -> SortKey:
        return self._sort_key

    @property
    def direction(self) -> SortDirection:
        return self._direction

    @property
    def filters(self) -> FilterSettings:
        return self._filters

    def head(self, n: int = 1) -> List[Track]:
        return self._queue[:n]

    def get(self, track_id: str) -> Optional[Track]:
        return self._tracks.get(track_id)

    def state(self, track_id: str) -> Optional[TrackState]:
        return self._states.get(track_id)

    def tracks(self) -> List[Track]:
        return list(self._tracks.values())

    @property
    def processed_count(self) -> int:
        return sum(1 for s in self._states.values() if s == TrackState.PROCESSED)

    def __len__(self) -> int:
        return len(self._queue)

    def __contains__(self, track_id: object) -> bool:
        return any(t.id == track_id for t in self._queue)
