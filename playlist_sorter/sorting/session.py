"""The sorting session: one user reviewing liked tracks into ≤5 playlists.

A session ties together the queue of pending tracks, the membership index
used for duplicate prevention, the mutation pipeline and the sorted history.
Every user action returns an ActionResult carrying a fresh snapshot, so the
HTTP layer never needs to reach into the session's internals.

All state lives on the event loop; awaits happen only around upstream calls
(mutation writes, undo removals, the membership build). Once a session is
closed, results that arrive later are ignored.
"""

import asyncio
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set, Union

from pydantic import ValidationError

from playlist_sorter.config import QUEUE_HEAD_SIZE, SESSION_IDLE_TTL_SECONDS
from playlist_sorter.core import (
    PendingMutation,
    Playlist,
    SortDirection,
    SortedItem,
    SortKey,
    Track,
    TrackState,
    log_error,
    log_info,
    log_warning,
)
from playlist_sorter.data import FilterSettings, KeyConfig, SorterSettings
from playlist_sorter.spotify import (
    CatalogClient,
    CatalogError,
    Unauthorized,
    add_track_to_playlist,
    fetch_playlist_track_ids,
    remove_track_from_playlist,
)

from .filters import available_genres
from .keybindings import build_key_map, normalize_key
from .membership import MembershipBuildResult, MembershipIndex
from .mutations import MutationPipeline
from .queue import SortQueue

LOADING_MEMBERSHIP_MESSAGE = "Loading playlist contents..."
ALREADY_MEMBER_MESSAGE = "Already in this playlist."
SESSION_EXPIRED_MESSAGE = "Session expired. Please sign in again."

_DATE_FIELDS = ("min_date", "max_date")

SettingsListener = Callable[[SorterSettings], None]


class ActionOutcome(str, Enum):
    APPLIED = "applied"
    REJECTED = "rejected"
    FAILED = "failed"
    SESSION_EXPIRED = "session_expired"


@dataclass
class SessionSnapshot:
    session_id: str
    head: List[Track]
    queue_length: int
    processed_count: int
    pending_mutations: int
    history_length: int
    membership_ready: bool
    status: Optional[str]
    error: Optional[str]
    session_expired: bool
    active: bool


@dataclass
class ActionResult:
    outcome: ActionOutcome
    snapshot: SessionSnapshot
    message: Optional[str] = None
    error: Optional[str] = None

    @property
    def applied(self) -> bool:
        return self.outcome == ActionOutcome.APPLIED


def _error_text(exc: Exception) -> str:
    if isinstance(exc, CatalogError):
        return exc.user_message()
    return str(exc) or exc.__class__.__name__


class SortingSession:
    def __init__(
        self,
        tracks: List[Track],
        playlists: List[Playlist],
        client: CatalogClient,
        settings: Optional[SorterSettings] = None,
        on_settings_change: Optional[SettingsListener] = None,
        session_id: Optional[str] = None,
        owner: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> None:
        self.id = session_id or uuid.uuid4().hex
        self.owner = owner
        self.user_id = user_id
        self._client = client
        self._playlists: Dict[str, Playlist] = {p.id: p for p in playlists}
        self._settings = settings or SorterSettings()
        self._on_settings_change = on_settings_change

        self._membership = MembershipIndex(t.id for t in tracks)
        self._queue = SortQueue(
            tracks,
            filters=self._settings.filters,
            sort_key=self._settings.sort_key,
            direction=self._settings.sort_dir,
        )
        self._pipeline = MutationPipeline(
            add=self._add_remote,
            remove=self._remove_remote,
            on_confirmed=self._on_confirmed,
            on_failed=self._on_failed,
        )

        self._history: List[SortedItem] = []
        # mutation id -> whether sort() optimistically added to the index
        self._optimistic: Dict[str, bool] = {}
        self._undoing: Set[str] = set()
        self._membership_task: Optional[asyncio.Task] = None

        self._active = True
        self._session_expired = False
        self._status: Optional[str] = None
        self._error: Optional[str] = None

    # ---------- upstream calls ----------

    async def _add_remote(self, track: Track, playlist_id: str) -> Any:
        return await add_track_to_playlist(self._client, playlist_id, track.uri)

    async def _remove_remote(self, track: Track, playlist_id: str) -> Any:
        return await remove_track_from_playlist(self._client, playlist_id, track.uri)

    async def _fetch_track_ids(self, playlist_id: str) -> List[str]:
        return await fetch_playlist_track_ids(self._client, playlist_id)

    @property
    def access_token(self) -> Optional[str]:
        return self._client.access_token

    def update_access_token(self, access_token: Optional[str]) -> None:
        if access_token:
            self._client.access_token = access_token

    # ---------- state ----------

    @property
    def active(self) -> bool:
        return self._active

    @property
    def session_expired(self) -> bool:
        return self._session_expired

    @property
    def settings(self) -> SorterSettings:
        return self._settings

    @property
    def playlists(self) -> List[Playlist]:
        return list(self._playlists.values())

    @property
    def history(self) -> List[SortedItem]:
        return list(self._history)

    @property
    def pending_mutations(self) -> List[PendingMutation]:
        return self._pipeline.pending

    @property
    def membership(self) -> MembershipIndex:
        return self._membership

    @property
    def queue(self) -> SortQueue:
        return self._queue

    @property
    def key_map(self) -> Dict[str, str]:
        return build_key_map(self.playlists, self._settings.key_config)

    def genres(self) -> List[str]:
        return available_genres(self._queue.tracks())

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            session_id=self.id,
            head=self._queue.head(QUEUE_HEAD_SIZE),
            queue_length=len(self._queue),
            processed_count=self._queue.processed_count,
            pending_mutations=len(self._pipeline.pending),
            history_length=len(self._history),
            membership_ready=self._membership.ready,
            status=self._status,
            error=self._error,
            session_expired=self._session_expired,
            active=self._active,
        )

    def _result(
        self,
        outcome: ActionOutcome,
        message: Optional[str] = None,
        error: Optional[str] = None,
    ) -> ActionResult:
        if message is not None:
            self._status = message
        if error is not None:
            self._error = error
        return ActionResult(outcome=outcome, snapshot=self.snapshot(), message=message, error=error)

    def _applied(self, message: Optional[str] = None) -> ActionResult:
        self._error = None
        return self._result(ActionOutcome.APPLIED, message=message)

    def _rejected(self, message: str) -> ActionResult:
        return self._result(ActionOutcome.REJECTED, message=message)

    def _guard(self) -> Optional[ActionResult]:
        if self._session_expired:
            return self._result(ActionOutcome.SESSION_EXPIRED, error=SESSION_EXPIRED_MESSAGE)
        if not self._active:
            return self._rejected("Session closed.")
        return None

    # ---------- membership helpers ----------

    def _refresh_count(self, track: Track) -> None:
        track.playlist_count = self._membership.count(track.id)

    def _refresh_counts(self) -> None:
        for track in self._queue.tracks():
            self._refresh_count(track)

    def _exclusion(self) -> Optional[Callable[[Track], bool]]:
        s = self._settings
        if not (s.exclude_all_playlists and s.prevent_duplicates and self._membership.ready):
            return None
        total = len(self._playlists)
        return lambda track: self._membership.count(track.id) >= total

    def _revert_optimistic(self, mutation: PendingMutation) -> None:
        if self._optimistic.pop(mutation.id, False):
            self._membership.record_remove(mutation.playlist_id, mutation.track.id)
            self._refresh_count(mutation.track)

    # ---------- sorting ----------

    def sort(self, track_id: str, playlist_id: str) -> ActionResult:
        blocked = self._guard()
        if blocked:
            return blocked

        playlist = self._playlists.get(playlist_id)
        if playlist is None:
            return self._rejected("Unknown playlist.")
        if track_id in self._undoing:
            return self._rejected("Undo in progress for this track.")
        if self._queue.state(track_id) != TrackState.PENDING or track_id not in self._queue:
            return self._rejected("Track is not in the queue.")

        member = self._membership.contains(playlist_id, track_id)
        if self._settings.prevent_duplicates:
            if member is None:
                return self._rejected(LOADING_MEMBERSHIP_MESSAGE)
            if member:
                return self._rejected(ALREADY_MEMBER_MESSAGE)

        track = self._queue.get(track_id)
        self._queue.mark_processed(track_id)
        added = member is False and self._membership.record_add(playlist_id, track_id)
        self._refresh_count(track)
        mutation = self._pipeline.enqueue(track, playlist_id)
        self._optimistic[mutation.id] = added
        return self._applied(f"Sorting into {playlist.name}...")

    def skip(self, track_id: str) -> ActionResult:
        blocked = self._guard()
        if blocked:
            return blocked
        if track_id in self._undoing or track_id not in self._queue:
            return self._rejected("Track is not in the queue.")
        self._queue.mark_processed(track_id)
        return self._applied("Skipped.")

    def skip_to(self, track_id: str) -> ActionResult:
        blocked = self._guard()
        if blocked:
            return blocked
        # a restored track sits at the front and would be swept up
        if self._undoing:
            return self._rejected("Undo in progress; try again when it finishes.")
        skipped = self._queue.skip_to(track_id)
        if skipped is None:
            return self._rejected("Track is not in the queue.")
        return self._applied(f"Skipped {skipped} tracks.")

    def press_key(self, key: str) -> ActionResult:
        blocked = self._guard()
        if blocked:
            return blocked

        head = self._queue.head(1)
        if not head:
            return self._rejected("No tracks left to sort.")

        pressed = normalize_key(key)
        if pressed and pressed == normalize_key(self._settings.key_config.skip):
            return self.skip(head[0].id)

        playlist_id = self.key_map.get(pressed)
        if playlist_id is None:
            return self._rejected(f"No playlist bound to {pressed or 'that key'}.")
        return self.sort(head[0].id, playlist_id)

    # ---------- pipeline callbacks ----------

    def _on_confirmed(self, mutation: PendingMutation) -> None:
        self._optimistic.pop(mutation.id, None)
        if not self._active:
            return
        playlist = self._playlists.get(mutation.playlist_id)
        name = playlist.name if playlist else mutation.playlist_id
        self._history.append(
            SortedItem(track=mutation.track, playlist_id=mutation.playlist_id, playlist_name=name)
        )
        self._status = f"Added to {name}."

    def _on_failed(self, mutation: PendingMutation, exc: Exception) -> None:
        if not self._active:
            self._optimistic.pop(mutation.id, None)
            return
        self._revert_optimistic(mutation)
        if isinstance(exc, Unauthorized):
            self._expire()
        else:
            self._error = _error_text(exc)
        # restored last so the earliest submission ends up first in the queue
        self._queue.restore(mutation.track.id)

    def _expire(self) -> None:
        if self._session_expired:
            return
        log_warning(f"Session {self.id} expired; halting pending writes.")
        self._session_expired = True
        self._error = SESSION_EXPIRED_MESSAGE
        dropped = self._pipeline.halt()
        # restore() pins to the front, so walk backwards to keep submission order
        for mutation in reversed(dropped):
            self._revert_optimistic(mutation)
            self._queue.restore(mutation.track.id)

    # ---------- undo ----------

    async def undo(self, entry_id: str) -> ActionResult:
        blocked = self._guard()
        if blocked:
            return blocked

        index = next((i for i, item in enumerate(self._history) if item.id == entry_id), None)
        if index is None:
            return self._rejected("Nothing to undo.")

        entry = self._history.pop(index)
        track = entry.track
        was_member = self._membership.record_remove(entry.playlist_id, track.id)
        self._refresh_count(track)
        self._queue.restore(track.id)
        self._undoing.add(track.id)

        try:
            await self._pipeline.remove(track, entry.playlist_id)
        except CatalogError as exc:
            if not self._active:
                return self._rejected("Session closed.")
            log_error(f"Undo failed for {track.name!r}: {exc}")
            self._history.insert(index, entry)
            if was_member:
                self._membership.record_add(entry.playlist_id, track.id)
            self._refresh_count(track)
            self._queue.mark_processed(track.id)
            if isinstance(exc, Unauthorized):
                self._expire()
                return self._result(ActionOutcome.SESSION_EXPIRED, error=SESSION_EXPIRED_MESSAGE)
            return self._result(ActionOutcome.FAILED, error=_error_text(exc))
        finally:
            self._undoing.discard(track.id)

        if not self._active:
            return self._rejected("Session closed.")
        return self._applied(f"Removed from {entry.playlist_name}.")

    async def undo_last(self) -> ActionResult:
        blocked = self._guard()
        if blocked:
            return blocked
        if not self._history:
            return self._rejected("Nothing to undo.")
        return await self.undo(self._history[-1].id)

    # ---------- settings ----------

    def _save_settings(self, **changes: Any) -> None:
        self._settings = self._settings.model_copy(update=changes)
        if self._on_settings_change is not None:
            self._on_settings_change(self._settings)

    def set_filter(self, field_name: str, value: Any) -> ActionResult:
        blocked = self._guard()
        if blocked:
            return blocked
        if field_name not in FilterSettings.model_fields:
            return self._rejected(f"Unknown filter: {field_name}.")

        if field_name in _DATE_FIELDS and value in (0, "", None):
            value = None
        data = self._settings.filters.model_dump()
        data[field_name] = value
        try:
            filters = FilterSettings.model_validate(data)
        except ValidationError as e:
            return self._rejected(f"Invalid value for {field_name}: {e.errors()[0]['msg']}")

        self._queue.set_filter(filters)
        self._save_settings(filters=filters)
        return self._applied()

    def set_sort(
        self,
        key: Union[SortKey, str],
        direction: Union[SortDirection, str],
    ) -> ActionResult:
        blocked = self._guard()
        if blocked:
            return blocked
        try:
            sort_key = SortKey(key)
            sort_dir = SortDirection(direction)
        except ValueError:
            return self._rejected(f"Unknown sort order: {key} {direction}.")

        self._queue.set_sort(sort_key, sort_dir)
        self._save_settings(sort_key=sort_key, sort_dir=sort_dir)
        return self._applied()

    def set_prevent_duplicates(self, enabled: bool) -> ActionResult:
        blocked = self._guard()
        if blocked:
            return blocked
        self._save_settings(prevent_duplicates=enabled)
        self._queue.set_exclusion(self._exclusion())
        if enabled and not self._membership.ready and not self.membership_loading:
            self.schedule_membership()
        return self._applied()

    def set_exclude_all_playlists(self, enabled: bool) -> ActionResult:
        blocked = self._guard()
        if blocked:
            return blocked
        self._save_settings(exclude_all_playlists=enabled)
        self._queue.set_exclusion(self._exclusion())
        return self._applied()

    def set_key_config(self, key_config: KeyConfig) -> None:
        self._settings = self._settings.model_copy(update={"key_config": key_config})

    # ---------- membership build ----------

    @property
    def membership_loading(self) -> bool:
        return self._membership_task is not None and not self._membership_task.done()

    async def start_membership(self) -> Optional[MembershipBuildResult]:
        if self._guard() is not None:
            return None

        self._status = LOADING_MEMBERSHIP_MESSAGE
        try:
            result = await self._membership.build(list(self._playlists), self._fetch_track_ids)
        except Unauthorized:
            if self._active:
                self._expire()
            return None

        if not self._active:
            self._membership.clear()
            return None

        # adds still waiting in the pipeline are not in the fetched listings yet
        for mutation in self._pipeline.pending:
            if self._membership.contains(mutation.playlist_id, mutation.track.id) is False:
                self._optimistic[mutation.id] = self._membership.record_add(
                    mutation.playlist_id, mutation.track.id
                )

        self._refresh_counts()
        self._queue.set_exclusion(self._exclusion())
        if result.failed:
            self._error = (
                f"Could not load contents for {len(result.failed)} playlist(s); "
                "duplicate checks are blocked for them."
            )
            self._status = None
        else:
            self._status = "Playlist contents loaded."
        return result

    def schedule_membership(self) -> asyncio.Task:
        self._membership_task = asyncio.get_running_loop().create_task(self.start_membership())
        self._membership_task.add_done_callback(self._log_membership_failure)
        return self._membership_task

    def _log_membership_failure(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log_error(f"Membership build for session {self.id} crashed: {exc}")
            self._error = _error_text(exc) if isinstance(exc, Exception) else str(exc)

    async def settle(self) -> None:
        """Wait for the membership build and every queued write to finish."""
        if self._membership_task is not None:
            await asyncio.wait({self._membership_task})
        await self._pipeline.wait_idle()

    def close(self) -> List[PendingMutation]:
        if not self._active:
            return []
        self._active = False
        dropped = self._pipeline.halt()
        if self.membership_loading:
            self._membership_task.cancel()
        log_info(
            f"Session {self.id} closed: {len(self._history)} sorted, "
            f"{len(dropped)} pending writes dropped."
        )
        return dropped


class SessionRegistry:
    """
    Process-wide map of session id → SortingSession.

    A client holds at most one session: opening a new one closes the
    previous session with the same owner. Sessions not touched for
    `idle_ttl_seconds` are closed and dropped on the next add/get.
    """

    def __init__(
        self,
        idle_ttl_seconds: float = SESSION_IDLE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._idle_ttl = idle_ttl_seconds
        self._clock = clock
        self._sessions: Dict[str, SortingSession] = {}
        self._last_seen: Dict[str, float] = {}

    def add(self, session: SortingSession) -> SortingSession:
        self.evict_idle()
        if session.owner is not None:
            for other in list(self._sessions.values()):
                if other.owner == session.owner and other is not session:
                    log_info(f"Replacing session {other.id} for client {session.owner}.")
                    self.close(other.id)
        self._sessions[session.id] = session
        self._last_seen[session.id] = self._clock()
        return session

    def get(self, session_id: str) -> Optional[SortingSession]:
        self.evict_idle()
        session = self._sessions.get(session_id)
        if session is not None:
            self._last_seen[session_id] = self._clock()
        return session

    def evict_idle(self) -> List[str]:
        cutoff = self._clock() - self._idle_ttl
        stale = [sid for sid, seen in self._last_seen.items() if seen <= cutoff]
        for session_id in stale:
            log_info(f"Session {session_id} idle for {self._idle_ttl:g}s; closing it.")
            self.close(session_id)
        return stale

    def close(self, session_id: str) -> Optional[SortingSession]:
        self._last_seen.pop(session_id, None)
        session = self._sessions.pop(session_id, None)
        if session is not None:
            session.close()
        return session

    def close_all(self) -> None:
        for session_id in list(self._sessions):
            self.close(session_id)

    def __len__(self) -> int:
        return len(self._sessions)
