from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from playlist_sorter.config import MAX_SELECTED_PLAYLISTS
from playlist_sorter.core import SortDirection, SortKey
from playlist_sorter.data import KeyConfig, SorterSettings
from playlist_sorter.sorting import ActionResult, SessionSnapshot, SortingSession

from ..spotify.schemas import PlaylistOut, TrackOut


class CreateSessionRequest(BaseModel):
    playlist_ids: List[str] = Field(min_length=1, max_length=MAX_SELECTED_PLAYLISTS)


class SnapshotOut(BaseModel):
    session_id: str
    head: List[TrackOut]
    queue_length: int
    processed_count: int
    pending_mutations: int
    history_length: int
    membership_ready: bool
    status: Optional[str] = None
    error: Optional[str] = None
    session_expired: bool = False
    active: bool = True

    @classmethod
    def from_snapshot(cls, snapshot: SessionSnapshot) -> "SnapshotOut":
        return cls(
            session_id=snapshot.session_id,
            head=[TrackOut.from_track(t) for t in snapshot.head],
            queue_length=snapshot.queue_length,
            processed_count=snapshot.processed_count,
            pending_mutations=snapshot.pending_mutations,
            history_length=snapshot.history_length,
            membership_ready=snapshot.membership_ready,
            status=snapshot.status,
            error=snapshot.error,
            session_expired=snapshot.session_expired,
            active=snapshot.active,
        )


class ActionResponse(BaseModel):
    outcome: str
    message: Optional[str] = None
    error: Optional[str] = None
    snapshot: SnapshotOut

    @classmethod
    def from_result(cls, result: ActionResult) -> "ActionResponse":
        return cls(
            outcome=result.outcome.value,
            message=result.message,
            error=result.error,
            snapshot=SnapshotOut.from_snapshot(result.snapshot),
        )


class SessionResponse(BaseModel):
    snapshot: SnapshotOut
    playlists: List[PlaylistOut]
    key_map: Dict[str, str]
    settings: SorterSettings
    genres: List[str]

    @classmethod
    def from_session(cls, session: SortingSession) -> "SessionResponse":
        return cls(
            snapshot=SnapshotOut.from_snapshot(session.snapshot()),
            playlists=[PlaylistOut.from_playlist(p) for p in session.playlists],
            key_map=session.key_map,
            settings=session.settings,
            genres=session.genres(),
        )


class SortRequest(BaseModel):
    track_id: str
    playlist_id: str


class TrackRequest(BaseModel):
    track_id: str


class UndoRequest(BaseModel):
    entry_id: str


class KeyPressRequest(BaseModel):
    key: str


class FilterRequest(BaseModel):
    field: str
    value: Any = None


class SortOrderRequest(BaseModel):
    sort_key: SortKey
    sort_dir: SortDirection = SortDirection.DESC


class SessionSettingsRequest(BaseModel):
    prevent_duplicates: Optional[bool] = None
    exclude_all_playlists: Optional[bool] = None


class HistoryItemOut(BaseModel):
    id: str
    track: TrackOut
    playlist_id: str
    playlist_name: str
    sorted_at: datetime


class SummaryResponse(BaseModel):
    session_id: str
    sorted: List[HistoryItemOut]
    sorted_count: int
    processed_count: int
    remaining: int
    error: Optional[str] = None


class KeyConfigUpdate(BaseModel):
    slot: str
    value: str = ""


class KeyConfigResponse(BaseModel):
    key_config: KeyConfig
