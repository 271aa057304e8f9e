from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid4())


@dataclass
class Track:
    """
    A liked track as seen by the sorter.

    `id` is the upstream id, or "<name>-<primary artist>" when the upstream id
    is null. Every queue, membership and undo structure is keyed by it.
    """

    id: str
    name: str
    artists: str
    uri: str
    image: Optional[str] = None
    popularity: int = 0
    saved_at: Optional[str] = None
    genres: List[str] = field(default_factory=list)
    primary_artist_id: Optional[str] = None
    playlist_count: int = 0

    @property
    def genre_label(self) -> str:
        return ", ".join(self.genres)

    @property
    def saved_at_dt(self) -> Optional[datetime]:
        """Parse saved_at (ISO-8601, 'Z' suffix allowed) into an aware datetime."""
        if not self.saved_at:
            return None
        try:
            dt = datetime.fromisoformat(self.saved_at.replace("Z", "+00:00"))
        except ValueError:
            return None
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt


@dataclass
class Playlist:
    id: str
    name: str
    owner: str = "Unknown"
    total: int = 0
    image: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Playlist":
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or ""),
            owner=str(data.get("owner") or "Unknown"),
            total=int(data.get("total") or 0),
            image=data.get("image"),
        )


class TrackState(str, Enum):
    """Per-track state inside one sorting session."""

    PENDING = "pending"
    PROCESSED = "processed"


class SortKey(str, Enum):
    SONG = "song"
    ARTIST = "artist"
    GENRES = "genres"
    SAVED_AT = "savedAt"
    PLAYLIST_COUNT = "playlistCount"
    POPULARITY = "popularity"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass
class SortedItem:
    """History entry for a remote addition the upstream API confirmed."""

    track: Track
    playlist_id: str
    playlist_name: str
    id: str = field(default_factory=_new_id)
    sorted_at: datetime = field(default_factory=_utcnow)


@dataclass
class PendingMutation:
    """A (track, playlist) add waiting for its turn in the mutation pipeline."""

    track: Track
    playlist_id: str
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=_utcnow)
