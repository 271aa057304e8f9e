from dataclasses import asdict
from typing import List, Optional

from pydantic import BaseModel, Field

from playlist_sorter.core import Playlist, Track


class TrackOut(BaseModel):
    id: str
    name: str
    artists: str
    uri: str
    image: Optional[str] = None
    popularity: int = 0
    saved_at: Optional[str] = None
    genres: List[str] = Field(default_factory=list)
    playlist_count: int = 0

    @classmethod
    def from_track(cls, track: Track) -> "TrackOut":
        return cls(**asdict(track))


class PlaylistOut(BaseModel):
    id: str
    name: str
    owner: str
    total: int
    image: Optional[str] = None

    @classmethod
    def from_playlist(cls, playlist: Playlist) -> "PlaylistOut":
        return cls(**asdict(playlist))


class RecentTrackResponse(BaseModel):
    track: Optional[TrackOut] = None


class CreatePlaylistRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)


class PlaylistTrackRequest(BaseModel):
    playlist_id: str
    track_uri: str


class PlaylistTrackIdsResponse(BaseModel):
    playlist_id: str
    track_ids: List[str]


class SelectedTracksRequest(BaseModel):
    track_ids: List[str]


class SelectedTracksResponse(BaseModel):
    track_ids: Optional[List[str]] = None
