"""Public façade for the playlist_sorter.spotify package.

This module exposes the Spotify Web API integration used by the sorter: the
rate-limit aware CatalogClient, its typed errors, the bearer-token adapter and
the endpoint helpers for liked tracks, playlists and artist genres. Callers
should import these symbols from this façade instead of the internal modules.
"""

from .auth import (
    AuthStatus,
    auth_status,
    bearer_token_from_header,
    fetch_current_user_id,
    required_scopes,
)
from .client import CatalogClient
from .errors import CatalogError, CatalogTimeout, RateLimited, Unauthorized
from .playlists import (
    add_track_to_playlist,
    create_playlist,
    fetch_playlist_track_ids,
    fetch_playlists,
    remove_track_from_playlist,
)
from .tracks import (
    attach_genres,
    dedupe_tracks,
    fetch_artist_genres,
    fetch_liked_tracks,
    fetch_most_recent_liked_track,
)

__all__ = [
    "AuthStatus",
    "auth_status",
    "bearer_token_from_header",
    "required_scopes",
    "fetch_current_user_id",
    "CatalogClient",
    "CatalogError",
    "CatalogTimeout",
    "RateLimited",
    "Unauthorized",
    "fetch_liked_tracks",
    "fetch_most_recent_liked_track",
    "fetch_artist_genres",
    "attach_genres",
    "dedupe_tracks",
    "fetch_playlists",
    "fetch_playlist_track_ids",
    "add_track_to_playlist",
    "remove_track_from_playlist",
    "create_playlist",
]
