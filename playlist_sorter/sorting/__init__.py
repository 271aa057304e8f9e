"""Public façade for the playlist_sorter.sorting package.

This module exposes the sorting session and the pieces it is built from:
the playlist directory cache, the membership index, the sort queue, the
mutation pipeline and the key bindings. Callers should import from this
façade instead of the internal modules.
"""

from .directory_cache import PlaylistDirectoryCache
from .filters import UNLABELED_GENRE, available_genres, matches_filter, sort_tracks
from .keybindings import (
    build_key_map,
    distribute_playlists,
    format_key_label,
    normalize_key,
    update_key_config,
)
from .loader import SessionSetupError, load_playlists, open_session, select_tracks
from .membership import MembershipBuildResult, MembershipIndex
from .mutations import MutationPipeline
from .queue import SortQueue
from .session import (
    ALREADY_MEMBER_MESSAGE,
    LOADING_MEMBERSHIP_MESSAGE,
    SESSION_EXPIRED_MESSAGE,
    ActionOutcome,
    ActionResult,
    SessionRegistry,
    SessionSnapshot,
    SortingSession,
)

__all__ = [
    "PlaylistDirectoryCache",
    "MembershipIndex",
    "MembershipBuildResult",
    "SortQueue",
    "UNLABELED_GENRE",
    "matches_filter",
    "sort_tracks",
    "available_genres",
    "MutationPipeline",
    "SortingSession",
    "SessionRegistry",
    "SessionSnapshot",
    "ActionOutcome",
    "ActionResult",
    "LOADING_MEMBERSHIP_MESSAGE",
    "ALREADY_MEMBER_MESSAGE",
    "SESSION_EXPIRED_MESSAGE",
    "normalize_key",
    "format_key_label",
    "update_key_config",
    "distribute_playlists",
    "build_key_map",
    "open_session",
    "load_playlists",
    "select_tracks",
    "SessionSetupError",
]
