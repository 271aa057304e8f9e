"""Public façade for the playlist_sorter.core package.

This module exposes logging helpers, filesystem utilities, and the domain
models shared by the Spotify client, the preference store and the sorting
session. Callers should import these cross-cutting concerns from this façade
instead of the internal submodules.
"""

from .fs_utils import ensure_parent_dir, read_json, write_json
from .logging_config import configure_logging
from .logging_utils import (
    log_debug,
    log_error,
    log_info,
    log_step,
    log_success,
    log_warning,
)
from .models import (
    PendingMutation,
    Playlist,
    SortDirection,
    SortedItem,
    SortKey,
    Track,
    TrackState,
)

__all__ = [
    "configure_logging",
    "log_debug",
    "log_info",
    "log_step",
    "log_success",
    "log_warning",
    "log_error",
    "ensure_parent_dir",
    "write_json",
    "read_json",
    "Track",
    "Playlist",
    "TrackState",
    "SortKey",
    "SortDirection",
    "SortedItem",
    "PendingMutation",
]
