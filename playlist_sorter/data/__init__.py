"""Public façade for the playlist_sorter.data package.

This module exposes the local preference store, the persisted settings
schemas and the client-side playlist snapshot cache. Callers should use this
façade instead of importing from the internal modules directly.
"""

from .playlist_snapshot import PlaylistSnapshotCache
from .preferences import (
    PLAYLIST_CACHE_AT_KEY,
    PLAYLIST_CACHE_KEY,
    PLAYLIST_RATE_LIMIT_AT_KEY,
    SELECTED_TRACKS_KEY,
    SETTINGS_KEY,
    PreferenceStore,
    PreferenceStores,
    client_key,
    load_selected_track_ids,
    load_settings,
    save_selected_track_ids,
    save_settings,
)
from .settings import FilterSettings, KeyConfig, SorterSettings

__all__ = [
    "PreferenceStore",
    "PreferenceStores",
    "client_key",
    "PlaylistSnapshotCache",
    "SETTINGS_KEY",
    "SELECTED_TRACKS_KEY",
    "PLAYLIST_CACHE_KEY",
    "PLAYLIST_CACHE_AT_KEY",
    "PLAYLIST_RATE_LIMIT_AT_KEY",
    "load_settings",
    "save_settings",
    "load_selected_track_ids",
    "save_selected_track_ids",
    "KeyConfig",
    "FilterSettings",
    "SorterSettings",
]
