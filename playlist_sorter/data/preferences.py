"""Best-effort local preference store.

Preferences (sorter settings, the selected-track set, the playlist snapshot)
are a small JSON document per client. Writes re-read the file before
rewriting it, so two stores opened on the same file do not undo each
other's changes. Missing or corrupted content never fails a
session: readers fall back to defaults and log a warning.
"""

import os
from collections import OrderedDict
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from playlist_sorter.config import MAX_CACHED_CLIENTS, PREFERENCES_DIR
from playlist_sorter.core import log_warning, read_json, write_json

from .settings import SorterSettings

SETTINGS_KEY = "sorted:sorterSettings"
SELECTED_TRACKS_KEY = "sorted:selectedTracks"
PLAYLIST_CACHE_KEY = "sorted:playlistsCache"
PLAYLIST_CACHE_AT_KEY = "sorted:playlistsCacheAt"
PLAYLIST_RATE_LIMIT_AT_KEY = "sorted:playlistsRateLimitAt"

DEFAULT_CLIENT_ID = "default"


def client_key(client_id: Optional[str]) -> str:
    """Transform a client id into a filesystem-safe key."""
    cleaned = []
    for c in client_id or DEFAULT_CLIENT_ID:
        if c.isalnum() or c in ("-", "_"):
            cleaned.append(c)
        else:
            cleaned.append("_")
    return "".join(cleaned)[:64] or DEFAULT_CLIENT_ID


class PreferenceStore:
    """JSON-file key/value store for one client."""

    def __init__(self, path: str) -> None:
        self.path = path
        self._data: Dict[str, Any] = self._load()

    def _load(self) -> Dict[str, Any]:
        def _on_error(e: Exception) -> None:
            log_warning(f"Preference file {self.path} is corrupted; ignoring it ({e}).")

        data = read_json(self.path, default={}, on_error=_on_error)
        if not isinstance(data, dict):
            log_warning(f"Preference file {self.path} has invalid structure; using defaults.")
            return {}
        return data

    def _flush(self) -> None:
        try:
            write_json(self.path, self._data)
        except OSError as e:
            log_warning(f"Could not persist preferences to {self.path}: {e}")

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data = self._load()
        self._data[key] = value
        self._flush()

    def remove(self, key: str) -> None:
        self._data = self._load()
        if key in self._data:
            del self._data[key]
            self._flush()


class PreferenceStores:
    """Opens one PreferenceStore per client id, keeping the most recent few open."""

    def __init__(self, directory: str = PREFERENCES_DIR, max_open: int = MAX_CACHED_CLIENTS) -> None:
        self.directory = directory
        self.max_open = max_open
        self._stores: "OrderedDict[str, PreferenceStore]" = OrderedDict()

    def for_client(self, client_id: Optional[str]) -> PreferenceStore:
        key = client_key(client_id)
        store = self._stores.get(key)
        if store is None:
            store = PreferenceStore(os.path.join(self.directory, f"{key}.json"))
            self._stores[key] = store
            while len(self._stores) > self.max_open:
                self._stores.popitem(last=False)
        else:
            self._stores.move_to_end(key)
        return store

    def __len__(self) -> int:
        return len(self._stores)


def load_settings(store: PreferenceStore) -> SorterSettings:
    raw = store.get(SETTINGS_KEY)
    if raw is None:
        return SorterSettings()
    try:
        return SorterSettings.model_validate(raw)
    except ValidationError as e:
        log_warning(f"Stored sorter settings are invalid; using defaults ({e.error_count()} errors).")
        return SorterSettings()


def save_settings(store: PreferenceStore, settings: SorterSettings) -> None:
    store.set(SETTINGS_KEY, settings.model_dump(mode="json"))


def load_selected_track_ids(store: PreferenceStore) -> Optional[List[str]]:
    """
    Return the stored track selection, or None when nothing valid is stored.
    """
    raw = store.get(SELECTED_TRACKS_KEY)
    if raw is None:
        return None
    if not isinstance(raw, list) or not all(isinstance(v, str) for v in raw):
        log_warning("Stored track selection is invalid; selecting all tracks.")
        return None
    return raw


def save_selected_track_ids(store: PreferenceStore, track_ids: List[str]) -> None:
    store.set(SELECTED_TRACKS_KEY, list(track_ids))
