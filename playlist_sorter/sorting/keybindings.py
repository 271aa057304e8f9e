"""Keyboard routing for the sorter layout.

Selected playlists are laid out on the left, right and bottom edges of the
sorting board; each occupied slot gets one key from the KeyConfig. With
fewer than five playlists only some slots are live.
"""

from typing import Dict, List, Optional, Sequence, Tuple

from playlist_sorter.core import Playlist
from playlist_sorter.data import KeyConfig

MAX_KEY_LENGTH = 10


def normalize_key(value: Optional[str]) -> str:
    if not value:
        return ""
    if value in (" ", "Spacebar"):
        return "Space"
    if value.startswith("Arrow"):
        return value
    return value.upper()


def format_key_label(value: str) -> str:
    if not value:
        return ""
    if value.startswith("Arrow"):
        return value.replace("Arrow", "")
    return value if value == "Space" else value.upper()


def update_key_config(config: KeyConfig, slot: str, value: str) -> KeyConfig:
    """
    Bind `slot` to `value`. An empty value clears the slot; a key already
    bound to another slot leaves the config unchanged.
    """
    if slot not in KeyConfig.model_fields:
        raise ValueError(f"Unknown key slot: {slot!r}")

    normalized = normalize_key(value)[:MAX_KEY_LENGTH]
    current = config.model_dump()
    if normalized and any(k != slot and v == normalized for k, v in current.items()):
        return config

    current[slot] = normalized
    return KeyConfig(**current)


def distribute_playlists(
    playlists: Sequence[Playlist],
) -> Tuple[List[Playlist], List[Playlist], List[Playlist]]:
    count = len(playlists)
    if count == 0:
        return [], [], []
    if count == 1:
        targets = (1, 0, 0)
    elif count == 2:
        targets = (1, 1, 0)
    elif count == 3:
        targets = (1, 1, 1)
    elif count == 4:
        targets = (1, 1, 2)
    else:
        targets = (2, 2, max(0, count - 4))

    left = list(playlists[: targets[0]])
    right = list(playlists[targets[0] : targets[0] + targets[1]])
    bottom = list(playlists[targets[0] + targets[1] :])
    return left, right, bottom


def _slot_targets(
    left: List[Playlist], right: List[Playlist], bottom: List[Playlist], count: int
) -> Dict[str, Optional[Playlist]]:
    def at(items: List[Playlist], i: int) -> Optional[Playlist]:
        return items[i] if i < len(items) else None

    if count >= 5:
        return {
            "left_top": at(left, 0),
            "left_bottom": at(left, 1),
            "right_top": at(right, 0),
            "right_bottom": at(right, 1),
            "bottom": at(bottom, 0),
        }
    return {
        "left_top": None,
        "left_bottom": at(left, 0),
        "right_top": at(bottom, 1) if count == 4 else None,
        "right_bottom": at(right, 0),
        "bottom": at(bottom, 0),
    }


def build_key_map(playlists: Sequence[Playlist], keys: KeyConfig) -> Dict[str, str]:
    """Return normalized key → playlist id for the current layout."""
    left, right, bottom = distribute_playlists(playlists)
    key_map: Dict[str, str] = {}
    for slot, playlist in _slot_targets(left, right, bottom, len(playlists)).items():
        key = normalize_key(getattr(keys, slot))
        if playlist is not None and key:
            key_map[key] = playlist.id
    return key_map
