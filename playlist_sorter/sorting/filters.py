from typing import Any, Callable, Iterable, List

from playlist_sorter.core import SortDirection, SortKey, Track
from playlist_sorter.data import FilterSettings

UNLABELED_GENRE = "__unlabeled__"


def matches_filter(track: Track, filters: FilterSettings) -> bool:
    """
    Filtering predicate applied before sorting.

    Date bounds compare the calendar day the track was saved; a track without
    a saved timestamp is never excluded by them.
    """
    saved = track.saved_at_dt
    if saved is not None:
        day = saved.date()
        if filters.min_date and day < filters.min_date:
            return False
        if filters.max_date and day > filters.max_date:
            return False

    if track.popularity < filters.min_popularity or track.popularity > filters.max_popularity:
        return False

    if track.playlist_count < filters.min_playlists:
        return False
    if filters.max_playlists is not None and track.playlist_count > filters.max_playlists:
        return False

    if filters.genres:
        wanted = set(filters.genres)
        if not track.genres:
            return UNLABELED_GENRE in wanted
        return any(tag in wanted for tag in track.genres)

    return True


def _sort_value(key: SortKey) -> Callable[[Track], Any]:
    if key == SortKey.SONG:
        return lambda t: t.name.casefold()
    if key == SortKey.ARTIST:
        return lambda t: t.artists.casefold()
    if key == SortKey.GENRES:
        return lambda t: t.genre_label.casefold()
    if key == SortKey.PLAYLIST_COUNT:
        return lambda t: t.playlist_count
    if key == SortKey.POPULARITY:
        return lambda t: t.popularity

    def _saved(t: Track) -> float:
        dt = t.saved_at_dt
        return dt.timestamp() if dt else 0.0

    return _saved


def sort_tracks(tracks: Iterable[Track], key: SortKey, direction: SortDirection) -> List[Track]:
    """
    Stable sort on a single key; equal keys keep their input order in both
    directions (sorted() with reverse=True preserves stability).
    """
    return sorted(tracks, key=_sort_value(key), reverse=direction == SortDirection.DESC)


def available_genres(tracks: Iterable[Track]) -> List[str]:
    """Every tag present in the tracks, alphabetically, for the genre picker."""
    tags = {tag for track in tracks for tag in track.genres}
    return sorted(tags, key=str.casefold)
