from typing import Any, Dict, Iterable, List, Optional

from playlist_sorter.config import (
    ARTISTS_BATCH_SIZE,
    LIKED_TRACKS_PAGE_SIZE,
    MAX_GENRES_PER_TRACK,
)
from playlist_sorter.core import Track, log_info, log_step

from .client import CatalogClient


def _first_image(album: Optional[Dict[str, Any]]) -> Optional[str]:
    images = (album or {}).get("images") or []
    if not images:
        return None
    return images[0].get("url")


def track_from_item(item: Dict[str, Any]) -> Optional[Track]:
    """
    Convert a saved-track item ({added_at, track}) into a Track.

    Local files and some unavailable tracks come back with a null id; those
    get a synthesized "<name>-<primary artist>" identifier.
    """
    t = item.get("track")
    if not t:
        return None

    artists = t.get("artists") or []
    primary = artists[0] if artists else {}
    name = t.get("name") or ""
    track_id = t.get("id") or f"{name}-{primary.get('name') or 'unknown'}"

    return Track(
        id=track_id,
        name=name,
        artists=", ".join(a.get("name") or "" for a in artists),
        uri=t.get("uri") or "",
        image=_first_image(t.get("album")),
        popularity=int(t.get("popularity") or 0),
        saved_at=item.get("added_at"),
        genres=[],
        primary_artist_id=primary.get("id"),
    )


def dedupe_tracks(tracks: Iterable[Track]) -> List[Track]:
    """Keep the first occurrence of each track id, preserving order."""
    seen = set()
    unique: List[Track] = []
    for track in tracks:
        if track.id in seen:
            continue
        seen.add(track.id)
        unique.append(track)
    return unique


async def fetch_liked_tracks(client: CatalogClient) -> List[Track]:
    log_step("Fetching liked tracks from Spotify...")
    items = await client.fetch_paged(f"/me/tracks?limit={LIKED_TRACKS_PAGE_SIZE}")

    tracks = [t for t in (track_from_item(item) for item in items) if t is not None]
    unique = dedupe_tracks(tracks)

    log_info(f"{len(unique)} liked tracks fetched ({len(tracks) - len(unique)} duplicates dropped).")
    return unique


async def fetch_most_recent_liked_track(client: CatalogClient) -> Optional[Track]:
    data = await client.request("/me/tracks?limit=1")
    items = (data or {}).get("items") or []
    if not items:
        return None
    return track_from_item(items[0])


async def fetch_artist_genres(
    client: CatalogClient, artist_ids: Iterable[Optional[str]]
) -> Dict[str, List[str]]:
    """
    Look up genres for the given artists, ARTISTS_BATCH_SIZE ids per call.
    """
    unique_ids: List[str] = []
    seen = set()
    for artist_id in artist_ids:
        if artist_id and artist_id not in seen:
            seen.add(artist_id)
            unique_ids.append(artist_id)

    genres: Dict[str, List[str]] = {}
    for i in range(0, len(unique_ids), ARTISTS_BATCH_SIZE):
        batch = unique_ids[i : i + ARTISTS_BATCH_SIZE]
        data = await client.request(f"/artists?ids={','.join(batch)}")
        for artist in (data or {}).get("artists") or []:
            if artist and artist.get("id"):
                genres[artist["id"]] = list(artist.get("genres") or [])

    return genres


def attach_genres(tracks: List[Track], genres: Dict[str, List[str]]) -> None:
    """Set each track's tags from its primary artist (at most MAX_GENRES_PER_TRACK)."""
    for track in tracks:
        if track.primary_artist_id:
            track.genres = genres.get(track.primary_artist_id, [])[:MAX_GENRES_PER_TRACK]
