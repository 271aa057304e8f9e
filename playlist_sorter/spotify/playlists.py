from typing import Any, Dict, List
from urllib.parse import quote

from playlist_sorter.config import PLAYLIST_TRACKS_PAGE_SIZE, PLAYLISTS_PAGE_SIZE
from playlist_sorter.core import Playlist, log_info, log_step, log_success

from .auth import fetch_current_user_id
from .client import CatalogClient


def playlist_from_item(item: Dict[str, Any]) -> Playlist:
    images = item.get("images") or []
    return Playlist(
        id=item["id"],
        name=item.get("name") or "",
        owner=(item.get("owner") or {}).get("display_name") or "Unknown",
        total=int((item.get("tracks") or {}).get("total") or 0),
        image=images[0].get("url") if images else None,
    )


async def fetch_playlists(client: CatalogClient) -> List[Playlist]:
    items = await client.fetch_paged(f"/me/playlists?limit={PLAYLISTS_PAGE_SIZE}")
    playlists = [playlist_from_item(item) for item in items if item and item.get("id")]
    log_info(f"{len(playlists)} playlists found.")
    return playlists


async def fetch_playlist_track_ids(client: CatalogClient, playlist_id: str) -> List[str]:
    """
    Return the de-duplicated track ids of a playlist, in playlist order.
    """
    fields = quote("items(track(id)),next", safe="")
    items = await client.fetch_paged(
        f"/playlists/{playlist_id}/tracks?fields={fields}&limit={PLAYLIST_TRACKS_PAGE_SIZE}"
    )

    seen = set()
    track_ids: List[str] = []
    for item in items:
        track = (item or {}).get("track")
        if track and track.get("id") and track["id"] not in seen:
            seen.add(track["id"])
            track_ids.append(track["id"])
    return track_ids


async def add_track_to_playlist(
    client: CatalogClient, playlist_id: str, track_uri: str
) -> Dict[str, Any]:
    return await client.request(
        f"/playlists/{playlist_id}/tracks",
        method="POST",
        body={"uris": [track_uri]},
    )


async def remove_track_from_playlist(
    client: CatalogClient, playlist_id: str, track_uri: str
) -> Dict[str, Any]:
    return await client.request(
        f"/playlists/{playlist_id}/tracks",
        method="DELETE",
        body={"tracks": [{"uri": track_uri}]},
    )


async def create_playlist(client: CatalogClient, name: str) -> Playlist:
    log_step(f"Creating playlist {name!r}...")
    user_id = await fetch_current_user_id(client)
    created = await client.request(
        f"/users/{user_id}/playlists",
        method="POST",
        body={"name": name},
    )
    log_success(f"Playlist created: {name}")
    return Playlist(
        id=created["id"],
        name=created.get("name") or name,
        owner=(created.get("owner") or {}).get("display_name") or "Unknown",
        total=0,
    )
