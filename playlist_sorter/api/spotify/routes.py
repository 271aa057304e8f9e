from typing import List

from fastapi import APIRouter, Depends, Query

from playlist_sorter.core import log_info, log_step
from playlist_sorter.data import (
    PlaylistSnapshotCache,
    PreferenceStore,
    load_selected_track_ids,
    save_selected_track_ids,
)
from playlist_sorter.sorting import PlaylistDirectoryCache, load_playlists
from playlist_sorter.spotify import (
    CatalogClient,
    CatalogError,
    add_track_to_playlist,
    attach_genres,
    create_playlist,
    fetch_artist_genres,
    fetch_liked_tracks,
    fetch_most_recent_liked_track,
    fetch_playlist_track_ids,
    remove_track_from_playlist,
)

from ..deps import catalog_http_error, get_catalog_client, get_directory_cache, get_preferences
from .schemas import (
    CreatePlaylistRequest,
    PlaylistOut,
    PlaylistTrackIdsResponse,
    PlaylistTrackRequest,
    RecentTrackResponse,
    SelectedTracksRequest,
    SelectedTracksResponse,
    TrackOut,
)

router = APIRouter()


@router.get("/liked-tracks", response_model=List[TrackOut])
async def get_liked_tracks(client: CatalogClient = Depends(get_catalog_client)) -> List[TrackOut]:
    """
    Every liked track of the current user, with up to three genre tags taken
    from the primary artist.
    """
    log_step("Fetching liked tracks...")
    try:
        tracks = await fetch_liked_tracks(client)
        artist_ids = [t.primary_artist_id for t in tracks if t.primary_artist_id]
        attach_genres(tracks, await fetch_artist_genres(client, artist_ids))
    except CatalogError as e:
        raise catalog_http_error(e) from e

    log_info(f"Liked tracks: {len(tracks)} tracks.")
    return [TrackOut.from_track(t) for t in tracks]


@router.get("/recent-track", response_model=RecentTrackResponse)
async def get_recent_track(
    client: CatalogClient = Depends(get_catalog_client),
) -> RecentTrackResponse:
    try:
        track = await fetch_most_recent_liked_track(client)
    except CatalogError as e:
        raise catalog_http_error(e) from e
    return RecentTrackResponse(track=TrackOut.from_track(track) if track else None)


@router.get("/playlists", response_model=List[PlaylistOut])
async def get_playlists(
    client: CatalogClient = Depends(get_catalog_client),
    directory: PlaylistDirectoryCache = Depends(get_directory_cache),
    store: PreferenceStore = Depends(get_preferences),
) -> List[PlaylistOut]:
    """
    The user's playlists. Served from cache where possible; a 429 is only
    returned when no cached copy exists at all.
    """
    try:
        playlists = await load_playlists(client, directory, PlaylistSnapshotCache(store))
    except CatalogError as e:
        raise catalog_http_error(e) from e
    return [PlaylistOut.from_playlist(p) for p in playlists]


@router.post("/playlists", response_model=PlaylistOut)
async def post_playlist(
    body: CreatePlaylistRequest,
    client: CatalogClient = Depends(get_catalog_client),
    directory: PlaylistDirectoryCache = Depends(get_directory_cache),
    store: PreferenceStore = Depends(get_preferences),
) -> PlaylistOut:
    try:
        playlist = await create_playlist(client, body.name.strip())
    except CatalogError as e:
        raise catalog_http_error(e) from e

    directory.invalidate(client.access_token)
    PlaylistSnapshotCache(store).invalidate()
    return PlaylistOut.from_playlist(playlist)


@router.get("/playlist-tracks", response_model=PlaylistTrackIdsResponse)
async def get_playlist_tracks(
    playlist_id: str = Query(alias="id", min_length=1),
    client: CatalogClient = Depends(get_catalog_client),
) -> PlaylistTrackIdsResponse:
    try:
        track_ids = await fetch_playlist_track_ids(client, playlist_id)
    except CatalogError as e:
        raise catalog_http_error(e) from e
    return PlaylistTrackIdsResponse(playlist_id=playlist_id, track_ids=track_ids)


@router.post("/add-to-playlist")
async def post_add_to_playlist(
    body: PlaylistTrackRequest,
    client: CatalogClient = Depends(get_catalog_client),
) -> dict:
    try:
        await add_track_to_playlist(client, body.playlist_id, body.track_uri)
    except CatalogError as e:
        raise catalog_http_error(e) from e
    return {"ok": True}


@router.post("/remove-from-playlist")
async def post_remove_from_playlist(
    body: PlaylistTrackRequest,
    client: CatalogClient = Depends(get_catalog_client),
) -> dict:
    try:
        await remove_track_from_playlist(client, body.playlist_id, body.track_uri)
    except CatalogError as e:
        raise catalog_http_error(e) from e
    return {"ok": True}


@router.get("/selected-tracks", response_model=SelectedTracksResponse)
async def get_selected_tracks(store: PreferenceStore = Depends(get_preferences)) -> SelectedTracksResponse:
    return SelectedTracksResponse(track_ids=load_selected_track_ids(store))


@router.put("/selected-tracks", response_model=SelectedTracksResponse)
async def put_selected_tracks(
    body: SelectedTracksRequest,
    store: PreferenceStore = Depends(get_preferences),
) -> SelectedTracksResponse:
    track_ids = list(dict.fromkeys(body.track_ids))
    save_selected_track_ids(store, track_ids)
    return SelectedTracksResponse(track_ids=track_ids)
