"""Open a sorting session from the upstream catalog and local preferences."""

from typing import Iterable, List, Optional

from playlist_sorter.config import MAX_SELECTED_PLAYLISTS
from playlist_sorter.core import Playlist, Track, log_info, log_step, log_success, log_warning
from playlist_sorter.data import (
    PlaylistSnapshotCache,
    PreferenceStore,
    SorterSettings,
    load_selected_track_ids,
    load_settings,
    save_settings,
)
from playlist_sorter.spotify import (
    CatalogClient,
    CatalogError,
    RateLimited,
    Unauthorized,
    attach_genres,
    fetch_artist_genres,
    fetch_current_user_id,
    fetch_liked_tracks,
)

from .directory_cache import PlaylistDirectoryCache
from .session import SessionRegistry, SortingSession


class SessionSetupError(ValueError):
    """The requested session cannot be opened (bad playlist selection)."""


def select_tracks(tracks: List[Track], selected_ids: Optional[Iterable[str]]) -> List[Track]:
    """
    Restrict tracks to the stored selection. A missing selection, or one that
    matches none of the current tracks, selects everything.
    """
    if selected_ids is None:
        return list(tracks)
    wanted = set(selected_ids)
    chosen = [t for t in tracks if t.id in wanted]
    if not chosen:
        log_warning("Stored track selection matches no liked tracks; selecting all.")
        return list(tracks)
    return chosen


async def load_playlists(
    client: CatalogClient,
    directory: PlaylistDirectoryCache,
    snapshot: PlaylistSnapshotCache,
) -> List[Playlist]:
    """
    Playlist directory for the client: the stored snapshot while it is fresh
    or while a rate-limit cooldown runs, otherwise the shared directory cache.
    """
    if snapshot.should_use_cache():
        cached = snapshot.cached() or []
        log_info(f"Using stored playlist snapshot ({len(cached)} playlists).")
        return cached

    try:
        playlists = await directory.get_playlists(client.access_token)
    except RateLimited:
        snapshot.record_rate_limit()
        cached = snapshot.cached()
        if cached:
            log_warning("Playlists rate limited; using stored snapshot.")
            return cached
        raise

    snapshot.save(playlists)
    return playlists


def _resolve_selection(playlists: List[Playlist], playlist_ids: List[str]) -> List[Playlist]:
    ids = list(dict.fromkeys(playlist_ids))
    if not ids:
        raise SessionSetupError("Select at least one playlist.")
    if len(ids) > MAX_SELECTED_PLAYLISTS:
        raise SessionSetupError(f"Select at most {MAX_SELECTED_PLAYLISTS} playlists.")

    by_id = {p.id: p for p in playlists}
    missing = [pid for pid in ids if pid not in by_id]
    if missing:
        raise SessionSetupError(f"Unknown playlist(s): {', '.join(missing)}")
    return [by_id[pid] for pid in ids]


def _settings_writer(store: PreferenceStore):
    def _save(settings: SorterSettings) -> None:
        # key bindings are edited outside the session; keep the stored ones
        stored = load_settings(store)
        save_settings(store, settings.model_copy(update={"key_config": stored.key_config}))

    return _save


async def open_session(
    client: CatalogClient,
    store: PreferenceStore,
    directory: PlaylistDirectoryCache,
    playlist_ids: List[str],
    registry: Optional[SessionRegistry] = None,
    owner: Optional[str] = None,
) -> SortingSession:
    """
    Build a session and register it. `owner` identifies the client opening
    it; a previous session from the same owner is closed by the registry.
    """
    log_step("Opening sorting session...")

    user_id = await fetch_current_user_id(client)
    tracks = await fetch_liked_tracks(client)
    artist_ids = [t.primary_artist_id for t in tracks if t.primary_artist_id]
    try:
        attach_genres(tracks, await fetch_artist_genres(client, artist_ids))
    except Unauthorized:
        raise
    except CatalogError as e:
        log_warning(f"Could not load artist genres: {e.user_message()}")

    playlists = await load_playlists(client, directory, PlaylistSnapshotCache(store))
    selected = _resolve_selection(playlists, playlist_ids)
    chosen = select_tracks(tracks, load_selected_track_ids(store))
    settings = load_settings(store)

    session = SortingSession(
        tracks=chosen,
        playlists=selected,
        client=client,
        settings=settings,
        on_settings_change=_settings_writer(store),
        owner=owner,
        user_id=user_id,
    )
    if registry is not None:
        registry.add(session)
    if settings.prevent_duplicates:
        session.schedule_membership()

    log_success(
        f"Session {session.id} ready: {len(chosen)} tracks, {len(selected)} playlists."
    )
    return session
