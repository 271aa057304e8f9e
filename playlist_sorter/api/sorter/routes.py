from fastapi import APIRouter, Depends, HTTPException

from playlist_sorter.core import log_info
from playlist_sorter.data import (
    KeyConfig,
    PreferenceStore,
    load_settings,
    save_settings,
)
from playlist_sorter.sorting import (
    PlaylistDirectoryCache,
    SessionRegistry,
    SessionSetupError,
    SortingSession,
    normalize_key,
    open_session,
    update_key_config,
)
from playlist_sorter.spotify import CatalogClient, CatalogError

from ..deps import (
    catalog_http_error,
    get_catalog_client,
    get_client_key,
    get_directory_cache,
    get_preferences,
    get_registry,
    get_session,
)
from ..spotify.schemas import TrackOut
from .schemas import (
    ActionResponse,
    CreateSessionRequest,
    FilterRequest,
    HistoryItemOut,
    KeyConfigResponse,
    KeyConfigUpdate,
    KeyPressRequest,
    SessionResponse,
    SessionSettingsRequest,
    SortOrderRequest,
    SortRequest,
    SummaryResponse,
    TrackRequest,
    UndoRequest,
)

router = APIRouter()


@router.post("/sessions", response_model=SessionResponse)
async def create_session(
    body: CreateSessionRequest,
    client: CatalogClient = Depends(get_catalog_client),
    store: PreferenceStore = Depends(get_preferences),
    directory: PlaylistDirectoryCache = Depends(get_directory_cache),
    registry: SessionRegistry = Depends(get_registry),
    owner: str = Depends(get_client_key),
) -> SessionResponse:
    """
    Load liked tracks and the selected playlists, then start a sorting
    session. Playlist contents keep loading in the background; until they
    are in, duplicate-checked sorts are rejected. Any earlier session of the
    same client is closed.
    """
    try:
        session = await open_session(
            client, store, directory, body.playlist_ids, registry, owner=owner
        )
    except SessionSetupError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except CatalogError as e:
        raise catalog_http_error(e) from e
    return SessionResponse.from_session(session)


@router.get("/sessions/{session_id}", response_model=SessionResponse)
async def read_session(
    session: SortingSession = Depends(get_session),
    store: PreferenceStore = Depends(get_preferences),
) -> SessionResponse:
    session.set_key_config(load_settings(store).key_config)
    return SessionResponse.from_session(session)


@router.delete("/sessions/{session_id}")
async def delete_session(
    session: SortingSession = Depends(get_session),
    registry: SessionRegistry = Depends(get_registry),
) -> dict:
    dropped = session.close()
    registry.close(session.id)
    return {"closed": True, "dropped_mutations": len(dropped)}


@router.post("/sessions/{session_id}/sort", response_model=ActionResponse)
async def sort_track(body: SortRequest, session: SortingSession = Depends(get_session)) -> ActionResponse:
    return ActionResponse.from_result(session.sort(body.track_id, body.playlist_id))


@router.post("/sessions/{session_id}/skip", response_model=ActionResponse)
async def skip_track(body: TrackRequest, session: SortingSession = Depends(get_session)) -> ActionResponse:
    return ActionResponse.from_result(session.skip(body.track_id))


@router.post("/sessions/{session_id}/skip-to", response_model=ActionResponse)
async def skip_to_track(
    body: TrackRequest, session: SortingSession = Depends(get_session)
) -> ActionResponse:
    return ActionResponse.from_result(session.skip_to(body.track_id))


@router.post("/sessions/{session_id}/undo", response_model=ActionResponse)
async def undo_entry(
    body: UndoRequest, session: SortingSession = Depends(get_session)
) -> ActionResponse:
    return ActionResponse.from_result(await session.undo(body.entry_id))


@router.post("/sessions/{session_id}/undo-last", response_model=ActionResponse)
async def undo_last_entry(session: SortingSession = Depends(get_session)) -> ActionResponse:
    return ActionResponse.from_result(await session.undo_last())


@router.post("/sessions/{session_id}/keys", response_model=ActionResponse)
async def press_key(
    body: KeyPressRequest,
    session: SortingSession = Depends(get_session),
    store: PreferenceStore = Depends(get_preferences),
) -> ActionResponse:
    session.set_key_config(load_settings(store).key_config)
    return ActionResponse.from_result(session.press_key(body.key))


@router.put("/sessions/{session_id}/filter", response_model=ActionResponse)
async def set_filter(body: FilterRequest, session: SortingSession = Depends(get_session)) -> ActionResponse:
    return ActionResponse.from_result(session.set_filter(body.field, body.value))


@router.put("/sessions/{session_id}/sort-order", response_model=ActionResponse)
async def set_sort_order(
    body: SortOrderRequest, session: SortingSession = Depends(get_session)
) -> ActionResponse:
    return ActionResponse.from_result(session.set_sort(body.sort_key, body.sort_dir))


@router.put("/sessions/{session_id}/settings", response_model=ActionResponse)
async def set_session_settings(
    body: SessionSettingsRequest, session: SortingSession = Depends(get_session)
) -> ActionResponse:
    result = None
    if body.prevent_duplicates is not None:
        result = session.set_prevent_duplicates(body.prevent_duplicates)
    if body.exclude_all_playlists is not None:
        result = session.set_exclude_all_playlists(body.exclude_all_playlists)
    if result is None:
        raise HTTPException(status_code=400, detail="No setting to change.")
    return ActionResponse.from_result(result)


@router.get("/sessions/{session_id}/summary", response_model=SummaryResponse)
async def session_summary(session: SortingSession = Depends(get_session)) -> SummaryResponse:
    """
    What was sorted where. Waits for queued writes to finish first so the
    list reflects what Spotify actually confirmed.
    """
    await session.settle()
    snapshot = session.snapshot()
    history = session.history
    log_info(f"Session {session.id} summary: {len(history)} tracks sorted.")
    return SummaryResponse(
        session_id=session.id,
        sorted=[
            HistoryItemOut(
                id=item.id,
                track=TrackOut.from_track(item.track),
                playlist_id=item.playlist_id,
                playlist_name=item.playlist_name,
                sorted_at=item.sorted_at,
            )
            for item in history
        ],
        sorted_count=len(history),
        processed_count=snapshot.processed_count,
        remaining=snapshot.queue_length,
        error=snapshot.error,
    )


@router.get("/key-config", response_model=KeyConfigResponse)
async def read_key_config(store: PreferenceStore = Depends(get_preferences)) -> KeyConfigResponse:
    return KeyConfigResponse(key_config=load_settings(store).key_config)


@router.put("/key-config", response_model=KeyConfigResponse)
async def write_key_config(
    body: KeyConfigUpdate, store: PreferenceStore = Depends(get_preferences)
) -> KeyConfigResponse:
    settings = load_settings(store)
    try:
        updated = update_key_config(settings.key_config, body.slot, body.value)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    # update_key_config hands back the same object when the key is taken
    if updated is settings.key_config:
        raise HTTPException(
            status_code=409, detail=f"Key {normalize_key(body.value)} is already in use."
        )

    save_settings(store, settings.model_copy(update={"key_config": updated}))
    return KeyConfigResponse(key_config=updated)


@router.put("/key-config/reset", response_model=KeyConfigResponse)
async def reset_key_config(store: PreferenceStore = Depends(get_preferences)) -> KeyConfigResponse:
    settings = load_settings(store)
    save_settings(store, settings.model_copy(update={"key_config": KeyConfig()}))
    return KeyConfigResponse(key_config=KeyConfig())
