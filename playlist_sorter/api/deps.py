"""FastAPI dependencies shared by the routers.

Service objects (directory cache, session registry, preference stores, the
catalog client factory) are built once in create_app() and read back from
`request.app.state` here.
"""

from typing import Optional

from fastapi import Depends, Header, HTTPException, Request

from playlist_sorter.data import PreferenceStore, PreferenceStores, client_key
from playlist_sorter.sorting import PlaylistDirectoryCache, SessionRegistry, SortingSession
from playlist_sorter.spotify import (
    CatalogClient,
    CatalogError,
    CatalogTimeout,
    RateLimited,
    Unauthorized,
    bearer_token_from_header,
    fetch_current_user_id,
)


def unauthenticated(message: str) -> HTTPException:
    return HTTPException(
        status_code=401,
        detail={"status": "unauthenticated", "message": message},
    )


def catalog_http_error(e: CatalogError) -> HTTPException:
    """Translate a catalog failure into the HTTP error the UI expects."""
    if isinstance(e, Unauthorized):
        return unauthenticated(e.user_message())
    if isinstance(e, RateLimited):
        return HTTPException(
            status_code=429,
            detail={"message": e.user_message(), "retry_after": e.retry_after},
        )
    if isinstance(e, CatalogTimeout):
        return HTTPException(status_code=504, detail={"message": e.user_message()})
    return HTTPException(
        status_code=502,
        detail={"message": e.user_message(), "upstream_status": e.status},
    )


def get_access_token(authorization: Optional[str] = Header(default=None)) -> str:
    token = bearer_token_from_header(authorization)
    if token is None:
        raise unauthenticated("Spotify authorization required.")
    return token


def get_catalog_client(request: Request, token: str = Depends(get_access_token)) -> CatalogClient:
    return request.app.state.client_factory(token)


def get_directory_cache(request: Request) -> PlaylistDirectoryCache:
    return request.app.state.directory_cache


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.sessions


async def get_preferences(
    request: Request,
    x_sorter_client: Optional[str] = Header(default=None),
) -> PreferenceStore:
    stores: PreferenceStores = request.app.state.preferences
    return stores.for_client(x_sorter_client)


def get_client_key(x_sorter_client: Optional[str] = Header(default=None)) -> str:
    return client_key(x_sorter_client)


async def get_session(
    request: Request,
    session_id: str,
    token: str = Depends(get_access_token),
    owner: str = Depends(get_client_key),
    registry: SessionRegistry = Depends(get_registry),
) -> SortingSession:
    """
    Look up a session opened by the calling client. A new bearer token is
    accepted only when it belongs to the Spotify user who opened the session.
    """
    session = registry.get(session_id)
    if session is None or session.owner != owner:
        raise HTTPException(status_code=404, detail=f"Session not found: {session_id}")

    if token != session.access_token and session.user_id is not None:
        try:
            user_id = await fetch_current_user_id(request.app.state.client_factory(token))
        except CatalogError as e:
            raise catalog_http_error(e) from e
        if user_id != session.user_id:
            raise HTTPException(status_code=403, detail="Session belongs to another account.")
    session.update_access_token(token)
    return session
