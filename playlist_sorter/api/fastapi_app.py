from contextlib import asynccontextmanager
from typing import Callable, List, Optional

from fastapi import FastAPI

from playlist_sorter.api.auth.routes import router as auth_router
from playlist_sorter.api.health import router as health_router
from playlist_sorter.api.sorter.routes import router as sorter_router
from playlist_sorter.api.spotify.routes import router as spotify_router
from playlist_sorter.config import LOG_LEVEL, PREFERENCES_DIR
from playlist_sorter.core import Playlist, configure_logging, log_info
from playlist_sorter.data import PreferenceStores
from playlist_sorter.sorting import PlaylistDirectoryCache, SessionRegistry
from playlist_sorter.spotify import CatalogClient, fetch_playlists

ClientFactory = Callable[[str], CatalogClient]


def create_app(
    client_factory: Optional[ClientFactory] = None,
    preferences_dir: str = PREFERENCES_DIR,
) -> FastAPI:
    configure_logging(LOG_LEVEL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        log_info(f"Shutting down; closing {len(app.state.sessions)} sorting sessions.")
        app.state.sessions.close_all()

    app = FastAPI(
        title="Playlist Sorter API",
        version="0.1.0",
        description="Backend API for sorting liked Spotify tracks into playlists.",
        lifespan=lifespan,
    )

    app.state.client_factory = client_factory or CatalogClient

    async def _fetch_directory(access_token: str) -> List[Playlist]:
        return await fetch_playlists(app.state.client_factory(access_token))

    app.state.directory_cache = PlaylistDirectoryCache(_fetch_directory)
    app.state.sessions = SessionRegistry()
    app.state.preferences = PreferenceStores(preferences_dir)

    app.include_router(health_router, tags=["health"])
    app.include_router(auth_router, prefix="/auth", tags=["auth"])
    app.include_router(spotify_router, prefix="/api", tags=["spotify"])
    app.include_router(sorter_router, prefix="/sorter", tags=["sorter"])
    return app


app = create_app()
