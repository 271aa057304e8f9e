from pathlib import Path

import pytest

from fakes import FakeSpotify, make_playlist, make_track
from playlist_sorter.data import PlaylistSnapshotCache, PreferenceStore, save_selected_track_ids
from playlist_sorter.sorting import (
    PlaylistDirectoryCache,
    SessionRegistry,
    SessionSetupError,
    load_playlists,
    open_session,
    select_tracks,
)
from playlist_sorter.spotify import RateLimited, fetch_playlists

pytestmark = pytest.mark.anyio


def _directory(spotify: FakeSpotify) -> PlaylistDirectoryCache:
    async def _fetch(token: str):
        return await fetch_playlists(spotify.client(token))

    return PlaylistDirectoryCache(_fetch)


async def test_select_tracks_falls_back_to_everything() -> None:
    tracks = [make_track("a"), make_track("b")]

    assert [t.id for t in select_tracks(tracks, ["b", "zzz"])] == ["b"]
    assert [t.id for t in select_tracks(tracks, ["zzz"])] == ["a", "b"]
    assert [t.id for t in select_tracks(tracks, None)] == ["a", "b"]


async def test_rate_limited_directory_uses_stored_snapshot(tmp_path: Path) -> None:
    now = [1000.0]
    spotify = FakeSpotify(playlists=[make_playlist("p1")])
    store = PreferenceStore(str(tmp_path / "default.json"))
    snapshot = PlaylistSnapshotCache(store, clock=lambda: now[0])
    snapshot.save([make_playlist("old")])
    now[0] += 600
    spotify.fail("GET", "/me/playlists", 429)

    playlists = await load_playlists(spotify.client(), _directory(spotify), snapshot)

    assert [p.id for p in playlists] == ["old"]
    assert snapshot.in_cooldown()

    # inside the cooldown the upstream API is left alone
    await load_playlists(spotify.client(), _directory(spotify), snapshot)
    assert len(spotify.calls("GET", "/me/playlists")) == 1


async def test_rate_limited_directory_without_snapshot_raises(tmp_path: Path) -> None:
    spotify = FakeSpotify()
    spotify.fail("GET", "/me/playlists", 429)
    snapshot = PlaylistSnapshotCache(PreferenceStore(str(tmp_path / "default.json")))

    with pytest.raises(RateLimited):
        await load_playlists(spotify.client(), _directory(spotify), snapshot)


async def test_open_session_applies_stored_selection(tmp_path: Path) -> None:
    spotify = FakeSpotify(
        liked=[make_track("a"), make_track("b")],
        playlists=[make_playlist("p1")],
        members={"p1": ["a"]},
    )
    store = PreferenceStore(str(tmp_path / "default.json"))
    save_selected_track_ids(store, ["b"])
    registry = SessionRegistry()

    session = await open_session(
        spotify.client(), store, _directory(spotify), ["p1"], registry, owner="alice"
    )
    await session.settle()

    assert registry.get(session.id) is session
    assert session.owner == "alice"
    assert session.user_id == "user-1"
    assert [t.id for t in session.queue.queue] == ["b"]
    assert session.membership.ready
    session.close()


async def test_open_session_rejects_bad_selection(tmp_path: Path) -> None:
    spotify = FakeSpotify(liked=[make_track("a")], playlists=[make_playlist("p1")])
    store = PreferenceStore(str(tmp_path / "default.json"))

    with pytest.raises(SessionSetupError):
        await open_session(spotify.client(), store, _directory(spotify), ["p9"])
    with pytest.raises(SessionSetupError):
        await open_session(spotify.client(), store, _directory(spotify), [])
