"""In-memory stand-ins for the Spotify Web API used across the tests.

FakeHttp mimics the slice of `requests.Session` that CatalogClient uses
(`request(method, url, headers=, json=, timeout=)`); FakeSpotify is a small
routing handler that keeps liked tracks, playlists and playlist contents.
"""

import asyncio
import json as jsonlib
import threading
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import parse_qs, urlsplit

from playlist_sorter.core import Playlist, Track
from playlist_sorter.spotify import CatalogClient


class FakeResponse:
    def __init__(
        self,
        status_code: int = 200,
        payload: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        self.status_code = status_code
        self.headers = headers or {}
        self._payload = payload
        self.text = "" if payload is None else jsonlib.dumps(payload)
        self.content = self.text.encode("utf-8")

    def json(self) -> Any:
        return jsonlib.loads(self.text)


Handler = Callable[[str, str, Any], Any]


class FakeHttp:
    def __init__(self, handler: Handler, with_headers: bool = False) -> None:
        self.handler = handler
        self.with_headers = with_headers
        self.calls: List[Tuple[str, str, Any]] = []
        self._lock = threading.Lock()

    def request(self, method, url, headers=None, json=None, timeout=None):
        with self._lock:
            self.calls.append((method, url, json))
        if self.with_headers:
            result = self.handler(method, url, json, headers or {})
        else:
            result = self.handler(method, url, json)
        if isinstance(result, BaseException):
            raise result
        return result


def scripted(*responses: Any) -> Handler:
    """Handler returning the given responses one per call, in order."""
    queue = list(responses)

    def _handler(method: str, url: str, body: Any) -> Any:
        return queue.pop(0)

    return _handler


async def no_sleep(seconds: float) -> None:
    return None


class Gate:
    """Holds one fake request until the test releases it."""

    def __init__(self) -> None:
        self.entered = threading.Event()
        self.released = threading.Event()

    def release(self) -> None:
        self.released.set()

    async def wait_entered(self) -> None:
        for _ in range(500):
            if self.entered.is_set():
                return
            await asyncio.sleep(0.01)
        raise AssertionError("request never reached the fake API")


def make_track(
    track_id: str,
    name: Optional[str] = None,
    popularity: int = 50,
    saved_at: Optional[str] = "2024-01-01T00:00:00Z",
    genres: Optional[List[str]] = None,
    artists: str = "Artist",
) -> Track:
    return Track(
        id=track_id,
        name=name or f"Song {track_id}",
        artists=artists,
        uri=f"spotify:track:{track_id}",
        popularity=popularity,
        saved_at=saved_at,
        genres=list(genres or []),
    )


def make_playlist(playlist_id: str, name: Optional[str] = None) -> Playlist:
    return Playlist(id=playlist_id, name=name or f"Playlist {playlist_id}", owner="me")


def saved_item(track: Track, artist_id: str = "artist-1") -> Dict[str, Any]:
    track_id = None if track.id.startswith("local-") else track.id
    return {
        "added_at": track.saved_at,
        "track": {
            "id": track_id,
            "name": track.name,
            "uri": track.uri,
            "popularity": track.popularity,
            "artists": [{"id": artist_id, "name": track.artists}],
            "album": {"images": [{"url": f"https://img.example/{track.id}.jpg"}]},
        },
    }


class FakeSpotify:
    """Routes CatalogClient calls to in-memory state."""

    API_PREFIX = "/v1"

    def __init__(
        self,
        liked: Optional[List[Track]] = None,
        playlists: Optional[List[Playlist]] = None,
        members: Optional[Dict[str, List[str]]] = None,
        artist_genres: Optional[Dict[str, List[str]]] = None,
        users: Optional[Dict[str, str]] = None,
    ) -> None:
        self.liked = list(liked or [])
        self.playlists = list(playlists or [])
        self.members: Dict[str, List[str]] = {k: list(v) for k, v in (members or {}).items()}
        self.artist_genres = dict(artist_genres or {})
        self.users = dict(users or {})
        self.failures: Dict[Tuple[str, str], FakeResponse] = {}
        self.gates: Dict[Tuple[str, str], Gate] = {}
        self.http = FakeHttp(self.handle, with_headers=True)

    def client(self, token: str = "token") -> CatalogClient:
        return CatalogClient(token, http=self.http, sleep=no_sleep)

    def fail(self, method: str, path: str, status: int, payload: Any = None) -> None:
        self.failures[(method, path)] = FakeResponse(status, payload or {"error": status})

    def hold(self, method: str, path: str) -> Gate:
        """Block the next matching request until `release()` is called."""
        gate = Gate()
        self.gates[(method, path)] = gate
        return gate

    def calls(self, method: str, path_prefix: str = "") -> List[Tuple[str, str, Any]]:
        return [
            c
            for c in self.http.calls
            if c[0] == method and self._path(c[1]).startswith(path_prefix)
        ]

    def _path(self, url: str) -> str:
        path = urlsplit(url).path
        if path.startswith(self.API_PREFIX):
            path = path[len(self.API_PREFIX) :]
        return path

    def handle(
        self, method: str, url: str, body: Any, headers: Optional[Dict[str, str]] = None
    ) -> FakeResponse:
        path = self._path(url)
        query = parse_qs(urlsplit(url).query)
        token = (headers or {}).get("Authorization", "").partition(" ")[2]

        gate = self.gates.pop((method, path), None)
        if gate is not None:
            gate.entered.set()
            gate.released.wait(timeout=5)

        failure = self.failures.get((method, path))
        if failure is not None:
            return failure

        if method == "GET" and path == "/me":
            return FakeResponse(200, {"id": self.users.get(token, "user-1"), "display_name": "Me"})
        if method == "GET" and path == "/me/tracks":
            limit = int(query.get("limit", ["50"])[0])
            items = [saved_item(t) for t in self.liked][:limit]
            return FakeResponse(200, {"items": items, "next": None})
        if method == "GET" and path == "/artists":
            ids = query.get("ids", [""])[0].split(",")
            artists = [{"id": i, "genres": self.artist_genres.get(i, [])} for i in ids if i]
            return FakeResponse(200, {"artists": artists})
        if method == "GET" and path == "/me/playlists":
            items = [
                {"id": p.id, "name": p.name, "owner": {"display_name": p.owner},
                 "tracks": {"total": p.total}, "images": []}
                for p in self.playlists
            ]
            return FakeResponse(200, {"items": items, "next": None})
        if method == "POST" and path.startswith("/users/") and path.endswith("/playlists"):
            created = Playlist(id=f"new-{len(self.playlists) + 1}", name=body["name"], owner="Me")
            self.playlists.append(created)
            return FakeResponse(201, {"id": created.id, "name": created.name,
                                      "owner": {"display_name": "Me"}})

        if path.startswith("/playlists/") and path.endswith("/tracks"):
            playlist_id = path.split("/")[2]
            members = self.members.setdefault(playlist_id, [])
            if method == "GET":
                items = [{"track": {"id": tid}} for tid in members]
                return FakeResponse(200, {"items": items, "next": None})
            if method == "POST":
                for uri in body["uris"]:
                    members.append(uri.rsplit(":", 1)[-1])
                return FakeResponse(201, {"snapshot_id": "s"})
            if method == "DELETE":
                for entry in body["tracks"]:
                    tid = entry["uri"].rsplit(":", 1)[-1]
                    self.members[playlist_id] = [m for m in members if m != tid]
                return FakeResponse(200, {"snapshot_id": "s"})

        return FakeResponse(404, {"error": f"no route for {method} {path}"})
