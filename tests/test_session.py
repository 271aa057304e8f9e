import asyncio
from typing import List, Optional

import pytest

from fakes import FakeSpotify, make_playlist, make_track
from playlist_sorter.core import TrackState
from playlist_sorter.data import SorterSettings
from playlist_sorter.sorting import (
    ALREADY_MEMBER_MESSAGE,
    LOADING_MEMBERSHIP_MESSAGE,
    ActionOutcome,
    SessionRegistry,
    SortingSession,
)

pytestmark = pytest.mark.anyio


def build(
    members: Optional[dict] = None,
    settings: Optional[SorterSettings] = None,
    on_settings_change=None,
    track_ids: str = "abc",
):
    tracks = [make_track(t) for t in track_ids]
    playlists = [make_playlist("p1", "Chill"), make_playlist("p2", "Party")]
    spotify = FakeSpotify(
        liked=tracks,
        playlists=playlists,
        members=members if members is not None else {"p1": [], "p2": []},
    )
    session = SortingSession(
        tracks,
        playlists,
        spotify.client(),
        settings=settings,
        on_settings_change=on_settings_change,
    )
    return session, spotify


def head_ids(session: SortingSession) -> List[str]:
    return [t.id for t in session.snapshot().head]


async def test_sort_is_blocked_until_membership_is_loaded() -> None:
    session, spotify = build()

    result = session.sort("a", "p1")

    assert result.outcome == ActionOutcome.REJECTED
    assert result.message == LOADING_MEMBERSHIP_MESSAGE
    assert session.queue.state("a") == TrackState.PENDING
    assert session.pending_mutations == []


async def test_duplicate_sort_is_rejected_without_mutation() -> None:
    session, spotify = build(members={"p1": ["a"], "p2": []})
    await session.start_membership()

    result = session.sort("a", "p1")

    assert result.outcome == ActionOutcome.REJECTED
    assert result.message == ALREADY_MEMBER_MESSAGE
    assert session.queue.state("a") == TrackState.PENDING
    await session.settle()
    assert spotify.calls("POST") == []


async def test_sort_adds_track_and_records_history() -> None:
    session, spotify = build()
    await session.start_membership()

    result = session.sort("a", "p2")

    assert result.applied
    assert head_ids(session) == ["b", "c"]
    assert session.membership.contains("p2", "a") is True
    assert session.queue.get("a").playlist_count == 1

    await session.settle()
    history = session.history
    assert [(h.track.id, h.playlist_name) for h in history] == [("a", "Party")]
    assert spotify.members["p2"] == ["a"]


async def test_undo_restores_track_and_issues_one_removal() -> None:
    session, spotify = build()
    await session.start_membership()
    session.sort("a", "p1")
    await session.settle()
    entry = session.history[0]

    result = await session.undo(entry.id)

    assert result.applied
    assert head_ids(session)[0] == "a"
    assert session.membership.contains("p1", "a") is False
    assert len(spotify.calls("DELETE", "/playlists/p1/tracks")) == 1
    assert session.history == []
    assert spotify.members["p1"] == []


async def test_undo_rolls_back_when_removal_fails() -> None:
    session, spotify = build()
    await session.start_membership()
    session.sort("a", "p1")
    await session.settle()
    spotify.fail("DELETE", "/playlists/p1/tracks", 500)

    result = await session.undo_last()

    assert result.outcome == ActionOutcome.FAILED
    assert "500" in result.error
    assert session.queue.state("a") == TrackState.PROCESSED
    assert session.membership.contains("p1", "a") is True
    assert len(session.history) == 1


async def test_failed_add_returns_track_to_front_of_queue() -> None:
    session, spotify = build()
    await session.start_membership()
    spotify.fail("POST", "/playlists/p1/tracks", 500)

    session.sort("b", "p1")
    await session.settle()

    snapshot = session.snapshot()
    assert head_ids(session)[0] == "b"
    assert session.queue.state("b") == TrackState.PENDING
    assert session.membership.contains("p1", "b") is False
    assert session.history == []
    assert "500" in snapshot.error


async def test_unauthorized_add_expires_session_and_restores_queued_tracks() -> None:
    session, spotify = build()
    await session.start_membership()
    spotify.fail("POST", "/playlists/p1/tracks", 401)

    session.sort("a", "p1")
    session.sort("b", "p1")
    await session.settle()

    assert session.session_expired
    assert session.queue.state("a") == TrackState.PENDING
    assert session.queue.state("b") == TrackState.PENDING
    assert head_ids(session) == ["a", "b", "c"]
    assert len(spotify.calls("POST")) == 1

    result = session.skip("c")
    assert result.outcome == ActionOutcome.SESSION_EXPIRED
    assert session.queue.state("c") == TrackState.PENDING


async def test_adds_reach_spotify_in_submission_order() -> None:
    session, spotify = build()
    await session.start_membership()

    session.sort("a", "p1")
    session.sort("b", "p2")
    await session.settle()

    posts = [c[1] for c in spotify.calls("POST")]
    assert [p.split("/playlists/")[1].split("/")[0] for p in posts] == ["p1", "p2"]
    assert [h.track.id for h in session.history] == ["a", "b"]


async def test_sort_without_duplicate_prevention_skips_membership_check() -> None:
    session, spotify = build(settings=SorterSettings(prevent_duplicates=False))

    result = session.sort("a", "p1")
    await session.settle()

    assert result.applied
    assert spotify.members["p1"] == ["a"]


async def test_partial_membership_failure_blocks_only_that_playlist() -> None:
    session, spotify = build()
    spotify.fail("GET", "/playlists/p2/tracks", 500)

    result = await session.start_membership()

    assert not result.all_succeeded
    assert session.sort("a", "p2").message == LOADING_MEMBERSHIP_MESSAGE
    assert session.sort("a", "p1").applied
    assert session.snapshot().error is None
    await session.settle()
    assert spotify.members["p1"] == ["a"]


async def test_skip_and_skip_to() -> None:
    session, _ = build(track_ids="abcd")

    assert session.skip("a").applied
    assert session.skip("a").outcome == ActionOutcome.REJECTED

    result = session.skip_to("d")
    assert result.message == "Skipped 2 tracks."
    assert head_ids(session) == ["d"]
    assert session.snapshot().processed_count == 3


async def test_press_key_routes_to_layout_slots() -> None:
    session, spotify = build()
    await session.start_membership()

    assert session.press_key("a").applied  # left bottom → p1
    assert session.press_key("W").message == "Skipped."
    assert session.press_key("d").applied  # right bottom → p2
    assert session.press_key("x").outcome == ActionOutcome.REJECTED
    await session.settle()

    assert spotify.members == {"p1": ["a"], "p2": ["c"]}


async def test_set_filter_persists_settings() -> None:
    saved = []
    session, _ = build(on_settings_change=saved.append)

    assert session.set_filter("colour", "red").outcome == ActionOutcome.REJECTED
    assert session.set_filter("min_popularity", 500).outcome == ActionOutcome.REJECTED
    assert session.set_filter("min_date", 0).applied
    assert session.set_filter("min_popularity", 60).applied

    assert head_ids(session) == []
    assert saved[-1].filters.min_popularity == 60
    assert saved[-1].filters.min_date is None


async def test_set_sort_validates_key() -> None:
    session, _ = build()

    assert session.set_sort("loudness", "asc").outcome == ActionOutcome.REJECTED
    assert session.set_sort("song", "desc").applied
    assert head_ids(session) == ["c", "b", "a"]


async def test_exclude_all_playlists_hides_tracks_in_every_playlist() -> None:
    session, _ = build(members={"p1": ["a", "b"], "p2": ["a"]})
    await session.start_membership()

    session.set_exclude_all_playlists(True)

    assert head_ids(session) == ["b", "c"]
    assert session.settings.exclude_all_playlists


async def test_closed_session_rejects_actions() -> None:
    session, _ = build()
    registry = SessionRegistry()
    registry.add(session)

    registry.close(session.id)

    assert registry.get(session.id) is None
    assert not session.active
    assert session.skip("a").outcome == ActionOutcome.REJECTED


async def test_skip_to_is_rejected_while_undo_is_running() -> None:
    session, spotify = build()
    await session.start_membership()
    session.sort("a", "p1")
    await session.settle()
    gate = spotify.hold("DELETE", "/playlists/p1/tracks")

    undo = asyncio.ensure_future(session.undo(session.history[0].id))
    await gate.wait_entered()

    assert session.skip("a").outcome == ActionOutcome.REJECTED
    assert session.skip_to("b").outcome == ActionOutcome.REJECTED

    gate.release()
    result = await undo

    assert result.applied
    assert session.queue.state("a") == TrackState.PENDING
    assert head_ids(session) == ["a", "b", "c"]
    assert session.skip_to("b").applied
    assert head_ids(session) == ["b", "c"]


async def test_add_confirmed_after_close_is_not_recorded() -> None:
    session, spotify = build()
    await session.start_membership()
    gate = spotify.hold("POST", "/playlists/p1/tracks")

    session.sort("a", "p1")
    session.sort("b", "p1")
    await gate.wait_entered()
    dropped = session.close()
    gate.release()
    await session.settle()

    assert [m.track.id for m in dropped] == ["b"]
    assert session.history == []
    assert spotify.members["p1"] == ["a"]


async def test_membership_loaded_after_close_is_discarded() -> None:
    session, spotify = build(members={"p1": ["a"], "p2": ["a"]})
    gate = spotify.hold("GET", "/playlists/p1/tracks")

    build_task = asyncio.ensure_future(session.start_membership())
    await gate.wait_entered()
    session.close()
    gate.release()

    assert await build_task is None
    assert not session.membership.ready
    assert session.membership.contains("p2", "a") is None
    assert session.queue.get("a").playlist_count == 0


async def test_scheduled_membership_build_is_cancelled_on_close() -> None:
    session, spotify = build()
    gate = spotify.hold("GET", "/playlists/p1/tracks")

    task = session.schedule_membership()
    await gate.wait_entered()
    session.close()
    gate.release()
    await asyncio.wait({task})

    assert task.cancelled()
    assert not session.membership.ready


async def test_membership_build_keeps_adds_still_in_flight() -> None:
    session, spotify = build(settings=SorterSettings(prevent_duplicates=False))
    gate = spotify.hold("POST", "/playlists/p1/tracks")
    session.sort("a", "p1")
    await gate.wait_entered()

    await session.start_membership()

    # the listing was fetched before the add landed
    assert session.membership.contains("p1", "a") is True
    assert session.queue.get("a").playlist_count == 1

    gate.release()
    await session.settle()
    assert session.membership.contains("p1", "a") is True
    assert [h.track.id for h in session.history] == ["a"]


async def test_failed_add_reverts_membership_applied_by_rebuild() -> None:
    session, spotify = build(settings=SorterSettings(prevent_duplicates=False))
    gate = spotify.hold("POST", "/playlists/p1/tracks")
    spotify.fail("POST", "/playlists/p1/tracks", 500)
    session.sort("a", "p1")
    await gate.wait_entered()
    await session.start_membership()

    gate.release()
    await session.settle()

    assert session.membership.contains("p1", "a") is False
    assert session.queue.state("a") == TrackState.PENDING


async def test_registry_keeps_one_session_per_owner() -> None:
    first, _ = build()
    other, _ = build()
    second, _ = build()
    first.owner = second.owner = "alice"
    other.owner = "bob"
    registry = SessionRegistry()

    for session in (first, other, second):
        registry.add(session)

    assert registry.get(first.id) is None
    assert not first.active
    assert registry.get(second.id) is second
    assert registry.get(other.id) is other
    assert len(registry) == 2


async def test_registry_closes_idle_sessions() -> None:
    now = [0.0]
    registry = SessionRegistry(idle_ttl_seconds=60, clock=lambda: now[0])
    idle, _ = build()
    busy, _ = build()
    registry.add(idle)
    registry.add(busy)

    now[0] = 40
    registry.get(busy.id)
    now[0] = 70

    assert registry.get(idle.id) is None
    assert not idle.active
    assert registry.get(busy.id) is busy
    assert len(registry) == 1
