import asyncio

import pytest

from fakes import make_track
from playlist_sorter.sorting import MutationPipeline
from playlist_sorter.spotify import CatalogError

pytestmark = pytest.mark.anyio


class Recorder:
    def __init__(self) -> None:
        self.events = []
        self.confirmed = []
        self.failed = []
        self.gates = {}
        self.fail_ids = set()

    async def add(self, track, playlist_id):
        self.events.append(("start", track.id))
        gate = self.gates.get(track.id)
        if gate is not None:
            await gate.wait()
        self.events.append(("end", track.id))
        if track.id in self.fail_ids:
            raise CatalogError("nope", status=500, body="nope")

    async def remove(self, track, playlist_id):
        self.events.append(("remove", track.id))

    def pipeline(self) -> MutationPipeline:
        return MutationPipeline(
            add=self.add,
            remove=self.remove,
            on_confirmed=self.confirmed.append,
            on_failed=lambda m, e: self.failed.append((m, e)),
        )


async def test_adds_run_one_at_a_time_in_submission_order() -> None:
    rec = Recorder()
    rec.gates["a"] = asyncio.Event()
    pipeline = rec.pipeline()

    pipeline.enqueue(make_track("a"), "p1")
    pipeline.enqueue(make_track("b"), "p2")
    await asyncio.sleep(0.01)

    assert rec.events == [("start", "a")]
    assert [m.track.id for m in pipeline.pending] == ["a", "b"]

    rec.gates["a"].set()
    await pipeline.wait_idle()

    assert rec.events == [("start", "a"), ("end", "a"), ("start", "b"), ("end", "b")]
    assert [m.track.id for m in rec.confirmed] == ["a", "b"]
    assert pipeline.pending == []


async def test_failure_is_reported_and_not_retried() -> None:
    rec = Recorder()
    rec.fail_ids.add("a")
    pipeline = rec.pipeline()

    pipeline.enqueue(make_track("a"), "p1")
    pipeline.enqueue(make_track("b"), "p1")
    await pipeline.wait_idle()

    assert [m.track.id for m, _ in rec.failed] == ["a"]
    assert [m.track.id for m in rec.confirmed] == ["b"]
    assert rec.events.count(("start", "a")) == 1


async def test_halt_drops_queued_entries() -> None:
    rec = Recorder()
    rec.gates["a"] = asyncio.Event()
    pipeline = rec.pipeline()

    pipeline.enqueue(make_track("a"), "p1")
    pipeline.enqueue(make_track("b"), "p1")
    await asyncio.sleep(0.01)
    dropped = pipeline.halt()
    rec.gates["a"].set()
    await pipeline.wait_idle()

    assert [m.track.id for m in dropped] == ["b"]
    assert ("start", "b") not in rec.events
    with pytest.raises(RuntimeError):
        pipeline.enqueue(make_track("c"), "p1")


async def test_remove_is_a_direct_call() -> None:
    rec = Recorder()
    pipeline = rec.pipeline()

    await pipeline.remove(make_track("a"), "p1")

    assert rec.events == [("remove", "a")]
    assert pipeline.pending == []
