"""Serialized delivery of "add to playlist" writes.

Sort actions enqueue a PendingMutation the moment they are committed. A
single worker task drains the FIFO one entry at a time, so at most one add
is in flight and adds reach the upstream API in submission order. Failed
adds are reported once and dropped; nothing is retried here.

Removals (used by undo) bypass the FIFO: the caller awaits the outcome to
decide whether its local reversal stands.
"""

import asyncio
from collections import deque
from typing import Any, Awaitable, Callable, Deque, List, Optional

from playlist_sorter.core import PendingMutation, Track, log_error, log_step, log_success

WriteFn = Callable[[Track, str], Awaitable[Any]]
ConfirmedFn = Callable[[PendingMutation], None]
FailedFn = Callable[[PendingMutation, Exception], None]


class MutationPipeline:
    def __init__(
        self,
        add: WriteFn,
        remove: WriteFn,
        on_confirmed: ConfirmedFn,
        on_failed: FailedFn,
    ) -> None:
        self._add = add
        self._remove = remove
        self._on_confirmed = on_confirmed
        self._on_failed = on_failed
        self._queue: Deque[PendingMutation] = deque()
        self._in_flight: Optional[PendingMutation] = None
        self._worker: Optional[asyncio.Task] = None
        self._idle = asyncio.Event()
        self._idle.set()
        self._halted = False

    @property
    def pending(self) -> List[PendingMutation]:
        """The in-flight mutation (if any) followed by the queued ones."""
        head = [self._in_flight] if self._in_flight else []
        return head + list(self._queue)

    @property
    def in_flight(self) -> Optional[PendingMutation]:
        return self._in_flight

    @property
    def halted(self) -> bool:
        return self._halted

    def enqueue(self, track: Track, playlist_id: str) -> PendingMutation:
        if self._halted:
            raise RuntimeError("Mutation pipeline is halted.")
        mutation = PendingMutation(track=track, playlist_id=playlist_id)
        self._queue.append(mutation)
        self._idle.clear()
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(self._drain())
        return mutation

    async def _drain(self) -> None:
        try:
            while self._queue and not self._halted:
                mutation = self._queue.popleft()
                self._in_flight = mutation
                log_step(f"Adding {mutation.track.name!r} to playlist {mutation.playlist_id}...")
                try:
                    await self._add(mutation.track, mutation.playlist_id)
                except Exception as exc:  # noqa: BLE001
                    self._in_flight = None
                    log_error(f"Could not add {mutation.track.name!r}: {exc}")
                    self._on_failed(mutation, exc)
                else:
                    self._in_flight = None
                    log_success(f"Added {mutation.track.name!r} to playlist {mutation.playlist_id}.")
                    self._on_confirmed(mutation)
        finally:
            self._in_flight = None
            if not self._queue or self._halted:
                self._idle.set()

    async def remove(self, track: Track, playlist_id: str) -> Any:
        return await self._remove(track, playlist_id)

    def halt(self) -> List[PendingMutation]:
        """Stop draining and return the mutations that will never be sent."""
        self._halted = True
        dropped = list(self._queue)
        self._queue.clear()
        if self._in_flight is None:
            self._idle.set()
        return dropped

    async def wait_idle(self) -> None:
        await self._idle.wait()
