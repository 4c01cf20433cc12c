from __future__ import annotations

import asyncio
import sys
from typing import Callable, List, Optional, Set, Tuple

from midipiano.config import MIDI_CHANNEL
from midipiano.midi_out import CoreSink
from midipiano.protocol import NoteEvent, NoteOn, encode_event


class VirtualSink(CoreSink):
    """A minimal sink capturing events for tests and demos.

    Records tuples like (type, channel, pitch, velocity). Types: 'on', 'off'.
    """

    def __init__(self) -> None:
        self.events: List[Tuple[str, int, int, int]] = []
        self.closed = False

    def note_on(self, channel: int, pitch: int, velocity: int) -> None:
        self.events.append(("on", channel, pitch, velocity))

    def note_off(self, channel: int, pitch: int) -> None:
        self.events.append(("off", channel, pitch, 0))

    def close(self) -> None:
        self.closed = True


class LocalSink:
    """Local MIDI device sink; active while a CoreSink is attached."""

    name = "local"

    def __init__(self, sink: Optional[CoreSink] = None, channel: int = MIDI_CHANNEL):
        self.sink = sink
        self.channel = channel

    @property
    def active(self) -> bool:
        return self.sink is not None

    def enable(self, sink: CoreSink) -> None:
        self.sink = sink

    def disable(self) -> Optional[CoreSink]:
        sink, self.sink = self.sink, None
        return sink

    def deliver(self, event: NoteEvent) -> None:
        if isinstance(event, NoteOn):
            self.sink.note_on(self.channel, event.note, event.velocity)
        else:
            self.sink.note_off(self.channel, event.note)


class RelaySink:
    """Network relay sink over a websockets client connection.

    Sends are scheduled as tasks on the running loop and never awaited by the
    caller. `on_lost(reason)` fires when the server closes the connection or
    it fails; it does not fire for a `close()` we initiated.
    """

    name = "relay"

    def __init__(self, on_lost: Optional[Callable[[str], None]] = None):
        self.ws = None
        self.url: Optional[str] = None
        self.on_lost = on_lost
        self._reader: Optional[asyncio.Future] = None
        self._pending: Set[asyncio.Future] = set()
        self._closing = False

    @property
    def is_open(self) -> bool:
        from websockets.protocol import State

        return self.ws is not None and self.ws.state is State.OPEN

    @property
    def active(self) -> bool:
        return self.is_open

    async def connect(self, url: str, timeout: float = 5.0) -> None:
        import websockets  # type: ignore

        if self.ws is not None:
            # one connection per sink
            await self.close()
        self.ws = await websockets.connect(url, open_timeout=timeout)
        self.url = url
        self._closing = False
        self._reader = asyncio.ensure_future(self._read_loop(self.ws))

    async def _read_loop(self, ws) -> None:
        from websockets.exceptions import ConnectionClosed

        reason = "closed by server"
        try:
            async for message in ws:
                print(f"[ws] server message: {message}", flush=True)
        except ConnectionClosed as e:
            reason = f"connection error: {e}"
        if ws is self.ws and not self._closing and self.on_lost is not None:
            self.on_lost(reason)

    def deliver(self, event: NoteEvent) -> None:
        task = asyncio.ensure_future(self.ws.send(encode_event(event)))
        self._pending.add(task)
        task.add_done_callback(self._sent)

    def _sent(self, task: asyncio.Future) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            print(f"[ws] send failed: {exc}", file=sys.stderr, flush=True)

    def detach(self) -> None:
        """Drop the connection reference without a close handshake."""
        self.ws = None

    async def close(self) -> None:
        ws, self.ws = self.ws, None
        self._closing = True
        # queued frames (e.g. all-notes-off) go out before the close frame
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
        if ws is not None:
            await ws.close()
        if self._reader is not None:
            await asyncio.gather(self._reader, return_exceptions=True)
            self._reader = None


class FanOut:
    """Delivers each note event to every active sink, independently."""

    def __init__(self, *sinks) -> None:
        self.sinks = list(sinks)
        self.dropped = 0
        self.failures = 0

    def emit(self, event: NoteEvent) -> int:
        """Returns the number of sinks that accepted the event."""
        delivered = 0
        attempted = 0
        for sink in self.sinks:
            if not sink.active:
                continue
            attempted += 1
            try:
                sink.deliver(event)
                delivered += 1
            except Exception as e:
                self.failures += 1
                print(f"[sink] {sink.name} failed on {event.type} {event.note}: {e}", file=sys.stderr, flush=True)
        if attempted == 0:
            self.dropped += 1
            print(f"[sink] no relay or local output connected; dropped {event.type} {event.note}", file=sys.stderr, flush=True)
        return delivered
