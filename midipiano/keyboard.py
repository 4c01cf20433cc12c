from __future__ import annotations

import asyncio
import sys
from typing import Callable, Dict, FrozenSet, Hashable, Iterable, List, Optional

from midipiano.contacts import ContactTracker
from midipiano.midi_out import CoreSink
from midipiano.notes import (
    OCTAVE_DEFAULT,
    VELOCITY_DEFAULT,
    clamp_octave,
    clamp_velocity,
    note_label,
)
from midipiano.protocol import NoteOff, NoteOn
from midipiano.sinks import FanOut, LocalSink, RelaySink


MOUSE = "mouse"


class Keyboard:
    """One playable keyboard session.

    Owns the contact table, octave, velocity and the sink fan-out. All methods
    run on the event loop thread; none of them block.

    - press/release are deduplicated per contact (see ContactTracker).
    - Octave/velocity changes only affect later presses.
    - Any disconnect (ours or the transport's) sends Note Off for every
      sounding note before the sink goes away.
    """

    def __init__(
        self,
        relay: Optional[RelaySink] = None,
        local: Optional[LocalSink] = None,
        octave: int = OCTAVE_DEFAULT,
        velocity: int = VELOCITY_DEFAULT,
        on_notify: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.tracker = ContactTracker()
        self.octave = clamp_octave(octave)
        self.velocity = clamp_velocity(velocity)
        self.relay = relay if relay is not None else RelaySink()
        self.relay.on_lost = self.on_relay_lost
        self.local = local if local is not None else LocalSink()
        self.fanout = FanOut(self.relay, self.local)
        self.notifications: List[str] = []
        self.on_notify = on_notify
        # contact -> key index, for the key's visual active state
        self._key_of: Dict[Hashable, int] = {}

    # --- Note lifecycle ---
    def press(self, key_index: int, contact_id: Hashable) -> Optional[int]:
        note = self.tracker.press(contact_id, key_index, self.octave)
        if note is None:
            return None
        self._key_of[contact_id] = int(key_index)
        self.fanout.emit(NoteOn(note, self.velocity))
        print(f"[keyboard] note on: {note} ({note_label(key_index, self.octave)})", flush=True)
        return note

    def release(self, contact_id: Hashable) -> Optional[int]:
        note = self.tracker.release(contact_id)
        if note is None:
            return None
        self._key_of.pop(contact_id, None)
        self.fanout.emit(NoteOff(note))
        print(f"[keyboard] note off: {note}", flush=True)
        return note

    def touch_start(self, key_index: int, touch_ids: Iterable[Hashable]) -> List[int]:
        notes = (self.press(key_index, t) for t in touch_ids)
        return [n for n in notes if n is not None]

    def touch_end(self, touch_ids: Iterable[Hashable]) -> List[int]:
        notes = (self.release(t) for t in touch_ids)
        return [n for n in notes if n is not None]

    touch_cancel = touch_end

    def mouse_down(self, key_index: int) -> Optional[int]:
        return self.press(key_index, MOUSE)

    def mouse_up(self) -> Optional[int]:
        return self.release(MOUSE)

    mouse_leave = mouse_up

    def all_notes_off(self) -> int:
        """Note Off for each sounding note, then forget all contacts."""
        notes = self.tracker.clear()
        self._key_of.clear()
        for note in notes:
            self.fanout.emit(NoteOff(note))
        return len(notes)

    def active_notes(self) -> FrozenSet[int]:
        return self.tracker.active_notes()

    def active_keys(self) -> FrozenSet[int]:
        return frozenset(self._key_of.values())

    # --- Controls ---
    def octave_up(self) -> int:
        return self.set_octave(self.octave + 1)

    def octave_down(self) -> int:
        return self.set_octave(self.octave - 1)

    def set_octave(self, octave: int) -> int:
        self.octave = clamp_octave(octave)
        return self.octave

    def set_velocity(self, velocity: int) -> int:
        self.velocity = clamp_velocity(velocity)
        return self.velocity

    # --- Sinks ---
    @property
    def relay_connected(self) -> bool:
        return self.relay.is_open

    @property
    def local_connected(self) -> bool:
        return self.local.active

    async def connect_relay(self, url: str, timeout: float = 5.0) -> bool:
        from websockets.exceptions import WebSocketException

        url = (url or "").strip()
        if not url:
            self._notify("enter a relay server URL")
            return False
        if self.relay.is_open:
            await self.disconnect_relay()
        try:
            await self.relay.connect(url, timeout=timeout)
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            self.relay.detach()
            self.all_notes_off()
            self._notify(f"failed to connect to {url}: {e}")
            return False
        print(f"[keyboard] relay connected: {url}", flush=True)
        return True

    async def disconnect_relay(self) -> None:
        self.all_notes_off()
        await self.relay.close()
        print("[keyboard] relay disconnected", flush=True)

    def on_relay_lost(self, reason: str) -> None:
        self.relay.detach()
        self.all_notes_off()
        self._notify(f"relay connection lost: {reason}")

    def connect_local(self, sink: CoreSink) -> None:
        self.local.enable(sink)
        print(f"[keyboard] local output connected: {type(sink).__name__}", flush=True)

    def disconnect_local(self) -> Optional[CoreSink]:
        self.all_notes_off()
        sink = self.local.disable()
        print("[keyboard] local output disconnected", flush=True)
        return sink

    def _notify(self, message: str) -> None:
        self.notifications.append(message)
        print(f"[keyboard] {message}", file=sys.stderr, flush=True)
        if self.on_notify is not None:
            self.on_notify(message)
