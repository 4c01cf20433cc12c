from __future__ import annotations

import sys
from typing import List, Optional

from midipiano.config import MIDI_CHANNEL, VIRTUAL_PORT_NAME
from midipiano.notes import NOTE_MAX, NOTE_MIN


class CoreSink:
    """Abstract MIDI sink: channel-voice note on/off plus shutdown."""

    def note_on(self, channel: int, pitch: int, velocity: int) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    def note_off(self, channel: int, pitch: int) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    def all_notes_off(self, channel: int = MIDI_CHANNEL) -> int:
        """Note Off for every note number on `channel`. Returns how many were sent."""
        sent = 0
        for pitch in range(NOTE_MIN, NOTE_MAX + 1):
            try:
                self.note_off(channel, pitch)
                sent += 1
            except Exception as e:
                print(f"[midi] note_off {pitch} failed: {e}", file=sys.stderr, flush=True)
        return sent

    def close(self) -> None:  # pragma: no cover - interface
        raise NotImplementedError


class MidoSink(CoreSink):
    def __init__(self, out_port):
        self.out = out_port

    def note_on(self, channel: int, pitch: int, velocity: int) -> None:
        import mido

        self.out.send(mido.Message("note_on", note=int(pitch), velocity=int(velocity), channel=int(channel)))

    def note_off(self, channel: int, pitch: int) -> None:
        import mido

        self.out.send(mido.Message("note_off", note=int(pitch), velocity=0, channel=int(channel)))

    def close(self) -> None:
        close = getattr(self.out, "close", None)
        if close is not None:
            close()


class _NullOut:
    name = "null"

    def send(self, *_args, **_kwargs):
        pass

    def close(self):
        pass


def list_output_names() -> List[str]:
    import mido

    try:
        return list(mido.get_output_names())
    except Exception as e:
        # System MIDI stack may be unreachable (headless, sandboxed)
        print(f"[midi] cannot enumerate outputs: {e}", file=sys.stderr, flush=True)
        return []


def _open_virtual(name: str):
    import mido

    try:
        port = mido.open_output(name, virtual=True)
        print(f'[midi] created virtual port "{name}"', flush=True)
        return port
    except Exception as e:
        print(f"[midi] virtual port unavailable ({e}); MIDI output disabled", file=sys.stderr, flush=True)
        return _NullOut()


def open_mido_output(name_filter: Optional[str] = None, virtual_name: str = VIRTUAL_PORT_NAME):
    """Open a Mido output port with fallbacks.

    - With `name_filter`, open the first port whose name contains it.
    - Otherwise open the first available port.
    - With no ports, or on open failure, create a virtual port `virtual_name`.
    - If even that fails, return a no-op output exposing `.send()`/`.close()`.
    """
    import mido

    names = list_output_names()
    print("[midi] available outputs:", flush=True)
    for i, name in enumerate(names):
        print(f"[midi]   {i}: {name}", flush=True)
    if not names:
        print("[midi] no existing MIDI outputs found", flush=True)
        return _open_virtual(virtual_name)
    chosen = names[0]
    if name_filter:
        matches = [n for n in names if name_filter in n]
        if not matches:
            print(f"[midi] no output matches {name_filter!r}", flush=True)
            return _open_virtual(virtual_name)
        chosen = matches[0]
    try:
        port = mido.open_output(chosen)
    except Exception as e:
        print(f"[midi] failed to open {chosen!r}: {e}", file=sys.stderr, flush=True)
        return _open_virtual(virtual_name)
    print(f'[midi] using output "{chosen}"', flush=True)
    return port
