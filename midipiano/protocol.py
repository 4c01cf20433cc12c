from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from midipiano.notes import NOTE_MAX, NOTE_MIN, VELOCITY_MAX, VELOCITY_MIN


CONNECTED_MESSAGE = "Connected to MIDI server"


class ProtocolError(ValueError):
    pass


@dataclass(frozen=True)
class NoteOn:
    note: int
    velocity: int
    type = "noteOn"


@dataclass(frozen=True)
class NoteOff:
    note: int
    type = "noteOff"

    @property
    def velocity(self) -> int:
        return 0


NoteEvent = Union[NoteOn, NoteOff]


def _int_field(obj: Dict[str, Any], key: str, lo: int, hi: int) -> int:
    val = obj.get(key)
    # bool is an int subclass; JSON true/false are not note numbers
    if isinstance(val, bool) or not isinstance(val, int):
        raise ProtocolError(f"{key}: expected integer, got {val!r}")
    if not lo <= val <= hi:
        raise ProtocolError(f"{key}: {val} out of range {lo}..{hi}")
    return val


def parse_message(raw: Union[str, bytes]) -> NoteEvent:
    """Parse a client frame into NoteOn/NoteOff. Raises ProtocolError."""
    try:
        obj = json.loads(raw)
    except (ValueError, TypeError, RecursionError) as e:
        raise ProtocolError(f"invalid JSON: {e}") from e
    if not isinstance(obj, dict):
        raise ProtocolError("message must be a JSON object")
    t = obj.get("type")
    if t == "noteOn":
        return NoteOn(
            note=_int_field(obj, "note", NOTE_MIN, NOTE_MAX),
            velocity=_int_field(obj, "velocity", VELOCITY_MIN, VELOCITY_MAX),
        )
    if t == "noteOff":
        # velocity on noteOff is ignored; the relay always sends 0
        return NoteOff(note=_int_field(obj, "note", NOTE_MIN, NOTE_MAX))
    raise ProtocolError(f"unknown message type: {t!r}")


def event_to_dict(event: NoteEvent) -> Dict[str, Any]:
    return {"type": event.type, "note": int(event.note), "velocity": int(event.velocity)}


def encode_event(event: NoteEvent) -> str:
    return json.dumps(event_to_dict(event))


def iso_timestamp(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def connected_payload(message: str = CONNECTED_MESSAGE) -> str:
    return json.dumps({"type": "connected", "message": message, "timestamp": iso_timestamp()})
