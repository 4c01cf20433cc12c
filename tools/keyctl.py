from __future__ import annotations

import argparse
import asyncio
from typing import List

from midipiano.config import DEFAULT_RELAY_URL
from midipiano.keyboard import Keyboard
from midipiano.midi_out import MidoSink, open_mido_output
from midipiano.notes import parse_note_label


async def run(args: argparse.Namespace) -> int:
    kb = Keyboard(velocity=args.velocity)
    if args.local is not None:
        kb.connect_local(MidoSink(open_mido_output(args.local or None)))
    if not args.no_relay and not await kb.connect_relay(args.url):
        return 1
    try:
        for chord in args.notes:
            # "C4+E4+G4" presses each note with its own contact, like a multi-touch chord
            contacts: List[str] = []
            for i, label in enumerate(chord.split("+")):
                key, octave = parse_note_label(label)
                kb.set_octave(octave)
                contact = f"cli-{i}"
                if kb.press(key, contact) is not None:
                    contacts.append(contact)
            await asyncio.sleep(args.hold)
            kb.touch_end(contacts)
            await asyncio.sleep(args.gap)
    finally:
        if kb.relay_connected:
            await kb.disconnect_relay()
        if kb.local_connected:
            sink = kb.disconnect_local()
            sink.close()
    return 0


def main():
    ap = argparse.ArgumentParser(description="Play notes through the MIDI piano relay")
    ap.add_argument("notes", nargs="+", help="Note labels like C4, F#3 or chords like C4+E4+G4")
    ap.add_argument("--url", default=DEFAULT_RELAY_URL)
    ap.add_argument("--velocity", type=int, default=80)
    ap.add_argument("--hold", type=float, default=0.4, help="Seconds each note is held")
    ap.add_argument("--gap", type=float, default=0.05, help="Seconds between notes")
    ap.add_argument("--local", nargs="?", const="", default=None, help="Also play on a local MIDI output (optional name filter)")
    ap.add_argument("--no-relay", action="store_true", help="Skip the relay connection")
    args = ap.parse_args()
    raise SystemExit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
