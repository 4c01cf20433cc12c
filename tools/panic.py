from __future__ import annotations

import argparse

from midipiano.midi_out import MidoSink, open_mido_output


def main():
    ap = argparse.ArgumentParser(description="Send Note Off for every note number (0-127) on channel 0")
    ap.add_argument("--port", help="Substring to match MIDI port (default: first output)")
    args = ap.parse_args()
    sink = MidoSink(open_mido_output(args.port))
    sent = sink.all_notes_off()
    sink.close()
    print(f"panic sent ({sent} note offs)")


if __name__ == "__main__":
    main()
