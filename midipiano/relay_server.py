"""Relay forwarder: websocket note events in, MIDI channel-voice messages out.

The relay keeps no per-client note state. Every connection writes to the
same MIDI output on channel 0; the only shared bookkeeping is the client
count used for logging.
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from typing import Dict, List, Optional

from midipiano.config import MIDI_CHANNEL, RelayConfig
from midipiano.midi_out import CoreSink, MidoSink, open_mido_output
from midipiano.protocol import NoteEvent, NoteOn, ProtocolError, connected_payload, parse_message


class Relay:
    def __init__(self, sink: CoreSink, channel: int = MIDI_CHANNEL):
        self.sink = sink
        self.channel = channel
        self.client_count = 0
        self.metrics: Dict[str, int] = {"note_on": 0, "note_off": 0, "dropped": 0}
        self._shut_down = False

    def handle_message(self, raw) -> Optional[NoteEvent]:
        """Forward one client frame to MIDI. Malformed frames are logged and dropped."""
        try:
            event = parse_message(raw)
        except ProtocolError as e:
            self.metrics["dropped"] += 1
            print(f"[relay] dropped message: {e}", file=sys.stderr, flush=True)
            return None
        try:
            if isinstance(event, NoteOn):
                self.sink.note_on(self.channel, event.note, event.velocity)
                self.metrics["note_on"] += 1
                print(f"[midi] note on  - note: {event.note}, velocity: {event.velocity}", flush=True)
            else:
                self.sink.note_off(self.channel, event.note)
                self.metrics["note_off"] += 1
                print(f"[midi] note off - note: {event.note}", flush=True)
        except Exception as e:
            print(f"[midi] send failed for {event.type} {event.note}: {e}", file=sys.stderr, flush=True)
            return None
        return event

    async def handler(self, ws, *maybe_path):
        from websockets.exceptions import ConnectionClosed

        self.client_count += 1
        addr = getattr(ws, "remote_address", None)
        print(f"[relay] client connected: {addr} (total: {self.client_count})", flush=True)
        try:
            await ws.send(connected_payload())
            async for message in ws:
                self.handle_message(message)
        except ConnectionClosed as e:
            print(f"[relay] connection error from {addr}: {e}", file=sys.stderr, flush=True)
        finally:
            self.client_count -= 1
            print(f"[relay] client disconnected: {addr} (remaining: {self.client_count})", flush=True)

    def shutdown(self) -> int:
        """All-notes-off on every note number, then close the MIDI output."""
        if self._shut_down:
            return 0
        self._shut_down = True
        sent = self.sink.all_notes_off(self.channel)
        try:
            self.sink.close()
        except Exception as e:
            print(f"[midi] close failed: {e}", file=sys.stderr, flush=True)
        return sent


def _install_signal_handlers(stop: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except (NotImplementedError, RuntimeError):
            # e.g. Windows: SIGINT surfaces as KeyboardInterrupt in main()
            pass


async def serve_relay(relay: Relay, host: str, port: int, stop: Optional[asyncio.Event] = None) -> None:
    """Serve until `stop` is set (or SIGINT/SIGTERM when no event is given)."""
    import websockets  # type: ignore

    if stop is None:
        stop = asyncio.Event()
        _install_signal_handlers(stop)

    async with websockets.serve(relay.handler, host, port):
        print(f"[relay] listening on ws://{host}:{port}", flush=True)
        print(f"[relay] connect clients to ws://<this machine's IP>:{port}", flush=True)
        await stop.wait()
        print("[relay] shutting down...", flush=True)
        sent = relay.shutdown()
        print(f"[relay] sent note off for {sent} notes", flush=True)
    print("[relay] stopped", flush=True)


def main(argv: Optional[List[str]] = None) -> int:
    cfg = RelayConfig.from_env()
    ap = argparse.ArgumentParser(description="Relay websocket note events to a MIDI output")
    ap.add_argument("--host", default=cfg.host)
    ap.add_argument("--port", type=int, default=cfg.port, help="Listen port (env PORT, default 8080)")
    ap.add_argument("--midi-port", default=cfg.midi_port, help="Substring to match MIDI output name")
    ap.add_argument("--virtual-name", default=cfg.virtual_name, help="Name for the virtual port fallback")
    args = ap.parse_args(argv)

    out = open_mido_output(args.midi_port, virtual_name=args.virtual_name)
    relay = Relay(MidoSink(out))
    try:
        asyncio.run(serve_relay(relay, args.host, args.port))
    except KeyboardInterrupt:
        relay.shutdown()
        print("[relay] stopped", flush=True)
    return 0


if __name__ == "__main__":
    sys.exit(main())
