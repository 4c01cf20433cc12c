from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional


DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8080
MIDI_CHANNEL = 0
VIRTUAL_PORT_NAME = "MIDI Piano Virtual Port"
DEFAULT_RELAY_URL = "ws://127.0.0.1:8080"


@dataclass
class RelayConfig:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    midi_port: Optional[str] = None
    virtual_name: str = VIRTUAL_PORT_NAME

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "RelayConfig":
        """Defaults overlaid with PORT / MIDIPIANO_HOST / MIDIPIANO_MIDI_PORT."""
        env = os.environ if environ is None else environ
        cfg = cls()
        raw_port = env.get("PORT")
        if raw_port:
            try:
                cfg.port = int(raw_port)
            except ValueError:
                raise ValueError(f"PORT must be an integer, got {raw_port!r}") from None
        if env.get("MIDIPIANO_HOST"):
            cfg.host = env["MIDIPIANO_HOST"]
        if env.get("MIDIPIANO_MIDI_PORT"):
            cfg.midi_port = env["MIDIPIANO_MIDI_PORT"]
        return cfg
