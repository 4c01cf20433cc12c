from __future__ import annotations

from typing import Tuple


KEY_NAMES = ("C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B")
BLACK_KEY_INDEXES = (1, 3, 6, 8, 10)

OCTAVE_MIN = 0
OCTAVE_MAX = 8
OCTAVE_DEFAULT = 4

VELOCITY_MIN = 0
VELOCITY_MAX = 127
VELOCITY_DEFAULT = 80

NOTE_MIN = 0
NOTE_MAX = 127

A4_NOTE = 69
A4_HZ = 440.0


def index_to_absolute(key_index: int, octave: int) -> int:
    """Key index (0..11, C..B) plus octave -> absolute note. Octave 4 index 0 is 60."""
    return int(octave) * 12 + int(key_index) + 12


def absolute_to_frequency_hz(note: int) -> float:
    """Equal-tempered frequency with A4 (69) = 440 Hz."""
    return A4_HZ * 2.0 ** ((int(note) - A4_NOTE) / 12.0)


def note_label(key_index: int, octave: int) -> str:
    return f"{KEY_NAMES[int(key_index) % 12]}{int(octave)}"


def parse_note_label(label: str) -> Tuple[int, int]:
    """Parse 'C4' / 'F#3' into (key_index, octave). Raises ValueError."""
    s = label.strip()
    name, digits = s.rstrip("0123456789"), s[len(s.rstrip("0123456789")):]
    if not digits:
        raise ValueError(f"missing octave in note label: {label!r}")
    name = name.upper()
    if name not in KEY_NAMES:
        raise ValueError(f"unknown note name: {label!r}")
    return KEY_NAMES.index(name), clamp_octave(int(digits))


def is_black_key(key_index: int) -> bool:
    return int(key_index) % 12 in BLACK_KEY_INDEXES


def clamp_octave(octave: int) -> int:
    return max(OCTAVE_MIN, min(OCTAVE_MAX, int(octave)))


def clamp_velocity(velocity: int) -> int:
    return max(VELOCITY_MIN, min(VELOCITY_MAX, int(velocity)))
