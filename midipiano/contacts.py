from __future__ import annotations

from collections import Counter
from typing import Dict, FrozenSet, Hashable, List, Optional

from midipiano.notes import index_to_absolute


class ContactTracker:
    """Maps input contacts (mouse pointer, touch points) to sounding notes.

    - One note per contact; a repeated press on a mapped contact is rejected.
    - Releasing an unmapped contact is a no-op.
    - A note stays in the active set while any live contact still maps to it.
    """

    def __init__(self) -> None:
        self._by_contact: Dict[Hashable, int] = {}
        # note -> number of live contacts holding it
        self._refs: Counter = Counter()

    def press(self, contact_id: Hashable, key_index: int, octave: int) -> Optional[int]:
        if contact_id in self._by_contact:
            return None
        note = index_to_absolute(key_index, octave)
        self._by_contact[contact_id] = note
        self._refs[note] += 1
        return note

    def release(self, contact_id: Hashable) -> Optional[int]:
        note = self._by_contact.pop(contact_id, None)
        if note is None:
            return None
        self._refs[note] -= 1
        if self._refs[note] <= 0:
            del self._refs[note]
        return note

    def clear(self) -> List[int]:
        """Forget every contact; return each distinct sounding note once."""
        notes = sorted(self._refs)
        self._by_contact.clear()
        self._refs.clear()
        return notes

    def active_notes(self) -> FrozenSet[int]:
        return frozenset(self._refs)

    def is_pressed(self, contact_id: Hashable) -> bool:
        return contact_id in self._by_contact

    def note_for(self, contact_id: Hashable) -> Optional[int]:
        return self._by_contact.get(contact_id)

    def __len__(self) -> int:
        return len(self._by_contact)
