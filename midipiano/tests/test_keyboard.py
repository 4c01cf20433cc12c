import unittest

from midipiano.keyboard import Keyboard
from midipiano.sinks import LocalSink, VirtualSink


def _mk_keyboard(**kw):
    sink = VirtualSink()
    kb = Keyboard(local=LocalSink(sink), **kw)
    return sink, kb


class TestKeyboardDispatch(unittest.TestCase):
    def test_press_release_emits_on_off(self):
        sink, kb = _mk_keyboard()
        self.assertEqual(kb.mouse_down(0), 60)
        self.assertEqual(kb.active_keys(), frozenset({0}))
        self.assertEqual(kb.mouse_up(), 60)
        self.assertEqual(sink.events, [("on", 0, 60, 80), ("off", 0, 60, 0)])
        self.assertEqual(kb.active_keys(), frozenset())

    def test_duplicate_touch_start_single_note_on(self):
        sink, kb = _mk_keyboard()
        kb.touch_start(4, [7])
        kb.touch_start(4, [7])
        ons = [e for e in sink.events if e[0] == "on"]
        self.assertEqual(ons, [("on", 0, 64, 80)])

    def test_release_without_press_is_silent(self):
        sink, kb = _mk_keyboard()
        self.assertIsNone(kb.mouse_leave())
        self.assertEqual(kb.touch_cancel([3, 4]), [])
        self.assertEqual(sink.events, [])

    def test_multitouch_chord(self):
        sink, kb = _mk_keyboard()
        kb.touch_start(0, [1])
        kb.touch_start(4, [2])
        kb.touch_start(7, [3])
        self.assertEqual(kb.active_notes(), frozenset({60, 64, 67}))
        self.assertEqual(kb.touch_end([2]), [64])
        self.assertEqual(kb.active_notes(), frozenset({60, 67}))
        self.assertEqual(kb.active_keys(), frozenset({0, 7}))

    def test_octave_change_keeps_sounding_pitch(self):
        sink, kb = _mk_keyboard()
        kb.press(0, "a")
        kb.octave_up()
        kb.press(0, "b")
        self.assertEqual(kb.release("a"), 60)
        self.assertEqual(kb.release("b"), 72)
        self.assertIn(("off", 0, 60, 0), sink.events)
        self.assertIn(("off", 0, 72, 0), sink.events)

    def test_octave_clamps(self):
        _, kb = _mk_keyboard(octave=8)
        self.assertEqual(kb.octave_up(), 8)
        kb.set_octave(0)
        self.assertEqual(kb.octave_down(), 0)

    def test_velocity_applies_to_next_note(self):
        sink, kb = _mk_keyboard()
        kb.press(0, 1)
        kb.set_velocity(127)
        kb.press(2, 2)
        self.assertEqual(sink.events, [("on", 0, 60, 80), ("on", 0, 62, 127)])
        self.assertEqual(kb.set_velocity(300), 127)

    def test_disconnect_local_turns_off_active_notes(self):
        sink, kb = _mk_keyboard()
        kb.touch_start(0, [1])
        kb.touch_start(4, [2])
        kb.touch_start(7, [3])
        before = len(sink.events)
        returned = kb.disconnect_local()
        self.assertIs(returned, sink)
        offs = sink.events[before:]
        self.assertEqual(sorted(offs), [("off", 0, 60, 0), ("off", 0, 64, 0), ("off", 0, 67, 0)])
        self.assertEqual(kb.active_notes(), frozenset())
        self.assertFalse(kb.local_connected)
        # a later release of the old contact emits nothing
        self.assertIsNone(kb.release(1))

    def test_relay_lost_cleans_up_and_notifies(self):
        sink, kb = _mk_keyboard()
        seen = []
        kb.on_notify = seen.append
        kb.press(9, "mouse")
        kb.on_relay_lost("closed by server")
        self.assertEqual(sink.events[-1], ("off", 0, 69, 0))
        self.assertEqual(kb.active_notes(), frozenset())
        self.assertFalse(kb.relay_connected)
        self.assertEqual(len(seen), 1)
        self.assertEqual(kb.notifications, seen)

    def test_no_sink_drops_quietly(self):
        kb = Keyboard()
        self.assertEqual(kb.press(0, "mouse"), 60)
        self.assertEqual(kb.fanout.dropped, 1)
        self.assertEqual(kb.release("mouse"), 60)
        self.assertEqual(kb.fanout.dropped, 2)


if __name__ == "__main__":
    unittest.main()
