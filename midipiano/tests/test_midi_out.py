import mido

from midipiano import midi_out
from midipiano.midi_out import MidoSink, open_mido_output


class _FakeOut:
    def __init__(self, name="fake"):
        self.name = name
        self.sent = []
        self.closed = False

    def send(self, msg):
        self.sent.append(msg)

    def close(self):
        self.closed = True


def test_mido_sink_channel_voice_bytes():
    out = _FakeOut()
    sink = MidoSink(out)
    sink.note_on(0, 60, 100)
    sink.note_off(0, 60)
    assert out.sent[0].bytes() == [0x90, 60, 100]
    assert out.sent[1].bytes() == [0x80, 60, 0]
    sink.close()
    assert out.closed


def test_open_prefers_matching_port(monkeypatch):
    opened = []
    monkeypatch.setattr(mido, "get_output_names", lambda: ["Synth A", "IAC Driver Bus 1"])
    monkeypatch.setattr(mido, "open_output", lambda name=None, **kw: opened.append((name, kw)) or _FakeOut(name))
    port = open_mido_output("IAC")
    assert port.name == "IAC Driver Bus 1"
    assert opened == [("IAC Driver Bus 1", {})]


def test_open_creates_virtual_port_when_none(monkeypatch):
    opened = []
    monkeypatch.setattr(mido, "get_output_names", lambda: [])
    monkeypatch.setattr(mido, "open_output", lambda name=None, **kw: opened.append((name, kw)) or _FakeOut(name))
    port = open_mido_output(None, virtual_name="Test Virtual")
    assert port.name == "Test Virtual"
    assert opened == [("Test Virtual", {"virtual": True})]


def test_open_falls_back_to_null_output(monkeypatch):
    def _boom(*_a, **_kw):
        raise OSError("no MIDI backend")

    monkeypatch.setattr(mido, "get_output_names", _boom)
    monkeypatch.setattr(mido, "open_output", _boom)
    port = open_mido_output()
    assert isinstance(port, midi_out._NullOut)
    # still usable as a sink target
    MidoSink(port).all_notes_off()
