from pos_receipt import escpos
from pos_receipt.printer import CommandStream, DevicePrinter

import pytest


class RecordingFile:
    def __init__(self):
        self.writes = []

    def write(self, data):
        self.writes.append(bytes(data))

    def flush(self):
        ...

    def close(self):
        ...


def test_flatten_mixes_text_and_raw():
    p = CommandStream()
    p.initialize()
    p.bold_on()
    p.line("Hi")
    p.bold_off()
    p.feed(2)
    p.cut(partial=True)

    assert p.flatten() == b"\x1b@\x1b\x45\x01Hi\n\x1b\x45\x00\n\n\x1d\x56\x42\x00"
    assert len(p) == 6


def test_flatten_length_equals_segment_sum():
    p = CommandStream("cp1251")
    p.text("Привіт ")
    p.raw(b"\x00" * 17)
    p.line("€ and ✓")
    p.align("right")
    data = p.flatten()
    assert len(data) == sum(len(p.encode_segment(s)) for s in p.segments)
    assert data.endswith(escpos.ALIGN_RIGHT)


def test_unencodable_text_is_replaced():
    p = CommandStream("ascii")
    p.text("café")
    assert p.flatten() == b"caf?"


def test_empty_stream():
    assert CommandStream().flatten() == b""


def test_get_output_skips_opcodes():
    p = CommandStream()
    p.initialize()
    p.line("one")
    p.align("center")
    p.text("two")
    assert p.get_output() == ["one", "two"]


def test_device_printer_writes_file(tmp_path):
    device = tmp_path / "lp0"
    assert DevicePrinter(str(device)).send(b"\x1b@hello")
    assert device.read_bytes() == b"\x1b@hello"


def test_device_printer_chunks():
    printer = DevicePrinter("unused", chunk_size=20)
    printer.fd = RecordingFile()
    printer.write(bytes(range(45)))
    assert [len(w) for w in printer.fd.writes] == [20, 20, 5]
    assert b"".join(printer.fd.writes) == bytes(range(45))


def test_device_printer_failure(tmp_path):
    assert not DevicePrinter(str(tmp_path / "missing" / "lp0")).send(b"data")


def test_write_requires_open_device():
    with pytest.raises(RuntimeError):
        DevicePrinter("unused").write(b"x")
