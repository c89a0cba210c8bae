from pos_receipt import escpos
from pos_receipt.config import DEFAULT_DEVICE
from pos_receipt.errors import EncodingInvariantViolation

from typing import List, Optional, Union
import logging

logger = logging.getLogger(__name__)

Segment = Union[bytes, str]


class CommandStream:
    """
    Ordered ESC/POS segments, flattened once into a single buffer:
        p = CommandStream()
        p.initialize()
        p.line("Hello")
        p.cut()
        data = p.flatten()
    Text segments are kept as str until flatten() so get_output() can show them.
    """

    def __init__(self, encoding="utf-8"):
        self.encoding = encoding
        self.segments: List[Segment] = []

    # ------------------------
    # Low-level
    # ------------------------
    def raw(self, data: bytes):
        self.segments.append(bytes(data))

    def text(self, s: str):
        self.segments.append(s)

    def line(self, s=""):
        self.text(s + "\n")

    # ------------------------
    # Commands
    # ------------------------
    def initialize(self):
        self.raw(escpos.INIT)

    def bold_on(self):
        self.raw(escpos.BOLD_ON)

    def bold_off(self):
        self.raw(escpos.BOLD_OFF)

    def align(self, mode: str):
        self.raw(escpos.ALIGNMENTS[mode])

    def double_size(self):
        self.raw(escpos.SIZE_DOUBLE)

    def normal_size(self):
        self.raw(escpos.SIZE_NORMAL)

    def feed(self, lines: int):
        self.raw(escpos.LF * lines)

    def cut(self, partial=False):
        self.raw(escpos.CUT_PARTIAL if partial else escpos.CUT_FULL)

    # ------------------------
    # Output
    # ------------------------
    def encode_segment(self, segment: Segment) -> bytes:
        if isinstance(segment, str):
            return segment.encode(self.encoding, errors="replace")
        return segment

    def flatten(self) -> bytes:
        """
        Pass 1 sums the length of every segment, pass 2 copies each one at
        the running offset. The cursor has to land exactly on the total.
        """
        encoded = []
        total = 0
        for segment in self.segments:
            data = self.encode_segment(segment)
            encoded.append(data)
            total += len(data)

        buf = bytearray(total)
        offset = 0
        for data in encoded:
            end = offset + len(data)
            if end > total:
                raise EncodingInvariantViolation(f"Segment overruns buffer: {end} > {total}")
            buf[offset:end] = data
            offset = end

        if offset != total:
            raise EncodingInvariantViolation(f"Copied {offset} bytes into a {total} byte buffer")
        return bytes(buf)

    def get_output(self):
        """Printed text split into lines, opcodes left out."""
        return ''.join(s for s in self.segments if isinstance(s, str)).split('\n')

    def __len__(self):
        return len(self.segments)


class DevicePrinter:
    """
    Delivers a finished buffer to a printer device node.
    Auto-closeable:
        with DevicePrinter("/dev/usb/lp0") as p:
            p.write(data)
    """

    def __init__(self, device=DEFAULT_DEVICE, chunk_size: Optional[int] = None):
        self.device = device
        self.chunk_size = chunk_size
        self.fd = None

    # ------------------------
    # Context manager
    # ------------------------
    def __enter__(self):
        # open device in binary write mode
        self.fd = open(self.device, "wb", buffering=0)
        return self

    def __exit__(self, exc_type, exc, tb):
        try:
            if self.fd:
                self.fd.flush()
        finally:
            if self.fd:
                self.fd.close()
            self.fd = None

    def write(self, data: bytes):
        if self.fd is None:
            raise RuntimeError("Printer is not open")
        step = self.chunk_size or len(data) or 1
        for i in range(0, len(data), step):
            self.fd.write(data[i:i + step])

    def send(self, data: bytes) -> bool:
        """One attempt, no retries."""
        try:
            with self:
                self.write(data)
        except OSError as e:
            logger.error("Printing to %s failed: %s", self.device, e)
            return False
        logger.info("Sent %d bytes to %s", len(data), self.device)
        return True
