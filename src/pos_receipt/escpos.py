ESC = 0x1B
GS = 0x1D
LF = b"\n"

INIT = b"\x1b@"                     # ESC @  - initialize

ALIGN_LEFT = b"\x1b\x61\x00"
ALIGN_CENTER = b"\x1b\x61\x01"
ALIGN_RIGHT = b"\x1b\x61\x02"

BOLD_ON = b"\x1b\x45\x01"
BOLD_OFF = b"\x1b\x45\x00"

SIZE_NORMAL = b"\x1d\x21\x00"       # GS ! 0
SIZE_DOUBLE = b"\x1d\x21\x11"       # GS ! 0x11 - double width + height

CUT_FULL = b"\x1d\x56\x00"
CUT_PARTIAL = b"\x1d\x56\x42\x00"

RASTER_BIT_IMAGE = b"\x1d\x76\x30\x00"  # GS v 0, m=0

BARCODE_HEIGHT = b"\x1d\x68"        # GS h n
BARCODE_WIDTH = b"\x1d\x77"         # GS w n
BARCODE_HRI_POSITION = b"\x1d\x48"  # GS H n
BARCODE_HRI_FONT = b"\x1d\x66"      # GS f n
BARCODE_PRINT = b"\x1d\x6b"         # GS k m

ALIGNMENTS = {
    "left": ALIGN_LEFT,
    "center": ALIGN_CENTER,
    "right": ALIGN_RIGHT,
}


def u16le(value: int) -> bytes:
    """Two byte little-endian encoding used for raster width/height."""
    if not 0 <= value <= 0xFFFF:
        raise ValueError(f"{value} does not fit into two bytes")
    return bytes([value & 0xFF, (value >> 8) & 0xFF])


def to_hex_string(data: bytes) -> str:
    """
    Debug dump of a command buffer:
        to_hex_string(b"\\x1b@") == "1B 40"
    """
    return " ".join(f"{b:02X}" for b in data)
