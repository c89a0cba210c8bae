from pos_receipt import escpos
from pos_receipt.config import BarcodeConfig
from pos_receipt.errors import BarcodeValidationError

from pydantic import BaseModel, ConfigDict
from typing import Optional
import enum
import re


class Symbology(str, enum.Enum):
    CODE39 = "CODE39"
    CODE128 = "CODE128"
    EAN13 = "EAN13"
    EAN8 = "EAN8"
    UPC_A = "UPC_A"
    ITF = "ITF"


class HriPosition(str, enum.Enum):
    NONE = "none"
    ABOVE = "above"
    BELOW = "below"
    BOTH = "both"


class HriFont(str, enum.Enum):
    A = "A"
    B = "B"


HRI_POSITIONS = {
    HriPosition.NONE: 0,
    HriPosition.ABOVE: 1,
    HriPosition.BELOW: 2,
    HriPosition.BOTH: 3,
}

HRI_FONTS = {HriFont.A: 0, HriFont.B: 1}

# Length byte before the data vs. NUL after it
LENGTH_PREFIXED = {Symbology.CODE39, Symbology.CODE128, Symbology.ITF}
NUL_TERMINATED = {Symbology.EAN13, Symbology.EAN8, Symbology.UPC_A}


class BarcodeSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    symbology: Symbology = Symbology.CODE128
    height_dots: int = 162          # clamped to [1, 255]
    module_width: int = 3           # clamped to [2, 6]
    hri_position: HriPosition = HriPosition.BELOW
    hri_font: HriFont = HriFont.A
    line_feeds: Optional[int] = None  # None: BarcodeConfig.line_feeds


_CODE39 = re.compile(r"[0-9A-Z\-. $/+%]+")
_DIGITS = re.compile(r"[0-9]+")


def _digits(count_lo, count_hi):
    return re.compile(rf"[0-9]{{{count_lo},{count_hi}}}")


_FIXED_DIGITS = {
    Symbology.EAN13: (_digits(12, 13), "requires 12 or 13 digits"),
    Symbology.EAN8: (_digits(7, 8), "requires 7 or 8 digits"),
    Symbology.UPC_A: (_digits(11, 12), "requires 11 or 12 digits"),
}


def _clamp(value, lo, hi):
    return max(lo, min(hi, value))


class BarcodeEncoder:
    """
    ESC/POS barcode framing:

        ESC @  GS h n  GS w n  GS H n  GS f n  GS k m  [len] data [NUL]  LF...

    The payload is validated before a single byte is produced.
    """

    def __init__(self, config: BarcodeConfig = BarcodeConfig()):
        self.config = config

    def validate(self, payload: str, symbology: Symbology) -> None:
        try:
            symbology = Symbology(symbology)
        except ValueError:
            raise BarcodeValidationError(symbology, "unknown symbology") from None

        # empty data is rejected for every symbology, CODE39 and ITF included
        if not payload:
            raise BarcodeValidationError(symbology, "requires non-empty data")

        if symbology == Symbology.CODE39:
            if not _CODE39.fullmatch(payload):
                raise BarcodeValidationError(
                    symbology, "only supports 0-9, A-Z, space and -.$/+%")

        elif symbology == Symbology.CODE128:
            if any(ord(ch) > 0xFF for ch in payload):
                raise BarcodeValidationError(symbology, "only supports byte values 0-255")

        elif symbology == Symbology.ITF:
            if not _DIGITS.fullmatch(payload):
                raise BarcodeValidationError(symbology, "only supports digits")
            if len(payload) % 2 != 0:
                raise BarcodeValidationError(symbology, "requires an even number of digits")

        else:
            pattern, rule = _FIXED_DIGITS[symbology]
            if not pattern.fullmatch(payload):
                raise BarcodeValidationError(symbology, rule)

        if symbology in LENGTH_PREFIXED and len(payload) > 0xFF:
            raise BarcodeValidationError(symbology, "data longer than 255 characters")

    def is_valid(self, payload: str, symbology: Symbology) -> bool:
        try:
            self.validate(payload, symbology)
        except BarcodeValidationError:
            return False
        return True

    def type_code(self, symbology: Symbology) -> int:
        return self.config.type_codes.get(Symbology(symbology).value, self.config.default_type_code)

    def encode(self, payload: str, options: BarcodeSpec = BarcodeSpec()) -> bytes:
        symbology = options.symbology
        self.validate(payload, symbology)

        data = payload.encode("latin-1")
        line_feeds = self.config.line_feeds if options.line_feeds is None else options.line_feeds

        out = bytearray()
        out += escpos.INIT
        out += escpos.BARCODE_HEIGHT + bytes([_clamp(options.height_dots, 1, 255)])
        out += escpos.BARCODE_WIDTH + bytes([_clamp(options.module_width, 2, 6)])
        out += escpos.BARCODE_HRI_POSITION + bytes([HRI_POSITIONS[options.hri_position]])
        out += escpos.BARCODE_HRI_FONT + bytes([HRI_FONTS[options.hri_font]])
        out += escpos.BARCODE_PRINT + bytes([self.type_code(symbology)])

        if symbology in LENGTH_PREFIXED:
            out.append(len(data))
        out += data
        if symbology in NUL_TERMINATED:
            out.append(0x00)

        out += escpos.LF * max(0, line_feeds)
        return bytes(out)

    def encode_hex(self, payload: str, options: BarcodeSpec = BarcodeSpec()) -> str:
        return escpos.to_hex_string(self.encode(payload, options))
