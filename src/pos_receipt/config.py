from pos_receipt.models import Config

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Mapping, Optional, Tuple


DEFAULT_DEVICE = "/dev/usb/lp0"


@dataclass(frozen=True)
class RasterConfig:
    threshold: int = 128           # threshold mode: print if Y < threshold
    dark_cutoff: int = 32          # Y below this never prints
    light_cutoff: int = 223        # Y above this always prints
    alpha_cutoff: int = 128        # alpha below this is paper
    dither_threshold: int = 128
    max_width_dots: int = 384      # 48mm paper
    fast_max_width_dots: int = 192
    line_skip: int = 2


def _default_type_codes():
    return MappingProxyType({
        "UPC_A": 0,
        "EAN13": 2,
        "EAN8": 3,
        "CODE39": 4,
        "ITF": 5,
        "CODE128": 73,  # 6 on some older printers
    })


@dataclass(frozen=True)
class BarcodeConfig:
    type_codes: Mapping[str, int] = field(default_factory=_default_type_codes)
    default_type_code: int = 73
    line_feeds: int = 2


@dataclass(frozen=True)
class ReceiptConfig:
    encoding: str = "utf-8"
    timestamp_format: str = "%Y-%m-%d %H:%M:%S"
    store_name: Optional[str] = None
    footer: Tuple[str, ...] = ("Thank you for your order!", "Come back soon!")
    logo_url: Optional[str] = None
    logo_max_width_dots: int = 384
    logo_mode: str = "dithered"
    divider_width: int = 31


@dataclass(frozen=True)
class PrinterSettings:
    device: str = DEFAULT_DEVICE
    chunk_size: Optional[int] = None


def _text(db, key):
    """Text setting, even when the row was stored as an int."""
    value = Config.get(db, key)
    return None if value is None else str(value)


def load_receipt_config(db, base: ReceiptConfig = ReceiptConfig()) -> ReceiptConfig:
    """Overlay the values stored in the Config table on top of `base`."""
    changes = {}

    store_name = _text(db, Config.KEY_STORE_NAME)
    if store_name:
        changes["store_name"] = store_name

    logo_url = _text(db, Config.KEY_LOGO_URL)
    if logo_url:
        changes["logo_url"] = logo_url

    encoding = _text(db, Config.KEY_ENCODING)
    if encoding:
        changes["encoding"] = encoding

    footer = _text(db, Config.KEY_FOOTER)
    if footer is not None:
        changes["footer"] = tuple(footer.splitlines())

    return replace(base, **changes)


def load_printer_settings(db) -> PrinterSettings:
    return PrinterSettings(
        device=_text(db, Config.KEY_PRINTER_DEVICE) or DEFAULT_DEVICE,
        chunk_size=Config.get(db, Config.KEY_CHUNK_SIZE),
    )
