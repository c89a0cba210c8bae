from pos_receipt import escpos
from pos_receipt.config import RasterConfig
from pos_receipt.errors import ImageLoadError

from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import List, Optional, Protocol, Sequence, Union
import asyncio
import logging

import requests
from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

NO_PRINT = 0
PRINT = 1


# ------------------------------------------------------------
# Pixel data
# ------------------------------------------------------------
@dataclass(frozen=True)
class PixelBuffer:
    """width x height RGBA samples, 8 bits per channel, row-major."""
    width: int
    height: int
    data: bytes

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Invalid image size {self.width}x{self.height}")
        if len(self.data) != self.width * self.height * 4:
            raise ValueError(
                f"Expected {self.width * self.height * 4} RGBA bytes, got {len(self.data)}"
            )

    def rgba(self, x: int, y: int):
        i = (y * self.width + x) * 4
        return self.data[i], self.data[i + 1], self.data[i + 2], self.data[i + 3]

    @classmethod
    def from_image(cls, img: Image.Image) -> "PixelBuffer":
        img = img.convert("RGBA")
        w, h = img.size
        return cls(w, h, img.tobytes())

    def to_image(self) -> Image.Image:
        return Image.frombytes("RGBA", (self.width, self.height), self.data)


@dataclass(frozen=True)
class MonochromeBitmap:
    byte_width: int
    dot_height: int
    rows: bytes     # bit-packed, MSB first, row-major

    def __post_init__(self):
        if len(self.rows) != self.byte_width * self.dot_height:
            raise ValueError(
                f"Bitmap {self.byte_width}x{self.dot_height} needs "
                f"{self.byte_width * self.dot_height} bytes, got {len(self.rows)}"
            )

    def to_command(self) -> bytes:
        return raster_command(self)


# ------------------------------------------------------------
# Raster modes
# ------------------------------------------------------------
@dataclass(frozen=True)
class Threshold:
    level: Optional[int] = None     # None: RasterConfig.threshold


@dataclass(frozen=True)
class Dithered:
    pass


@dataclass(frozen=True)
class Fast:
    line_skip: Optional[int] = None  # None: RasterConfig.line_skip
    level: Optional[int] = None


RasterMode = Union[Threshold, Dithered, Fast]


def mode_from_name(name: str, level: Optional[int] = None, line_skip: Optional[int] = None) -> RasterMode:
    if name == "threshold":
        return Threshold(level)
    if name == "dithered":
        return Dithered()
    if name == "fast":
        return Fast(line_skip, level)
    raise ValueError(f"Unknown raster mode: {name}")


# ------------------------------------------------------------
# Pure helpers: bit packing and framing
# ------------------------------------------------------------
def pack_row(bits: Sequence[int]) -> bytes:
    """
    Pack one row of dots, 8 per byte, most significant bit first.
    The last byte is padded with NO_PRINT bits.
    """
    out = bytearray((len(bits) + 7) // 8)
    for x, bit in enumerate(bits):
        if bit:
            out[x >> 3] |= 0x80 >> (x & 7)
    return bytes(out)


def pack_bits(bits: Sequence[int], width: int, height: int) -> MonochromeBitmap:
    byte_width = (width + 7) // 8
    rows = bytearray()
    for y in range(height):
        rows += pack_row(bits[y * width:(y + 1) * width])
    return MonochromeBitmap(byte_width, height, bytes(rows))


def raster_command(bitmap: MonochromeBitmap) -> bytes:
    """GS v 0 m xL xH yL yH d1...dk"""
    return (
        escpos.RASTER_BIT_IMAGE
        + escpos.u16le(bitmap.byte_width)
        + escpos.u16le(bitmap.dot_height)
        + bitmap.rows
    )


def luma(r, g, b) -> float:
    return r * 0.299 + g * 0.587 + b * 0.114


def scaled_size(width: int, height: int, max_width: int):
    """Downscale only, keep aspect ratio; height follows from width."""
    new_w = min(width, max_width)
    new_h = max(1, int(new_w * height / width))
    return new_w, new_h


# ------------------------------------------------------------
# Image source capability
# ------------------------------------------------------------
class ImageSource(Protocol):
    def load(self, url: str) -> PixelBuffer:
        ...

    def resize(self, buf: PixelBuffer, width: int, height: int, nearest: bool = False) -> PixelBuffer:
        ...


class PillowImageSource:
    """Loads http(s) URLs through requests, everything else as a local path."""

    def __init__(self, timeout: float = 10.0, session: Optional[requests.Session] = None):
        self.timeout = timeout
        self.session = session or requests.Session()

    def load(self, url: str) -> PixelBuffer:
        try:
            if url.startswith(("http://", "https://")):
                response = self.session.get(url, timeout=self.timeout)
                response.raise_for_status()
                img = Image.open(BytesIO(response.content))
            else:
                img = Image.open(Path(url))
            img.load()
            return PixelBuffer.from_image(img)
        except (OSError, UnidentifiedImageError, Image.DecompressionBombError,
                requests.RequestException, ValueError) as e:
            raise ImageLoadError(f"Cannot load image {url}: {e}") from e

    def resize(self, buf: PixelBuffer, width: int, height: int, nearest: bool = False) -> PixelBuffer:
        if (width, height) == (buf.width, buf.height):
            return buf
        resample = Image.NEAREST if nearest else Image.LANCZOS
        return PixelBuffer.from_image(buf.to_image().resize((width, height), resample))


# ------------------------------------------------------------
# Encoder
# ------------------------------------------------------------
class RasterEncoder:
    """
    Turns a PixelBuffer into a GS v 0 raster command.

    Classification, for every opaque pixel with luma Y:
        alpha < 128      -> no print (paper)
        Y < 32           -> no print. Logos drawn on a black canvas would
                            otherwise come out as solid blocks.
        Y > 223          -> print
        anything else    -> threshold or dithering decides
    """

    def __init__(self, source: Optional[ImageSource] = None, config: RasterConfig = RasterConfig()):
        self.source = source or PillowImageSource()
        self.config = config

    # ------------------------
    # Entry points
    # ------------------------
    def encode(self, image: PixelBuffer, max_width_dots: Optional[int] = None,
               mode: RasterMode = Dithered()) -> bytes:
        return raster_command(self.to_bitmap(image, max_width_dots, mode))

    async def encode_url(self, url: str, max_width_dots: Optional[int] = None,
                         mode: RasterMode = Dithered()) -> bytes:
        image = await asyncio.to_thread(self.source.load, url)
        data = self.encode(image, max_width_dots, mode)
        logger.debug("Rasterized %s (%dx%d): %d bytes", url, image.width, image.height, len(data))
        return data

    def to_bitmap(self, image: PixelBuffer, max_width_dots: Optional[int] = None,
                  mode: RasterMode = Dithered()) -> MonochromeBitmap:
        if isinstance(mode, Fast):
            return self._fast(image, max_width_dots or self.config.fast_max_width_dots, mode)

        width, height = scaled_size(image.width, image.height, max_width_dots or self.config.max_width_dots)
        scaled = self.source.resize(image, width, height)

        if isinstance(mode, Threshold):
            level = self.config.threshold if mode.level is None else mode.level
            bits = self._threshold(scaled, level)
        elif isinstance(mode, Dithered):
            bits = self._dither(scaled)
        else:
            raise TypeError(f"Unsupported raster mode {mode!r}")

        return pack_bits(bits, width, height)

    # ------------------------
    # Classification
    # ------------------------
    def classify(self, alpha, y) -> Optional[int]:
        """Fixed PRINT/NO_PRINT for the special ranges, None for mid-range pixels."""
        cfg = self.config
        if alpha < cfg.alpha_cutoff:
            return NO_PRINT
        if y < cfg.dark_cutoff:
            return NO_PRINT
        if y > cfg.light_cutoff:
            return PRINT
        return None

    def _threshold(self, image: PixelBuffer, level: int) -> List[int]:
        bits = []
        for y in range(image.height):
            for x in range(image.width):
                r, g, b, a = image.rgba(x, y)
                gray = luma(r, g, b)
                fixed = self.classify(a, gray)
                if fixed is None:
                    bits.append(PRINT if gray < level else NO_PRINT)
                else:
                    bits.append(fixed)
        return bits

    def _dither(self, image: PixelBuffer) -> List[int]:
        """
        Floyd-Steinberg over the mid-range pixels only. Error never flows
        into pixels whose classification is fixed.

        Eligibility is decided once, from each pixel's source gray. A
        neighbour pushed past the dark or light cutoff by accumulated error
        still takes error and is still dithered; it does not become fixed.
        """
        w, h = image.width, image.height
        cutoff = self.config.dither_threshold

        levels = []
        fixed = []
        for y in range(h):
            for x in range(w):
                r, g, b, a = image.rgba(x, y)
                gray = luma(r, g, b)
                levels.append(gray)
                fixed.append(self.classify(a, gray))

        bits = [NO_PRINT] * (w * h)
        for y in range(h):
            for x in range(w):
                i = y * w + x
                if fixed[i] is not None:
                    bits[i] = fixed[i]
                    continue

                old = levels[i]
                new = 255 if old > cutoff else 0
                bits[i] = PRINT if new == 0 else NO_PRINT
                error = old - new

                for dx, dy, weight in ((1, 0, 7), (-1, 1, 3), (0, 1, 5), (1, 1, 1)):
                    nx, ny = x + dx, y + dy
                    if 0 <= nx < w and ny < h:
                        j = ny * w + nx
                        if fixed[j] is None:
                            levels[j] = min(255.0, max(0.0, levels[j] + error * weight / 16))
        return bits

    def _fast(self, image: PixelBuffer, max_width: int, mode: Fast) -> MonochromeBitmap:
        width, height = scaled_size(image.width, image.height, max_width)
        line_skip = self.config.line_skip if mode.line_skip is None else mode.line_skip
        level = self.config.threshold if mode.level is None else mode.level
        height = max(1, height // max(1, line_skip))
        scaled = self.source.resize(image, width, height, nearest=True)

        bits = []
        for y in range(height):
            for x in range(width):
                r, g, b, a = scaled.rgba(x, y)
                gray = (r + g + b) / 3
                fixed = self.classify(a, gray)
                if fixed is None:
                    bits.append(PRINT if gray < level else NO_PRINT)
                else:
                    bits.append(fixed)
        return pack_bits(bits, width, height)
