"""Decoding of uploaded PNG/JPEG buffers into RGBA pixel grids.

Format detection is done by magic-byte sniffing against a small ordered
table; the matching Pillow plugin is then the only decoder allowed to open
the buffer. Every decoded image is expanded to RGBA, with alpha 255 when
the source has no alpha channel.
"""

import struct
from dataclasses import dataclass
from io import BytesIO
from typing import Any, Optional

from PIL import Image, UnidentifiedImageError

from pixelvault.app.exceptions import DecodeFailureError, UnsupportedFormatError

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
JPEG_SIGNATURE = b"\xff\xd8\xff"

# (signature, Pillow format name), checked in order
FORMAT_SIGNATURES: list[tuple[bytes, str]] = [
    (PNG_SIGNATURE, "PNG"),
    (JPEG_SIGNATURE, "JPEG"),
]

DEFAULT_MAX_PIXELS = 25_000_000

_DECODER_ERRORS = (
    UnidentifiedImageError,
    Image.DecompressionBombError,
    OSError,
    SyntaxError,
    ValueError,
    EOFError,
    IndexError,
    struct.error,
)


@dataclass(frozen=True)
class Pixel:
    r: int
    g: int
    b: int
    a: int = 255

    def to_dict(self) -> dict[str, int]:
        return {"r": self.r, "g": self.g, "b": self.b, "a": self.a}


@dataclass(frozen=True)
class PixelImage:
    """Decoded image in row-major order, origin top-left."""
    width: int
    height: int
    pixels: tuple[Pixel, ...]

    def __post_init__(self) -> None:
        if self.width < 0 or self.height < 0:
            raise ValueError("image dimensions must be non-negative")
        if len(self.pixels) != self.width * self.height:
            raise ValueError(
                f"expected {self.width * self.height} pixels, got {len(self.pixels)}"
            )

    def pixel_at(self, x: int, y: int) -> Pixel:
        return self.pixels[y * self.width + x]

    def to_dict(self) -> dict[str, Any]:
        return {
            "width": self.width,
            "height": self.height,
            "pixels": [pixel.to_dict() for pixel in self.pixels],
        }


def sniff_format(buffer: bytes) -> Optional[str]:
    """Return the format name whose signature prefixes ``buffer``."""
    for signature, image_format in FORMAT_SIGNATURES:
        if buffer.startswith(signature):
            return image_format
    return None


def _to_rgba(image: Image.Image) -> Image.Image:
    if image.mode == "RGBA":
        return image
    if image.mode == "I" or image.mode.startswith("I;16"):
        # 16-bit grayscale; a plain convert clamps instead of scaling
        image = image.convert("I").point(lambda v: v / 256).convert("L")
    return image.convert("RGBA")


def decode(buffer: bytes, max_pixels: int = DEFAULT_MAX_PIXELS) -> PixelImage:
    """Decode a PNG or JPEG buffer into a PixelImage.

    Raises:
        UnsupportedFormatError: leading bytes match no known signature
        DecodeFailureError: the buffer is recognised but cannot be decoded
    """
    image_format = sniff_format(buffer)
    if image_format is None:
        raise UnsupportedFormatError()

    try:
        with Image.open(BytesIO(buffer), formats=[image_format]) as image:
            width, height = image.size
            if width * height > max_pixels:
                raise DecodeFailureError(
                    image_format,
                    f"{width}x{height} exceeds the {max_pixels} pixel limit",
                )
            image.load()
            raw = _to_rgba(image).tobytes()
    except _DECODER_ERRORS as exc:
        raise DecodeFailureError(image_format, str(exc) or type(exc).__name__) from exc

    pixels = tuple(
        Pixel(raw[i], raw[i + 1], raw[i + 2], raw[i + 3])
        for i in range(0, len(raw), 4)
    )
    return PixelImage(width=width, height=height, pixels=pixels)


def encode_png(image: PixelImage) -> bytes:
    """Encode a PixelImage as an RGBA PNG."""
    raw = bytes(
        channel
        for pixel in image.pixels
        for channel in (pixel.r, pixel.g, pixel.b, pixel.a)
    )
    buffer = BytesIO()
    Image.frombytes("RGBA", (image.width, image.height), raw).save(buffer, format="PNG")
    return buffer.getvalue()
