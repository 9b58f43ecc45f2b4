"""Domain services: image decoding and credential checking."""

from pixelvault.app.services.access_guard import (
    AccessDecision,
    AccessGuard,
    InMemoryLockoutStore,
    LockoutState,
)
from pixelvault.app.services.pixel_codec import (
    Pixel,
    PixelImage,
    decode,
    encode_png,
    sniff_format,
)

__all__ = [
    "AccessDecision",
    "AccessGuard",
    "InMemoryLockoutStore",
    "LockoutState",
    "Pixel",
    "PixelImage",
    "decode",
    "encode_png",
    "sniff_format",
]
