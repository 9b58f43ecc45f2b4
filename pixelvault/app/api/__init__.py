"""API endpoints package for PixelVault."""

from pixelvault.app.api.images import router as images_router

__all__ = [
    "images_router",
]
