"""PixelVault: password-protected image upload and pixel storage service."""

__version__ = "1.0.0"
