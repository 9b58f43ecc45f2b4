"""Test helpers shared across test modules."""

from io import BytesIO

from PIL import Image

PASSWORD = "s3cret-password"


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_png(width: int, height: int, color=(255, 0, 0, 255), mode: str = "RGBA") -> bytes:
    buffer = BytesIO()
    Image.new(mode, (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


def make_jpeg(width: int, height: int, color=(0, 0, 255)) -> bytes:
    buffer = BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="JPEG", quality=100)
    return buffer.getvalue()
