"""Record storage package.

This package provides:
- Record models (decoded and raw image records)
- File-backed and in-memory record stores
- FastAPI dependency injection support
"""

from pixelvault.app.db.dependencies import StoreDep, get_store
from pixelvault.app.db.models import (
    DecodedImageRecord,
    ImageRecord,
    PixelModel,
    RawImageRecord,
    parse_record,
)
from pixelvault.app.db.store import FileRecordStore, InMemoryRecordStore, RecordStore

__all__ = [
    "StoreDep",
    "get_store",
    "DecodedImageRecord",
    "ImageRecord",
    "PixelModel",
    "RawImageRecord",
    "parse_record",
    "FileRecordStore",
    "InMemoryRecordStore",
    "RecordStore",
]
