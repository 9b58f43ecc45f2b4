"""Image upload and retrieval endpoints.

Every upload and read passes its rate limiter first, then the shared
secret check, before any decoding or storage work is done.

FastAPI parses the multipart body before route dependencies run, so a
throttled upload is still read in full (bounded by max_upload_bytes)
before its 429. Only decoding and storage are skipped.
"""

import asyncio
import uuid
from typing import Any, Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status
from fastapi.responses import HTMLResponse
from pydantic import BaseModel

from pixelvault.app.core.logging import get_log_context, get_logger
from pixelvault.app.core.sanitize import is_safe_identifier, sanitize_name
from pixelvault.app.db.dependencies import StoreDep
from pixelvault.app.db.models import (
    DecodedImageRecord,
    ImageRecord,
    RawImageRecord,
    parse_record,
)
from pixelvault.app.db.store import RecordStore
from pixelvault.app.exceptions import (
    DecodeFailureError,
    MissingUploadError,
    RecordNotFoundError,
    StorageFailureError,
    UnsupportedFormatError,
)
from pixelvault.app.middleware.auth import require_access
from pixelvault.app.middleware.rate_limit import READ_SCOPE, UPLOAD_SCOPE, rate_limit
from pixelvault.app.middleware.request_id import get_request_id
from pixelvault.app.services.pixel_codec import decode, sniff_format

logger = get_logger(__name__)

router = APIRouter(tags=["images"])

UPLOAD_FORM = """<!DOCTYPE html>
<html>
  <head><title>PixelVault upload</title></head>
  <body>
    <h2>Upload PNG or JPEG</h2>
    <form action="/upload" method="post" enctype="multipart/form-data">
      <input type="file" name="image" accept=".png,.jpg,.jpeg" required />
      <input type="password" name="password" placeholder="Password" required />
      <button type="submit">Upload</button>
    </form>
  </body>
</html>
"""

_ID_ATTEMPTS = 3


class UploadResponse(BaseModel):
    id: str
    filename: str
    original: str
    kind: str
    width: Optional[int] = None
    height: Optional[int] = None


class ImageListResponse(BaseModel):
    images: list[str]


async def _read_upload(image: Optional[UploadFile]) -> tuple[bytes, str]:
    if image is None:
        raise MissingUploadError()
    data = await image.read()
    return data, sanitize_name(image.filename or "")


async def _new_image_id(store: RecordStore) -> str:
    """Generate a record identifier not already present in the store."""
    for _ in range(_ID_ATTEMPTS):
        image_id = uuid.uuid4().hex
        if not await store.exists(image_id):
            return image_id
    raise StorageFailureError("could not allocate a unique record identifier")


async def _persist(
    request: Request, store: RecordStore, image_id: str, record: ImageRecord
) -> None:
    try:
        await store.put(image_id, record.to_document())
    except StorageFailureError as exc:
        # Internal paths stay in the logs, never in the response
        logger.error(
            f"Failed to store record: {exc.detail}",
            extra=get_log_context(
                request_id=get_request_id(request),
                image_id=image_id,
            ),
        )
        raise

    logger.info(
        f"Stored {record.kind} image record",
        extra=get_log_context(
            request_id=get_request_id(request),
            client_id=getattr(request.state, "client_id", None),
            image_id=image_id,
            original=record.original,
        ),
    )


@router.get("/test")
async def test() -> dict[str, str]:
    """Liveness probe kept for existing clients."""
    return {"message": "Server is working!"}


@router.get("/upload", response_class=HTMLResponse)
async def upload_form() -> str:
    return UPLOAD_FORM


@router.post(
    "/upload",
    response_model=UploadResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit(UPLOAD_SCOPE))],
)
async def upload_image(
    request: Request,
    store: StoreDep,
    image: Optional[UploadFile] = File(None),
    password: Optional[str] = Form(None),
) -> UploadResponse:
    """Decode an uploaded PNG/JPEG and store its RGBA pixel grid."""
    await require_access(request, password)
    data, original = await _read_upload(image)

    max_pixels = request.app.state.settings.max_image_pixels
    try:
        pixel_image = await asyncio.to_thread(decode, data, max_pixels)
    except (UnsupportedFormatError, DecodeFailureError) as exc:
        logger.warning(
            f"Rejected upload: {exc.message}",
            extra=get_log_context(
                request_id=get_request_id(request),
                original=original,
                size=len(data),
            ),
        )
        raise

    image_id = await _new_image_id(store)
    record = DecodedImageRecord.from_image(
        pixel_image, filename=f"{image_id}.json", original=original
    )
    await _persist(request, store, image_id, record)

    return UploadResponse(
        id=image_id,
        filename=record.filename,
        original=record.original,
        kind=record.kind,
        width=record.width,
        height=record.height,
    )


@router.post(
    "/upload/raw",
    response_model=UploadResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit(UPLOAD_SCOPE))],
)
async def upload_raw_image(
    request: Request,
    store: StoreDep,
    image: Optional[UploadFile] = File(None),
    password: Optional[str] = Form(None),
) -> UploadResponse:
    """Store an uploaded PNG/JPEG verbatim, checking only its signature."""
    await require_access(request, password)
    data, original = await _read_upload(image)

    if sniff_format(data) is None:
        raise UnsupportedFormatError()

    image_id = await _new_image_id(store)
    record = RawImageRecord.from_bytes(data, filename=f"{image_id}.json", original=original)
    await _persist(request, store, image_id, record)

    return UploadResponse(
        id=image_id,
        filename=record.filename,
        original=record.original,
        kind=record.kind,
    )


@router.get("/images", response_model=ImageListResponse, dependencies=[Depends(rate_limit(READ_SCOPE))])
async def list_images(request: Request, store: StoreDep) -> ImageListResponse:
    await require_access(request)
    return ImageListResponse(images=await store.list())


@router.get(
    "/image/{image_id}",
    response_model=None,
    dependencies=[Depends(rate_limit(READ_SCOPE))],
)
async def get_image(request: Request, image_id: str, store: StoreDep) -> dict[str, Any]:
    """Return the stored document for ``image_id`` in either record shape."""
    await require_access(request)

    if not is_safe_identifier(image_id):
        raise RecordNotFoundError(image_id)

    try:
        record = parse_record(await store.get(image_id))
    except StorageFailureError as exc:
        logger.error(
            f"Failed to load record: {exc.detail}",
            extra=get_log_context(
                request_id=get_request_id(request),
                image_id=image_id,
            ),
        )
        raise

    return record.to_document()
