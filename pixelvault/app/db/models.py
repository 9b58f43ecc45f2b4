"""Stored image record documents.

Two record shapes exist on disk. A decoded record carries the full RGBA
pixel grid; a raw record carries the original encoded bytes verbatim as
base64. ``parse_record`` turns an untyped document back into one of the
two models so callers branch on the variant explicitly.
"""

import base64
from datetime import datetime, timezone
from typing import Any, ClassVar, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from pixelvault.app.exceptions import StorageFailureError
from pixelvault.app.services.pixel_codec import Pixel, PixelImage


class PixelModel(BaseModel):
    model_config = ConfigDict(frozen=True)

    r: int = Field(ge=0, le=255)
    g: int = Field(ge=0, le=255)
    b: int = Field(ge=0, le=255)
    a: int = Field(ge=0, le=255)


class _ImageRecordBase(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    filename: str
    original: str
    uploaded_at: datetime = Field(alias="uploadedAt")

    def to_document(self) -> dict[str, Any]:
        """Serialize to the JSON document shape written to storage."""
        return self.model_dump(mode="json", by_alias=True)


class DecodedImageRecord(_ImageRecordBase):
    """Record holding a fully decoded pixel grid."""

    kind: ClassVar[Literal["decoded"]] = "decoded"

    width: int = Field(ge=0)
    height: int = Field(ge=0)
    pixels: list[PixelModel]

    @model_validator(mode="after")
    def check_pixel_count(self) -> "DecodedImageRecord":
        if len(self.pixels) != self.width * self.height:
            raise ValueError(
                f"pixels has {len(self.pixels)} entries, expected {self.width * self.height}"
            )
        return self

    @classmethod
    def from_image(
        cls,
        image: PixelImage,
        filename: str,
        original: str,
        uploaded_at: datetime | None = None,
    ) -> "DecodedImageRecord":
        return cls(
            filename=filename,
            original=original,
            uploaded_at=uploaded_at or datetime.now(timezone.utc),
            width=image.width,
            height=image.height,
            pixels=[pixel.to_dict() for pixel in image.pixels],
        )

    def to_image(self) -> PixelImage:
        return PixelImage(
            width=self.width,
            height=self.height,
            pixels=tuple(Pixel(p.r, p.g, p.b, p.a) for p in self.pixels),
        )


class RawImageRecord(_ImageRecordBase):
    """Record holding the encoded upload verbatim, never decoded."""

    kind: ClassVar[Literal["raw"]] = "raw"

    image_base64: str = Field(alias="imageBase64")

    @classmethod
    def from_bytes(
        cls,
        data: bytes,
        filename: str,
        original: str,
        uploaded_at: datetime | None = None,
    ) -> "RawImageRecord":
        return cls(
            filename=filename,
            original=original,
            uploaded_at=uploaded_at or datetime.now(timezone.utc),
            image_base64=base64.b64encode(data).decode("ascii"),
        )

    def image_bytes(self) -> bytes:
        return base64.b64decode(self.image_base64)


ImageRecord = Union[DecodedImageRecord, RawImageRecord]


def parse_record(document: dict[str, Any]) -> ImageRecord:
    """Validate a stored document and return its record variant.

    Raises:
        StorageFailureError: the document matches neither variant
    """
    try:
        if "pixels" in document:
            return DecodedImageRecord.model_validate(document)
        if "imageBase64" in document:
            return RawImageRecord.model_validate(document)
    except ValidationError as exc:
        raise StorageFailureError(f"malformed record: {exc.error_count()} validation error(s)") from exc
    raise StorageFailureError("record has neither pixels nor imageBase64")
