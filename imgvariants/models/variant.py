"""Variant request/report data structures."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field, field_validator


class ImageFormat(str, Enum):
    JPEG = "JPEG"
    PNG = "PNG"
    GIF = "GIF"
    WEBP = "WEBP"
    AVIF = "AVIF"
    SVG = "SVG"

    @property
    def extension(self) -> str:
        return _EXTENSIONS[self]

    @property
    def is_lossy(self) -> bool:
        return self in _LOSSY

    @classmethod
    def parse(cls, value: str | ImageFormat) -> ImageFormat:
        """Resolve an extension ("jpg"), alias ("jpeg") or enum name ("JPEG")."""
        if isinstance(value, ImageFormat):
            return value
        key = str(value).strip().lower().lstrip(".")
        fmt = _ALIASES.get(key)
        if fmt is None:
            supported = ", ".join(f.extension for f in cls)
            raise ValueError(f"Unsupported image format '{value}' (expected one of: {supported})")
        return fmt

    def __str__(self) -> str:
        return self.extension


_EXTENSIONS: dict[ImageFormat, str] = {
    ImageFormat.JPEG: "jpg",
    ImageFormat.PNG: "png",
    ImageFormat.GIF: "gif",
    ImageFormat.WEBP: "webp",
    ImageFormat.AVIF: "avif",
    ImageFormat.SVG: "svg",
}

_LOSSY = frozenset({ImageFormat.JPEG, ImageFormat.WEBP, ImageFormat.AVIF})

_ALIASES: dict[str, ImageFormat] = {
    **{ext: fmt for fmt, ext in _EXTENSIONS.items()},
    **{fmt.value.lower(): fmt for fmt in ImageFormat},
}


class LQIPData(BaseModel):
    """Inline placeholder plus the source image's original dimensions."""
    image: str  # data:image/<ext>;base64,<payload>
    width: int
    height: int


class VariantDescriptor(BaseModel):
    base_name: str = Field(min_length=1)
    width: int = Field(gt=0)
    format: ImageFormat

    @field_validator("format", mode="before")
    @classmethod
    def parse_format(cls, v):
        return ImageFormat.parse(v)

    @property
    def file_name(self) -> str:
        return variant_file_name(self.base_name, self.width, self.format)


def variant_file_name(base_name: str, width: int, fmt: ImageFormat) -> str:
    return f"{base_name}-{width}w.{fmt.extension}"
