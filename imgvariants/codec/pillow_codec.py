"""Pillow-backed codec: decode, resize/encode, and LQIP placeholders."""

from __future__ import annotations

import base64
import io
import logging
from pathlib import Path

from PIL import Image, ImageFilter, ImageOps

from imgvariants.errors import DecodeError, EncodeError, PlaceholderError
from imgvariants.models.config import LQIPConfig
from imgvariants.models.variant import ImageFormat, LQIPData

logger = logging.getLogger(__name__)

# Pillow format plugin name and data-URI MIME subtype per output format.
# SVG is absent: a raster codec cannot produce it.
_PIL_FORMATS: dict[ImageFormat, tuple[str, str]] = {
    ImageFormat.JPEG: ("JPEG", "jpeg"),
    ImageFormat.PNG: ("PNG", "png"),
    ImageFormat.GIF: ("GIF", "gif"),
    ImageFormat.WEBP: ("WEBP", "webp"),
    ImageFormat.AVIF: ("AVIF", "avif"),
}

# Modes each encoder accepts directly; anything else is converted first.
_NATIVE_MODES: dict[ImageFormat, tuple[str, ...]] = {
    ImageFormat.JPEG: ("RGB", "L", "CMYK"),
    ImageFormat.PNG: ("RGB", "RGBA", "L", "LA", "P", "1"),
    ImageFormat.GIF: ("P", "L", "RGB", "RGBA"),
    ImageFormat.WEBP: ("RGB", "RGBA"),
    ImageFormat.AVIF: ("RGB", "RGBA"),
}


class PillowCodec:
    """Decodes source images and produces resized variants with Pillow."""

    def __init__(self, lqip: LQIPConfig | None = None):
        self.lqip = lqip or LQIPConfig()

    def decode(self, path: str | Path) -> Image.Image:
        """Open and fully load an image, applying its EXIF orientation."""
        try:
            with Image.open(path) as img:
                img.load()
                return ImageOps.exif_transpose(img)
        except Exception as e:
            # Pillow plugins raise a mix of OSError, SyntaxError, EOFError etc.
            raise DecodeError(f"Cannot decode {path}: {e}") from e

    def dimensions(self, image: Image.Image) -> tuple[int, int]:
        return image.size

    def make_placeholder(self, image: Image.Image, source_ext: str = "png") -> LQIPData:
        """Build a tiny blurred preview as a data URI, keeping the original size."""
        width, height = self.dimensions(image)
        fmt = _placeholder_format(source_ext)
        pil_format, mime = _PIL_FORMATS[fmt]
        try:
            thumb = image.copy()
            thumb.thumbnail((self.lqip.size, self.lqip.size), Image.Resampling.LANCZOS)
            thumb = _convert_for(thumb, fmt)
            if self.lqip.blur_radius > 0:
                if thumb.mode not in ("RGB", "RGBA", "L"):
                    thumb = thumb.convert("RGBA")
                thumb = thumb.filter(ImageFilter.GaussianBlur(self.lqip.blur_radius))
                thumb = _convert_for(thumb, fmt)
            buf = io.BytesIO()
            thumb.save(buf, format=pil_format)
        except (OSError, ValueError, KeyError) as e:
            raise PlaceholderError(f"Cannot build placeholder: {e}") from e

        payload = base64.b64encode(buf.getvalue()).decode("ascii")
        return LQIPData(
            image=f"data:image/{mime};base64,{payload}",
            width=width,
            height=height,
        )

    def resize_and_encode(
        self, image: Image.Image, width: int, fmt: ImageFormat, quality: int,
    ) -> bytes:
        """Resize to width (aspect preserved) and encode; quality applies to lossy formats only."""
        if fmt not in _PIL_FORMATS:
            raise EncodeError(f"{fmt.value} output is not supported by the raster codec")
        pil_format, _ = _PIL_FORMATS[fmt]

        src_w, src_h = self.dimensions(image)
        height = max(1, round(src_h * width / src_w))
        save_kwargs: dict = {}
        if fmt.is_lossy:
            save_kwargs["quality"] = quality
        if fmt in (ImageFormat.JPEG, ImageFormat.PNG):
            save_kwargs["optimize"] = True

        try:
            resized = image.resize((width, height), Image.Resampling.LANCZOS)
            resized = _convert_for(resized, fmt)
            buf = io.BytesIO()
            resized.save(buf, format=pil_format, **save_kwargs)
        except (OSError, ValueError, KeyError) as e:
            raise EncodeError(f"Cannot encode {width}px {fmt.extension}: {e}") from e
        return buf.getvalue()

    def write(self, data: bytes, destination: Path) -> None:
        try:
            with open(destination, "wb") as f:
                f.write(data)
        except OSError as e:
            raise EncodeError(f"Cannot write {destination}: {e}") from e


def _placeholder_format(source_ext: str) -> ImageFormat:
    try:
        fmt = ImageFormat.parse(source_ext)
    except ValueError:
        return ImageFormat.PNG
    return fmt if fmt in _PIL_FORMATS else ImageFormat.PNG


def _convert_for(image: Image.Image, fmt: ImageFormat) -> Image.Image:
    if image.mode in _NATIVE_MODES[fmt]:
        return image
    if fmt == ImageFormat.JPEG:
        return image.convert("RGB")
    if "A" in image.getbands() or "transparency" in image.info:
        return image.convert("RGBA")
    return image.convert("RGB")
