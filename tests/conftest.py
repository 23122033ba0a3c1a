"""Pytest configuration and shared fixtures."""

from pathlib import Path

import pytest
from PIL import Image

from imgvariants.codec.pillow_codec import PillowCodec
from imgvariants.errors import EncodeError, PlaceholderError
from imgvariants.models.config import GeneratorConfig
from imgvariants.models.variant import ImageFormat, LQIPData


def write_image(path: Path, size: tuple[int, int] = (320, 240), mode: str = "RGB",
                color=(200, 80, 40)) -> Path:
    """Write a solid-colour image whose format follows the file extension."""
    path.parent.mkdir(parents=True, exist_ok=True)
    img = Image.new(mode, size, color)
    img.save(path)
    return path


# ============================================================================
# Codec Fixtures
# ============================================================================


class FailingCodec(PillowCodec):
    """PillowCodec that fails selected variants and, optionally, every LQIP."""

    def __init__(self, fail_pairs=(), fail_lqip: bool = False, **kwargs):
        super().__init__(**kwargs)
        self.fail_pairs = set(fail_pairs)
        self.fail_lqip = fail_lqip

    def make_placeholder(self, image, source_ext="png") -> LQIPData:
        if self.fail_lqip:
            raise PlaceholderError("placeholder encoder unavailable")
        return super().make_placeholder(image, source_ext)

    def resize_and_encode(self, image, width, fmt, quality) -> bytes:
        if (width, fmt) in self.fail_pairs:
            raise EncodeError(f"forced failure for {width}px {fmt.extension}")
        return super().resize_and_encode(image, width, fmt, quality)


@pytest.fixture
def codec() -> PillowCodec:
    return PillowCodec()


# ============================================================================
# Image Fixtures
# ============================================================================


@pytest.fixture
def source_dir(tmp_path: Path) -> Path:
    """A directory with cat.jpg and dog.png, plus files discovery must ignore."""
    src = tmp_path / "images"
    write_image(src / "cat.jpg", size=(400, 300))
    write_image(src / "dog.png", size=(300, 600), mode="RGBA", color=(10, 120, 200, 255))
    (src / "notes.txt").write_text("not an image")
    (src / "nested").mkdir()
    return src


@pytest.fixture
def rgb_image() -> Image.Image:
    return Image.new("RGB", (400, 200), (0, 128, 255))


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def generator_config(source_dir: Path, tmp_path: Path) -> GeneratorConfig:
    return GeneratorConfig(
        source_dir=str(source_dir),
        out_dir=str(tmp_path / "variants"),
        formats=[ImageFormat.JPEG, ImageFormat.WEBP],
        widths=[800, 1200],
        quality=75,
        max_workers=4,
    )
