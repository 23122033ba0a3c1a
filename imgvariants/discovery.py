"""Source image discovery."""

from __future__ import annotations

import logging
from pathlib import Path

from imgvariants.errors import DiscoveryError, NameExtractionError

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "gif", "avif", "webp", "svg"})


def discover_images(directory: str | Path) -> list[Path]:
    """List supported image files directly inside directory, sorted by name."""
    directory = Path(directory)
    try:
        entries = sorted(directory.iterdir(), key=lambda p: p.name)
    except OSError as e:
        raise DiscoveryError(f"Could not read image directory {directory}: {e}") from e

    images: list[Path] = []
    for path in entries:
        ext = path.suffix.lower().lstrip(".")
        if ext not in ALLOWED_EXTENSIONS:
            continue
        if not path.is_file():
            continue
        images.append(path)

    logger.debug("Discovered %d supported images in %s", len(images), directory)
    return images


def base_name_from_path(path: str | Path) -> str:
    """The file stem, used as the manifest key."""
    stem = Path(path).stem
    if not stem.strip(". "):
        raise NameExtractionError(f"Cannot derive a base name from {path}")
    return stem
