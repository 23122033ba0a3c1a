"""Variant generator — fans one source image out over (width, format) pairs."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Sequence

from imgvariants.codec.pillow_codec import PillowCodec
from imgvariants.errors import DecodeError, EncodeError
from imgvariants.models.run_result import VariantFailure
from imgvariants.models.variant import ImageFormat, VariantDescriptor, variant_file_name

logger = logging.getLogger(__name__)


@dataclass
class GenerationResult:
    created: list[VariantDescriptor] = field(default_factory=list)
    failures: list[VariantFailure] = field(default_factory=list)


def width_format_pairs(
    widths: Iterable[int], formats: Iterable[ImageFormat],
) -> list[tuple[int, ImageFormat]]:
    """Full cross-product of widths x formats, width-major."""
    formats = list(formats)
    return [(w, f) for w in widths for f in formats]


class VariantGenerator:
    """Materializes every requested variant of a single source image.

    Each (width, format) attempt runs in a worker thread and is
    independent of the others: a failed attempt is logged and reported,
    never raised. Concurrency is bounded by a semaphore which callers may
    share across images to cap total codec work.
    """

    def __init__(
        self,
        codec: PillowCodec,
        out_dir: Path,
        quality: int,
        semaphore: asyncio.Semaphore | None = None,
        max_workers: int = 1,
    ):
        self.codec = codec
        self.out_dir = Path(out_dir)
        self.quality = quality
        self.semaphore = semaphore or asyncio.Semaphore(max_workers)

    async def generate(
        self,
        source_path: str | Path,
        base_name: str,
        pairs: Sequence[tuple[int, ImageFormat]],
        image=None,
    ) -> GenerationResult:
        """Attempt every pair; pass an already decoded image to skip decoding."""
        result = GenerationResult()
        if not pairs:
            return result

        if image is None:
            try:
                async with self.semaphore:
                    image = await asyncio.to_thread(self.codec.decode, source_path)
            except DecodeError as e:
                logger.warning("Skipping all variants of %s: %s", source_path, e)
                result.failures = [
                    VariantFailure(width=w, format=f, error=str(e)) for w, f in pairs
                ]
                return result

        outcomes = await asyncio.gather(*[
            self._attempt(image, source_path, base_name, width, fmt)
            for width, fmt in pairs
        ])
        for outcome in outcomes:
            if isinstance(outcome, VariantDescriptor):
                result.created.append(outcome)
            else:
                result.failures.append(outcome)

        logger.debug("%s: %d variants created, %d failed",
                     base_name, len(result.created), len(result.failures))
        return result

    async def _attempt(
        self, image, source_path, base_name: str, width: int, fmt: ImageFormat,
    ) -> VariantDescriptor | VariantFailure:
        async with self.semaphore:
            logger.debug("Converting %s to width: %d and format: %s (quality=%d)",
                         source_path, width, fmt.extension, self.quality)
            try:
                await asyncio.to_thread(self._materialize, image, base_name, width, fmt)
            except EncodeError as e:
                logger.warning("Failed to create %s: %s",
                               variant_file_name(base_name, width, fmt), e)
                return VariantFailure(width=width, format=fmt, error=str(e))
            except Exception as e:
                logger.warning("Unexpected error creating %s: %s",
                               variant_file_name(base_name, width, fmt), e, exc_info=True)
                return VariantFailure(width=width, format=fmt, error=f"{type(e).__name__}: {e}")

        return VariantDescriptor(base_name=base_name, width=width, format=fmt)

    def _materialize(self, image, base_name: str, width: int, fmt: ImageFormat) -> Path:
        data = self.codec.resize_and_encode(image, width, fmt, self.quality)
        destination = self.out_dir / variant_file_name(base_name, width, fmt)
        self.codec.write(data, destination)
        return destination
