"""Pipeline orchestrator — coordinates discovery, LQIP, variant generation and the manifest."""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from pathlib import Path
from typing import Sequence

from imgvariants.codec.pillow_codec import PillowCodec
from imgvariants.discovery import base_name_from_path, discover_images
from imgvariants.errors import (
    DecodeError,
    DiscoveryError,
    ManifestEncodingError,
    ManifestWriteError,
    NameExtractionError,
    PlaceholderError,
)
from imgvariants.generator.variant_generator import VariantGenerator, width_format_pairs
from imgvariants.manifest.manifest import Manifest
from imgvariants.models.config import GeneratorConfig
from imgvariants.models.run_result import ImageOutcome, RunResult, VariantFailure
from imgvariants.models.variant import ImageFormat, LQIPData

logger = logging.getLogger(__name__)


class Orchestrator:
    """Runs one variant-generation pass over a source directory."""

    def __init__(self, config: GeneratorConfig, codec: PillowCodec | None = None):
        self.config = config
        self.codec = codec or PillowCodec(config.lqip)
        self.manifest = Manifest()

    def run(self) -> RunResult:
        """Process every discovered image and write the manifest."""
        return asyncio.run(self.run_async())

    async def run_async(self, paths: Sequence[Path] | None = None) -> RunResult:
        start = time.time()
        result = RunResult(
            run_id=f"run_{uuid.uuid4().hex[:8]}",
            started_at=time.strftime("%Y-%m-%dT%H:%M:%SZ"),
            source_dir=self.config.source_dir,
        )
        out_dir = Path(self.config.out_dir)
        logger.info("=== Generating variants from %s into %s ===",
                    self.config.source_dir, out_dir)

        if paths is None:
            try:
                paths = discover_images(self.config.source_dir)
            except DiscoveryError as e:
                logger.error("%s", e)
                return self._finish(result, start, error=str(e))
        logger.info("Found %d supported images", len(paths))
        for path in paths:
            logger.debug("  %s", path)

        try:
            out_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error("Failed to create output directory %s: %s", out_dir, e)
            return self._finish(result, start, error=str(e))

        manifest_path = self.config.manifest_path
        if self.config.merge_existing:
            self.manifest = Manifest.load(manifest_path)
        else:
            self.manifest = Manifest()

        semaphore = asyncio.Semaphore(self.config.max_workers)
        image_slots = asyncio.Semaphore(self.config.max_workers)
        generator = VariantGenerator(
            self.codec, out_dir, self.config.quality, semaphore=semaphore,
        )
        pairs = width_format_pairs(self.config.widths, self.config.formats)
        logger.info("Requesting %d variants per image (widths=%s, formats=%s, quality=%d)",
                    len(pairs), self.config.widths,
                    [f.extension for f in self.config.formats], self.config.quality)

        async def bounded(path: Path) -> ImageOutcome:
            # At most max_workers decoded sources are alive at once
            async with image_slots:
                return await self._process_image(path, generator, pairs, semaphore)

        claimed: dict[str, Path] = {}
        jobs = []
        for path in map(Path, paths):
            duplicate_of = self._claim_base_name(path, claimed)
            if duplicate_of is not None:
                jobs.append(self._skip_duplicate(path, duplicate_of))
            else:
                jobs.append(bounded(path))
        outcomes = await asyncio.gather(*jobs)
        result.images = list(outcomes)

        logger.info("Writing manifest to %s", manifest_path)
        try:
            self.manifest.persist(manifest_path)
        except (ManifestWriteError, ManifestEncodingError) as e:
            logger.error("Failed to write manifest: %s", e)
            return self._finish(result, start, error=str(e))

        result.manifest_path = str(manifest_path)
        return self._finish(result, start)

    async def _process_image(
        self,
        path: Path,
        generator: VariantGenerator,
        pairs: list[tuple[int, ImageFormat]],
        semaphore: asyncio.Semaphore,
    ) -> ImageOutcome:
        outcome = ImageOutcome(source_path=str(path))
        try:
            base_name = base_name_from_path(path)
        except NameExtractionError as e:
            logger.warning("Skipping %s: %s", path, e)
            outcome.error = str(e)
            return outcome
        outcome.base_name = base_name

        try:
            image = None
            try:
                async with semaphore:
                    image = await asyncio.to_thread(self.codec.decode, path)
            except DecodeError as e:
                logger.warning("Failed to decode %s: %s", path, e)
                decode_error = str(e)
            else:
                decode_error = None

            lqip: LQIPData | None = None
            if self.config.lqip.enabled:
                if image is None:
                    outcome.lqip_error = decode_error
                else:
                    lqip = await self._create_lqip(image, path, semaphore, outcome)

            self.manifest.add_record(base_name, lqip)

            if image is None:
                outcome.variant_failures = [
                    VariantFailure(width=w, format=f, error=decode_error) for w, f in pairs
                ]
                return outcome

            generated = await generator.generate(path, base_name, pairs, image=image)
            for descriptor in generated.created:
                self.manifest.add_variant(descriptor)
            outcome.variants_created = len(generated.created)
            outcome.variant_failures = generated.failures
        except Exception as e:
            logger.error("Error processing %s: %s", path, e, exc_info=True)
            outcome.error = f"{type(e).__name__}: {e}"
            return outcome

        if outcome.variant_failures:
            logger.info("%s: %d/%d variants created",
                        base_name, outcome.variants_created, len(pairs))
        else:
            logger.info("%s: all %d variants created", base_name, outcome.variants_created)
        return outcome

    async def _create_lqip(
        self, image, path: Path, semaphore: asyncio.Semaphore, outcome: ImageOutcome,
    ) -> LQIPData | None:
        ext = path.suffix.lstrip(".")
        try:
            async with semaphore:
                lqip = await asyncio.to_thread(self.codec.make_placeholder, image, ext)
        except (DecodeError, PlaceholderError) as e:
            logger.warning("Failed to create LQIP for %s: %s", path.name, e)
            outcome.lqip_error = str(e)
            return None
        outcome.lqip_created = True
        return lqip

    def _claim_base_name(self, path: Path, claimed: dict[str, Path]) -> Path | None:
        """Reserve path's base name; return the earlier path if it is already taken."""
        try:
            base_name = base_name_from_path(path)
        except NameExtractionError:
            return None  # reported by _process_image
        if base_name in claimed:
            return claimed[base_name]
        claimed[base_name] = path
        return None

    async def _skip_duplicate(self, path: Path, first: Path) -> ImageOutcome:
        error = NameExtractionError(
            f"Base name of {path.name} is already used by {first.name}"
        )
        logger.warning("Skipping %s: %s", path, error)
        return ImageOutcome(
            source_path=str(path),
            base_name=base_name_from_path(path),
            error=str(error),
        )

    def _finish(self, result: RunResult, start: float, error: str | None = None) -> RunResult:
        result.completed_at = time.strftime("%Y-%m-%dT%H:%M:%SZ")
        result.duration_seconds = round(time.time() - start, 2)
        if error is not None:
            result.success = False
            result.error = error
            logger.error("=== Run %s failed after %.1fs ===", result.run_id, result.duration_seconds)
        else:
            logger.info("=== Run %s complete in %.1fs: %d images, %d variants, %d failed ===",
                        result.run_id, result.duration_seconds, result.total_images,
                        result.variants_created, result.variants_failed)
        return result
