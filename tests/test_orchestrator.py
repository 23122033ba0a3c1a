"""Tests for the pipeline orchestrator.

These run the whole pipeline against small generated images on disk,
swapping in a codec that fails on demand where failures are needed.
"""

import json
import threading
from pathlib import Path
from unittest.mock import patch

import pytest
from PIL import Image

from imgvariants.codec.pillow_codec import PillowCodec
from imgvariants.discovery import base_name_from_path
from imgvariants.errors import NameExtractionError
from imgvariants.models.config import GeneratorConfig, LQIPConfig
from imgvariants.models.variant import ImageFormat
from imgvariants.orchestrator import Orchestrator

from conftest import FailingCodec, write_image


def _load_manifest(config: GeneratorConfig) -> dict:
    return json.loads(config.manifest_path.read_text())


def _widths(record: dict) -> dict:
    return {k: v for k, v in record.items() if k != "lqip"}


@pytest.mark.integration
class TestFullRun:

    def test_all_variants_succeed(self, generator_config: GeneratorConfig):
        result = Orchestrator(generator_config).run()

        assert result.success is True
        assert result.error is None
        assert result.total_images == 2
        assert result.variants_created == 8
        assert result.variants_failed == 0
        assert result.manifest_path == str(generator_config.manifest_path)

        data = _load_manifest(generator_config)
        assert set(data) == {"cat", "dog"}
        for name, record in data.items():
            widths = _widths(record)
            assert set(widths) == {"800", "1200"}
            for width, formats in widths.items():
                assert set(formats) == {"jpg", "webp"}
                for ext, file_name in formats.items():
                    assert file_name == f"{name}-{width}w.{ext}"
                    assert (Path(generator_config.out_dir) / file_name).exists()

    def test_lqip_recorded_with_original_dimensions(self, generator_config: GeneratorConfig):
        Orchestrator(generator_config).run()
        data = _load_manifest(generator_config)

        assert data["cat"]["lqip"]["width"] == 400
        assert data["cat"]["lqip"]["height"] == 300
        assert data["cat"]["lqip"]["image"].startswith("data:image/jpeg;base64,")
        assert data["dog"]["lqip"]["width"] == 300
        assert data["dog"]["lqip"]["height"] == 600
        assert data["dog"]["lqip"]["image"].startswith("data:image/png;base64,")

    def test_lqip_disabled(self, generator_config: GeneratorConfig):
        generator_config.lqip = LQIPConfig(enabled=False)
        result = Orchestrator(generator_config).run()

        data = _load_manifest(generator_config)
        assert data["cat"]["lqip"] is None
        assert all(not img.lqip_created for img in result.images)
        assert result.lqip_failed == 0

    def test_repeated_runs_are_idempotent(self, generator_config: GeneratorConfig):
        Orchestrator(generator_config).run()
        first = generator_config.manifest_path.read_bytes()
        generator_config.merge_existing = True
        Orchestrator(generator_config).run()
        assert generator_config.manifest_path.read_bytes() == first

    def test_empty_source_directory(self, tmp_path: Path):
        src = tmp_path / "empty"
        src.mkdir()
        config = GeneratorConfig(source_dir=str(src), out_dir=str(tmp_path / "out"))
        result = Orchestrator(config).run()
        assert result.success is True
        assert _load_manifest(config) == {}


@pytest.mark.integration
class TestPartialFailures:

    def test_single_variant_failure(self, generator_config: GeneratorConfig):
        codec = FailingCodec(fail_pairs={(1200, ImageFormat.WEBP)})
        result = Orchestrator(generator_config, codec=codec).run()

        assert result.success is True
        assert result.variants_created == 6
        assert result.variants_failed == 2  # once per image

        data = _load_manifest(generator_config)
        for name in ("cat", "dog"):
            widths = _widths(data[name])
            assert widths["800"] == {"jpg": f"{name}-800w.jpg", "webp": f"{name}-800w.webp"}
            assert widths["1200"] == {"jpg": f"{name}-1200w.jpg"}

    def test_lqip_failure_keeps_variants(self, generator_config: GeneratorConfig):
        codec = FailingCodec(fail_lqip=True)
        result = Orchestrator(generator_config, codec=codec).run()

        assert result.success is True
        assert result.lqip_failed == 2
        data = _load_manifest(generator_config)
        for record in data.values():
            assert record["lqip"] is None
            assert len(_widths(record)) == 2
            assert all(len(f) == 2 for f in _widths(record).values())

    def test_undecodable_image_gets_record_without_variants(self, generator_config: GeneratorConfig):
        (Path(generator_config.source_dir) / "broken.gif").write_bytes(b"not an image")
        result = Orchestrator(generator_config).run()

        assert result.success is True
        broken = next(i for i in result.images if i.base_name == "broken")
        assert broken.lqip_error is not None
        assert len(broken.variant_failures) == 4

        data = _load_manifest(generator_config)
        assert data["broken"] == {"lqip": None}
        assert len(_widths(data["cat"])) == 2

    def test_svg_source_does_not_abort_run(self, generator_config: GeneratorConfig):
        (Path(generator_config.source_dir) / "logo.svg").write_text(
            '<svg xmlns="http://www.w3.org/2000/svg" width="10" height="10"/>'
        )
        result = Orchestrator(generator_config).run()
        assert result.success is True
        assert result.total_images == 3
        assert "logo" in _load_manifest(generator_config)

    def test_name_extraction_failure_skips_image(self, generator_config: GeneratorConfig):
        def extract(path):
            if path.name == "dog.png":
                raise NameExtractionError(f"Cannot derive a base name from {path}")
            return base_name_from_path(path)

        with patch("imgvariants.orchestrator.base_name_from_path", side_effect=extract):
            result = Orchestrator(generator_config).run()

        assert result.success is True
        assert result.skipped_images == 1
        skipped = next(i for i in result.images if i.skipped)
        assert skipped.source_path.endswith("dog.png")
        assert skipped.variants_created == 0
        assert set(_load_manifest(generator_config)) == {"cat"}

    def test_unexpected_codec_error_is_contained(self, generator_config: GeneratorConfig):
        class ExplodingCodec(FailingCodec):
            def make_placeholder(self, image, source_ext="png"):
                if image.size == (400, 300):
                    raise RuntimeError("codec crashed")
                return super().make_placeholder(image, source_ext)

        result = Orchestrator(generator_config, codec=ExplodingCodec()).run()

        assert result.success is True
        cat = next(i for i in result.images if i.base_name == "cat")
        assert cat.error == "RuntimeError: codec crashed"
        data = _load_manifest(generator_config)
        assert len(_widths(data["dog"])) == 2


@pytest.mark.integration
class TestFatalFailures:

    def test_missing_source_directory(self, tmp_path: Path):
        out_dir = tmp_path / "out"
        config = GeneratorConfig(source_dir=str(tmp_path / "missing"), out_dir=str(out_dir))
        result = Orchestrator(config).run()

        assert result.success is False
        assert "Could not read image directory" in result.error
        assert result.images == []
        assert not out_dir.exists()

    def test_manifest_write_failure_fails_run(self, generator_config: GeneratorConfig):
        generator_config.manifest_path.mkdir(parents=True)
        orchestrator = Orchestrator(generator_config)
        result = orchestrator.run()

        assert result.success is False
        assert "Failed to write manifest" in result.error
        assert result.variants_created == 8
        assert len(orchestrator.manifest) == 2
        assert result.manifest_path == ""


@pytest.mark.integration
class TestMerge:

    def test_merge_accumulates_across_runs(self, generator_config: GeneratorConfig, tmp_path: Path):
        Orchestrator(generator_config).run()

        second_src = tmp_path / "more"
        write_image(second_src / "owl.webp", size=(120, 80))
        write_image(second_src / "cat.jpg", size=(10, 10))
        generator_config.source_dir = str(second_src)
        generator_config.widths = [1800]
        generator_config.merge_existing = True
        Orchestrator(generator_config).run()

        data = _load_manifest(generator_config)
        assert set(data) == {"cat", "dog", "owl"}
        assert set(_widths(data["cat"])) == {"800", "1200", "1800"}
        # The earlier LQIP wins
        assert data["cat"]["lqip"]["width"] == 400

    def test_without_merge_manifest_is_replaced(self, generator_config: GeneratorConfig, tmp_path: Path):
        Orchestrator(generator_config).run()

        second_src = tmp_path / "more"
        write_image(second_src / "owl.png", size=(120, 80))
        generator_config.source_dir = str(second_src)
        Orchestrator(generator_config).run()

        assert set(_load_manifest(generator_config)) == {"owl"}


@pytest.mark.asyncio
class TestRunAsync:

    async def test_explicit_paths_skip_discovery(self, generator_config: GeneratorConfig):
        cat = Path(generator_config.source_dir) / "cat.jpg"
        result = await Orchestrator(generator_config).run_async(paths=[cat])
        assert result.total_images == 1
        assert set(_load_manifest(generator_config)) == {"cat"}


class CountingCodec(PillowCodec):
    """Records how many sources were decoded before the first variant was encoded."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.lock = threading.Lock()
        self.decodes = 0
        self.decodes_before_first_encode = None

    def decode(self, path):
        with self.lock:
            self.decodes += 1
        return super().decode(path)

    def resize_and_encode(self, image, width, fmt, quality):
        with self.lock:
            if self.decodes_before_first_encode is None:
                self.decodes_before_first_encode = self.decodes
        return super().resize_and_encode(image, width, fmt, quality)


@pytest.mark.integration
class TestImageConcurrency:

    def test_decoded_images_bounded_by_workers(self, tmp_path: Path):
        src = tmp_path / "many"
        for i in range(20):
            write_image(src / f"img{i:02d}.png", size=(64, 48))
        config = GeneratorConfig(
            source_dir=str(src), out_dir=str(tmp_path / "out"),
            formats=["png"], widths=[16], max_workers=2,
        )
        codec = CountingCodec()

        result = Orchestrator(config, codec=codec).run()

        assert result.success is True
        assert result.variants_created == 20
        assert codec.decodes == 20
        assert codec.decodes_before_first_encode <= config.max_workers


@pytest.mark.integration
class TestDuplicateBaseNames:

    def test_first_source_wins_and_rest_are_skipped(self, tmp_path: Path):
        src = tmp_path / "dupes"
        write_image(src / "cat.jpg", size=(400, 300))
        write_image(src / "cat.png", size=(200, 100))
        write_image(src / "dog.png", size=(50, 50))
        config = GeneratorConfig(
            source_dir=str(src), out_dir=str(tmp_path / "out"),
            formats=["png"], widths=[40],
        )

        result = Orchestrator(config).run()

        assert result.success is True
        assert result.skipped_images == 1
        skipped = next(i for i in result.images if i.skipped)
        assert skipped.source_path.endswith("cat.png")
        assert skipped.base_name == "cat"
        assert "already used by cat.jpg" in skipped.error
        assert skipped.variants_created == 0

        data = _load_manifest(config)
        assert set(data) == {"cat", "dog"}
        assert data["cat"]["lqip"]["width"] == 400
        with Image.open(Path(config.out_dir) / "cat-40w.png") as img:
            assert img.size == (40, 30)

    @pytest.mark.asyncio
    async def test_explicit_path_order_decides(self, tmp_path: Path, generator_config: GeneratorConfig):
        first = write_image(tmp_path / "a" / "cat.png", size=(100, 100))
        second = write_image(tmp_path / "b" / "cat.png", size=(100, 50))

        result = await Orchestrator(generator_config).run_async(paths=[first, second])

        assert [i.skipped for i in result.images] == [False, True]
        assert result.images[0].variants_created == 4
