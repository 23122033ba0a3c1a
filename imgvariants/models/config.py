"""Configuration models for variant generation."""

from __future__ import annotations

import json
import os
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from imgvariants.models.variant import ImageFormat

DEFAULT_WIDTHS = [800, 1200, 1800, 2400]


class LQIPConfig(BaseModel):
    enabled: bool = True
    size: int = Field(default=30, gt=0)  # bounding box of the blurred thumbnail
    blur_radius: float = Field(default=5.0, ge=0)


class GeneratorConfig(BaseModel):
    # Locations
    source_dir: str = "."
    out_dir: str = "variants"
    manifest_name: str = "data.json"

    # Variants
    formats: list[ImageFormat] = Field(default_factory=lambda: [ImageFormat.JPEG])
    widths: list[int] = Field(default_factory=lambda: list(DEFAULT_WIDTHS))
    quality: int = 80

    # Placeholders
    lqip: LQIPConfig = Field(default_factory=LQIPConfig)

    # Execution
    max_workers: int = Field(default_factory=lambda: os.cpu_count() or 1)
    merge_existing: bool = False

    @field_validator("formats", mode="before")
    @classmethod
    def parse_formats(cls, v):
        if isinstance(v, (str, ImageFormat)):
            v = [v]
        formats: list[ImageFormat] = []
        for item in v:
            fmt = ImageFormat.parse(item)
            if fmt not in formats:
                formats.append(fmt)
        if not formats:
            raise ValueError("At least one output format is required")
        return formats

    @field_validator("widths")
    @classmethod
    def check_widths(cls, v: list[int]) -> list[int]:
        widths: list[int] = []
        for w in v:
            if w <= 0:
                raise ValueError(f"Widths must be positive integers, got {w}")
            if w not in widths:
                widths.append(w)
        if not widths:
            raise ValueError("At least one width is required")
        return widths

    @field_validator("quality")
    @classmethod
    def check_quality(cls, v: int) -> int:
        if not 1 <= v <= 100:
            raise ValueError("quality must be an integer value between 1 and 100")
        return v

    @field_validator("max_workers")
    @classmethod
    def check_workers(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_workers must be at least 1")
        return v

    @property
    def manifest_path(self) -> Path:
        return Path(self.out_dir) / self.manifest_name

    @classmethod
    def load(cls, path: str | Path) -> "GeneratorConfig":
        """Load config from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            data = json.load(f)
        return cls(**data)

    def save(self, path: str | Path) -> None:
        """Save config to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.model_dump(mode="json"), f, indent=2)
