"""Run result data structures produced by the orchestrator."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from imgvariants.models.variant import ImageFormat


class VariantFailure(BaseModel):
    width: int
    format: ImageFormat
    error: str


class ImageOutcome(BaseModel):
    """What happened to one source image."""
    source_path: str
    base_name: str = ""
    lqip_created: bool = False
    lqip_error: Optional[str] = None
    variants_created: int = 0
    variant_failures: list[VariantFailure] = Field(default_factory=list)
    error: Optional[str] = None  # set when the image was skipped or aborted

    @property
    def skipped(self) -> bool:
        return self.error is not None


class RunResult(BaseModel):
    run_id: str
    started_at: str
    completed_at: str = ""
    duration_seconds: float = 0.0
    source_dir: str
    manifest_path: str = ""
    images: list[ImageOutcome] = Field(default_factory=list)
    success: bool = True
    error: Optional[str] = None

    @property
    def total_images(self) -> int:
        return len(self.images)

    @property
    def skipped_images(self) -> int:
        return sum(1 for i in self.images if i.skipped)

    @property
    def variants_created(self) -> int:
        return sum(i.variants_created for i in self.images)

    @property
    def variants_failed(self) -> int:
        return sum(len(i.variant_failures) for i in self.images)

    @property
    def lqip_failed(self) -> int:
        return sum(1 for i in self.images if i.lqip_error is not None)
