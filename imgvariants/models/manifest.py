"""Manifest record data structures and the data.json wire shape."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field

from imgvariants.models.variant import LQIPData


class BaseImageRecord(BaseModel):
    """Everything generated for one source image, keyed by its base name."""
    base_name: str = Field(min_length=1)
    lqip: Optional[LQIPData] = None
    # width -> format extension -> generated file name
    variants: dict[int, dict[str, str]] = Field(default_factory=dict)

    def to_wire(self) -> dict[str, Any]:
        """Flatten into the data.json shape: `lqip` plus one key per width."""
        data: dict[str, Any] = {
            "lqip": self.lqip.model_dump() if self.lqip else None,
        }
        for width in sorted(self.variants):
            formats = self.variants[width]
            data[str(width)] = {ext: formats[ext] for ext in sorted(formats)}
        return data

    @classmethod
    def from_wire(cls, base_name: str, data: dict[str, Any]) -> "BaseImageRecord":
        lqip = data.get("lqip")
        variants: dict[int, dict[str, str]] = {}
        for key, formats in data.items():
            if key == "lqip":
                continue
            variants[int(key)] = {str(ext): str(name) for ext, name in formats.items()}
        return cls(
            base_name=base_name,
            lqip=LQIPData(**lqip) if lqip else None,
            variants=variants,
        )
