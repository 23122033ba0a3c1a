"""Variant manifest — accumulates generated variants and persists data.json."""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Optional

from imgvariants.errors import ManifestEncodingError, ManifestWriteError
from imgvariants.models.manifest import BaseImageRecord
from imgvariants.models.variant import LQIPData, VariantDescriptor

logger = logging.getLogger(__name__)


class Manifest:
    """Maps base image names to their LQIP and generated variant files.

    Every mutation is an insert-if-absent performed under a lock, so
    concurrent workers can report results without coordinating, and
    repeated inserts of the same key leave the first value in place.
    """

    def __init__(self) -> None:
        self._records: dict[str, BaseImageRecord] = {}
        self._lock = threading.Lock()

    def add_record(self, base_name: str, lqip: Optional[LQIPData] = None) -> None:
        """Ensure a record exists for base_name. Existing records are left untouched."""
        with self._lock:
            if base_name not in self._records:
                self._records[base_name] = BaseImageRecord(base_name=base_name, lqip=lqip)

    def add_variant(self, descriptor: VariantDescriptor) -> None:
        """Record a generated variant unless its (width, format) is already present."""
        with self._lock:
            record = self._records.get(descriptor.base_name)
            if record is None:
                record = BaseImageRecord(base_name=descriptor.base_name)
                self._records[descriptor.base_name] = record
            formats = record.variants.setdefault(descriptor.width, {})
            formats.setdefault(descriptor.format.extension, descriptor.file_name)

    def get(self, base_name: str) -> BaseImageRecord | None:
        with self._lock:
            return self._records.get(base_name)

    def base_names(self) -> list[str]:
        with self._lock:
            return sorted(self._records)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, base_name: object) -> bool:
        with self._lock:
            return base_name in self._records

    def to_dict(self) -> dict:
        with self._lock:
            return {
                name: self._records[name].to_wire()
                for name in sorted(self._records)
            }

    def serialize(self) -> bytes:
        """Encode the whole manifest as deterministic JSON."""
        try:
            return json.dumps(self.to_dict(), indent=2, allow_nan=False).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise ManifestEncodingError(f"Could not encode manifest: {e}") from e

    def persist(self, destination: str | Path) -> Path:
        """Write the serialized manifest to destination."""
        path = Path(destination)
        data = self.serialize()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "wb") as f:
                f.write(data)
        except OSError as e:
            raise ManifestWriteError(f"Failed to write manifest to {path}: {e}") from e
        logger.debug("Saved manifest with %d records to %s", len(self), path)
        return path

    @classmethod
    def load(cls, path: str | Path) -> "Manifest":
        """Load a manifest from disk, or create a new one."""
        manifest = cls()
        path = Path(path)
        if not path.exists():
            return manifest
        try:
            with open(path) as f:
                data = json.load(f)
            for base_name, record in data.items():
                manifest._records[base_name] = BaseImageRecord.from_wire(base_name, record)
        except Exception as e:
            logger.warning("Failed to load manifest %s: %s. Creating new.", path, e)
            return cls()
        logger.debug("Loaded manifest with %d records from %s", len(manifest), path)
        return manifest
