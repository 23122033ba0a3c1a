"""Error kinds raised across the variant pipeline.

Per-image and per-variant errors are recovered by the orchestrator and
recorded in the run result. Only DiscoveryError and the manifest errors
end a run.
"""

from __future__ import annotations


class ImageVariantsError(Exception):
    """Base class for all pipeline errors."""


class DiscoveryError(ImageVariantsError):
    """The source directory could not be read."""


class NameExtractionError(ImageVariantsError):
    """No usable base name could be derived from a source path."""


class DecodeError(ImageVariantsError):
    """The codec could not open or decode a source image."""


class PlaceholderError(ImageVariantsError):
    """The codec could not build an LQIP for a decoded image."""


class EncodeError(ImageVariantsError):
    """A single (width, format) variant could not be resized, encoded or written."""


class EncodingError(ImageVariantsError):
    """A structure could not be encoded to its textual form."""


class ManifestEncodingError(EncodingError):
    """The manifest could not be serialized to JSON."""


class ManifestWriteError(ImageVariantsError, OSError):
    """The manifest could not be written to its destination."""
