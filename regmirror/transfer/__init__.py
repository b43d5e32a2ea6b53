"""Image transfer collaborators."""

from __future__ import annotations

from .copier import (
    CompressionFormat,
    ImageCopier,
    RegistryAuth,
    SkopeoImageCopier,
)
from .errors import CopyError

__all__ = [
    "CompressionFormat",
    "CopyError",
    "ImageCopier",
    "RegistryAuth",
    "SkopeoImageCopier",
]
