"""Error types raised while reading and writing VPP packages."""

from typing import Any, Dict, Optional


class VPPError(Exception):
    """Base class for all package errors."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            details = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({details})"
        return self.message


class FormatError(VPPError):
    """The stream is not a readable version 3 package."""


class BadMagicError(FormatError):
    pass


class UnsupportedVersionError(FormatError):
    pass


class CorruptPayloadError(FormatError):
    """A compressed entry did not inflate to its declared size."""


class UnsafeEntryNameError(FormatError):
    """An entry name would resolve outside the extraction directory."""


class MissingManifestError(VPPError):
    """Sequence mode was requested but no manifest file exists."""


__all__ = [
    "VPPError",
    "FormatError",
    "BadMagicError",
    "UnsupportedVersionError",
    "CorruptPayloadError",
    "UnsafeEntryNameError",
    "MissingManifestError",
]
