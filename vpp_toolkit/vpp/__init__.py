"""VPP version 3 package reading and writing."""

from .errors import (
    BadMagicError,
    CorruptPayloadError,
    FormatError,
    MissingManifestError,
    UnsafeEntryNameError,
    UnsupportedVersionError,
    VPPError,
)
from .header import PackageFlags, VPPEntry, VPPHeader, VPPPackage, estimate_header_size
from .reader import ExtractedEntry, ExtractOptions, VPPReader
from .writer import PackOptions, PackResult, VPPWriter, build_package

__all__ = [
    "VPPReader",
    "VPPWriter",
    "build_package",
    "ExtractOptions",
    "ExtractedEntry",
    "PackOptions",
    "PackResult",
    "PackageFlags",
    "VPPEntry",
    "VPPHeader",
    "VPPPackage",
    "estimate_header_size",
    "VPPError",
    "FormatError",
    "BadMagicError",
    "UnsupportedVersionError",
    "CorruptPayloadError",
    "UnsafeEntryNameError",
    "MissingManifestError",
]
