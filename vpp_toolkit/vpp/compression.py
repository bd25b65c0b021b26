"""zlib payload compression for package entries."""

import zlib

from .errors import CorruptPayloadError


def decompress(data: bytes, expected_size: int) -> bytes:
    """Inflate a zlib stream into exactly expected_size bytes.

    Output beyond expected_size is discarded. Raises CorruptPayloadError when
    the stream is invalid or runs out early.
    """
    inflater = zlib.decompressobj()
    try:
        result = inflater.decompress(data, expected_size)
        if len(result) < expected_size:
            result += inflater.flush()
    except zlib.error as e:
        raise CorruptPayloadError(f"Invalid zlib stream: {e}") from e

    if len(result) < expected_size:
        raise CorruptPayloadError(
            f"Payload inflated to {len(result)} bytes, expected {expected_size}",
            {"actual": len(result), "expected": expected_size},
        )
    return result[:expected_size]


def compress(data: bytes, level: int = zlib.Z_DEFAULT_COMPRESSION) -> bytes:
    """Deflate data into a zlib stream."""
    return zlib.compress(data, level)
