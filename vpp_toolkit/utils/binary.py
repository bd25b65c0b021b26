"""Endian-aware binary reading and writing utilities."""

import struct
from enum import Enum
from io import BytesIO
from typing import BinaryIO, Union


class Endian(Enum):
    """Byte order of multi-byte values in a stream."""

    LITTLE = "<"
    BIG = ">"

    @property
    def prefix(self) -> str:
        return self.value


def align_up(value: int, alignment: int) -> int:
    """Round value up to the next multiple of alignment."""
    remainder = value % alignment
    if remainder:
        return value + alignment - remainder
    return value


class BinaryReader:
    """Helper for reading fixed-width binary data in either byte order."""

    def __init__(self, data: Union[bytes, BinaryIO], endian: Endian = Endian.BIG):
        if isinstance(data, (bytes, bytearray)):
            self._stream = BytesIO(data)
        else:
            self._stream = data
        self.endian = endian

    @property
    def stream(self) -> BinaryIO:
        return self._stream

    def tell(self) -> int:
        return self._stream.tell()

    def seek(self, offset: int, whence: int = 0) -> int:
        return self._stream.seek(offset, whence)

    def read_bytes(self, size: int) -> bytes:
        data = self._stream.read(size)
        if len(data) < size:
            raise EOFError(f"Expected {size} bytes, got {len(data)}")
        return data

    def read_u32(self) -> int:
        return struct.unpack(self.endian.prefix + "I", self.read_bytes(4))[0]

    def read_fixed_string(self, length: int, encoding: str = "ascii") -> str:
        """Read a fixed-length string field.

        Only the bytes before the first NUL count; anything after it in the
        field is ignored.
        """
        data = self.read_bytes(length)
        end = data.find(b"\x00")
        if end != -1:
            data = data[:end]
        return data.decode(encoding, errors="replace")

    def skip(self, count: int) -> None:
        """Skip forward by count bytes."""
        self._stream.seek(count, 1)


class BinaryWriter:
    """Helper for writing fixed-width binary data in either byte order."""

    def __init__(self, stream: BinaryIO, endian: Endian = Endian.LITTLE):
        self._stream = stream
        self.endian = endian

    @property
    def stream(self) -> BinaryIO:
        return self._stream

    def tell(self) -> int:
        return self._stream.tell()

    def seek(self, offset: int, whence: int = 0) -> int:
        return self._stream.seek(offset, whence)

    def write_bytes(self, data: bytes) -> None:
        self._stream.write(data)

    def write_u32(self, value: int) -> None:
        self._stream.write(struct.pack(self.endian.prefix + "I", value))

    def write_fixed_string(self, value: str, length: int, encoding: str = "ascii") -> None:
        """Write a string into a zero-filled field of length bytes.

        A string that fills the whole field is stored without a terminator;
        longer strings are truncated.
        """
        data = value.encode(encoding)[:length]
        self._stream.write(data.ljust(length, b"\x00"))

    def pad_to(self, offset: int) -> None:
        """Write zero padding until the stream position reaches offset."""
        pos = self.tell()
        if pos > offset:
            raise ValueError(f"Writer position {pos} is past target offset {offset}")
        if pos < offset:
            self._stream.write(b"\x00" * (offset - pos))
