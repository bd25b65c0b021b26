"""VPP version 3 header and directory structures.

Layout (values after the magic use the byte order the magic was found in):

    0x0000  u32   magic 0x51890ACE
    0x0004  u32   version (3)
    0x0008  u32   directory entry count
    0x000C  u32   total package size
    0x0010  ...   reserved up to 0x0800
    0x0800  32*N  directory: name[24], uncompressed size, compressed size

Entry payloads follow the directory, starting on a sector boundary. The
directory stores no offsets; every payload sits at the next sector boundary
after the previous one.
"""

from dataclasses import dataclass, field
from enum import IntFlag
from typing import BinaryIO, List

from ..utils.binary import BinaryReader, BinaryWriter, Endian
from .errors import BadMagicError, UnsupportedVersionError

VPP_MAGIC = 0x51890ACE
VPP_VERSION = 3

SECTOR_SIZE = 2048
HEADER_SIZE = 2048
DIRECTORY_ENTRY_SIZE = 32
ENTRY_NAME_SIZE = 24

# Bytes of the header block after magic, version, count and size
RESERVED_SIZE = HEADER_SIZE - 16


class PackageFlags(IntFlag):
    """Archive-level packing policy."""

    NONE = 0
    COMPRESSED = 1 << 0
    CONDENSED = 1 << 1


def pad_to(alignment: int, size: int) -> int:
    """Padding that follows size bytes to reach the next sector boundary.

    A size already on a boundary still gets a full sector of padding, which
    is how existing packages lay out their directory.
    """
    return alignment - (size % alignment)


def estimate_header_size(entry_count: int) -> int:
    """Size of the header block plus directory, i.e. the data region start."""
    directory_size = entry_count * DIRECTORY_ENTRY_SIZE
    return HEADER_SIZE + directory_size + pad_to(SECTOR_SIZE, directory_size)


@dataclass
class VPPEntry:
    """Directory record (32 bytes)."""

    name: str  # 24 bytes: ASCII, NUL-padded
    uncompressed_size: int  # 4 bytes
    compressed_size: int  # 4 bytes

    @property
    def is_compressed(self) -> bool:
        return self.uncompressed_size != self.compressed_size

    @property
    def stored_size(self) -> int:
        """Number of payload bytes the entry occupies in the data region."""
        return self.compressed_size if self.is_compressed else self.uncompressed_size


@dataclass
class VPPHeader:
    """Package header block (2048 bytes)."""

    endian: Endian
    entry_count: int
    total_size: int
    reserved: bytes = bytes(RESERVED_SIZE)

    @property
    def data_offset(self) -> int:
        return estimate_header_size(self.entry_count)


@dataclass
class VPPPackage:
    """In-memory view of a whole package."""

    endian: Endian = Endian.LITTLE
    flags: PackageFlags = PackageFlags.NONE
    extra_flags: int = 0
    total_size: int = 0
    uncompressed_size: int = 0
    compressed_size: int = 0
    entries: List[VPPEntry] = field(default_factory=list)
    reserved: bytes = bytes(RESERVED_SIZE)

    @property
    def data_offset(self) -> int:
        return estimate_header_size(len(self.entries))

    @property
    def header(self) -> VPPHeader:
        return VPPHeader(
            endian=self.endian,
            entry_count=len(self.entries),
            total_size=self.total_size,
            reserved=self.reserved,
        )


def detect_endian(magic: bytes) -> Endian:
    """Work out the byte order from the first four bytes of a package."""
    if len(magic) < 4:
        raise BadMagicError("Not a package file: stream too short", {"size": len(magic)})

    value = int.from_bytes(magic[:4], byteorder="little")
    if value == VPP_MAGIC:
        return Endian.LITTLE
    if int.from_bytes(magic[:4], byteorder="big") == VPP_MAGIC:
        return Endian.BIG
    raise BadMagicError(f"Not a package file: magic 0x{value:08X}", {"expected": hex(VPP_MAGIC)})


def read_header(stream: BinaryIO) -> VPPHeader:
    """Read the 2048-byte header block at the start of stream."""
    stream.seek(0)
    block = stream.read(HEADER_SIZE)
    endian = detect_endian(block)

    reader = BinaryReader(block, endian)
    reader.skip(4)
    version = reader.read_u32()
    if version != VPP_VERSION:
        raise UnsupportedVersionError(
            f"Unexpected package version {version} (expected {VPP_VERSION})",
            {"version": version},
        )
    if len(block) < HEADER_SIZE:
        raise EOFError(f"Expected {HEADER_SIZE} header bytes, got {len(block)}")

    entry_count = reader.read_u32()
    total_size = reader.read_u32()
    reserved = reader.read_bytes(RESERVED_SIZE)

    return VPPHeader(
        endian=endian,
        entry_count=entry_count,
        total_size=total_size,
        reserved=reserved,
    )


def write_header(stream: BinaryIO, header: VPPHeader) -> None:
    """Write the header block at the current position (normally 0)."""
    writer = BinaryWriter(stream, header.endian)
    writer.write_u32(VPP_MAGIC)
    writer.write_u32(VPP_VERSION)
    writer.write_u32(header.entry_count)
    writer.write_u32(header.total_size)
    writer.write_bytes(header.reserved[:RESERVED_SIZE].ljust(RESERVED_SIZE, b"\x00"))


def read_directory_record(reader: BinaryReader) -> VPPEntry:
    """Read one 32-byte directory record."""
    name = reader.read_fixed_string(ENTRY_NAME_SIZE)
    uncompressed_size = reader.read_u32()
    compressed_size = reader.read_u32()
    return VPPEntry(
        name=name,
        uncompressed_size=uncompressed_size,
        compressed_size=compressed_size,
    )


def write_directory_record(writer: BinaryWriter, entry: VPPEntry) -> None:
    """Write one 32-byte directory record."""
    writer.write_fixed_string(entry.name, ENTRY_NAME_SIZE)
    writer.write_u32(entry.uncompressed_size)
    writer.write_u32(entry.compressed_size)


def read_directory(stream: BinaryIO, header: VPPHeader) -> List[VPPEntry]:
    """Read every directory record following the header block."""
    reader = BinaryReader(stream, header.endian)
    reader.seek(HEADER_SIZE)
    return [read_directory_record(reader) for _ in range(header.entry_count)]


def read_package(stream: BinaryIO) -> VPPPackage:
    """Parse header and directory of a package into memory."""
    header = read_header(stream)
    entries = read_directory(stream, header)

    flags = PackageFlags.NONE
    if any(entry.is_compressed for entry in entries):
        flags |= PackageFlags.COMPRESSED

    return VPPPackage(
        endian=header.endian,
        flags=flags,
        total_size=header.total_size,
        uncompressed_size=sum(e.uncompressed_size for e in entries),
        compressed_size=sum(e.stored_size for e in entries),
        entries=entries,
        reserved=header.reserved,
    )
