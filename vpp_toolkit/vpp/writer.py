"""VPP package writer."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Iterable, List, Optional, Tuple, Union

from ..utils.binary import BinaryWriter, Endian, align_up
from .compression import compress
from .errors import VPPError
from .header import (
    HEADER_SIZE,
    SECTOR_SIZE,
    PackageFlags,
    VPPEntry,
    VPPPackage,
    estimate_header_size,
    write_directory_record,
    write_header,
)

Source = Union[bytes, Path]

U32_MAX = 0xFFFFFFFF


@dataclass
class PackOptions:
    """Settings for building a package."""

    endian: Endian = Endian.LITTLE
    compress: bool = False
    condensed: bool = False
    extra_flags: int = 0
    padding: bool = True
    # Header bytes 16..2048; zero-filled when not given
    reserved: Optional[bytes] = None

    @property
    def flags(self) -> PackageFlags:
        flags = PackageFlags.NONE
        if self.compress:
            flags |= PackageFlags.COMPRESSED
        if self.condensed:
            flags |= PackageFlags.CONDENSED
        return flags


@dataclass
class BuiltEntry:
    """An entry as written, with the offset its payload landed at."""

    entry: VPPEntry
    offset: int


@dataclass
class PackResult:
    """Summary of a finished pack."""

    package: VPPPackage
    entries: List[BuiltEntry] = field(default_factory=list)

    @property
    def total_size(self) -> int:
        return self.package.total_size

    @property
    def compressed_count(self) -> int:
        return sum(1 for built in self.entries if built.entry.is_compressed)


class VPPWriter:
    """Builds a package from an ordered list of named sources.

    Payloads are written in the order entries were added, which is also the
    directory order. Readers rely on that to find each payload.
    """

    def __init__(self, output: Union[Path, str, BinaryIO], options: Optional[PackOptions] = None):
        self.options = options or PackOptions()
        self._output = output
        self._sources: List[Tuple[str, Source]] = []

    def __len__(self) -> int:
        return len(self._sources)

    @property
    def names(self) -> List[str]:
        return [name for name, _ in self._sources]

    def add_file(self, name: str, path: Union[Path, str]) -> None:
        """Queue a file on disk under the given entry name."""
        self._add(name, Path(path))

    def add_bytes(self, name: str, data: bytes) -> None:
        """Queue an in-memory buffer under the given entry name."""
        self._add(name, bytes(data))

    def _add(self, name: str, source: Source) -> None:
        try:
            name.encode("ascii")
        except UnicodeEncodeError as e:
            raise VPPError(f"Entry name is not ASCII: {name!r}") from e
        self._sources.append((name, source))

    def write(self) -> PackResult:
        """Write the package and return what was written."""
        if isinstance(self._output, (str, Path)):
            path = Path(self._output)
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "wb") as f:
                return self._write_to(f)
        return self._write_to(self._output)

    def _write_to(self, stream: BinaryIO) -> PackResult:
        options = self.options
        writer = BinaryWriter(stream, options.endian)
        base = writer.tell()

        package = VPPPackage(
            endian=options.endian,
            flags=options.flags,
            extra_flags=options.extra_flags,
        )
        if options.reserved is not None:
            package.reserved = options.reserved

        # Header and directory are written once all sizes are known
        data_offset = estimate_header_size(len(self._sources))
        writer.pad_to(base + data_offset)

        result = PackResult(package=package)
        for name, source in self._sources:
            raw = _read_source(source)
            payload = raw
            if options.compress:
                packed = compress(raw)
                # Equal sizes would read back as an uncompressed entry
                if len(packed) < len(raw):
                    payload = packed

            if len(raw) > U32_MAX:
                raise VPPError(f"Entry too large for package: {name}", {"size": len(raw)})

            entry = VPPEntry(
                name=name,
                uncompressed_size=len(raw),
                compressed_size=len(payload),
            )
            offset = writer.tell() - base
            writer.write_bytes(payload)
            if options.padding:
                writer.pad_to(base + align_up(writer.tell() - base, SECTOR_SIZE))

            package.entries.append(entry)
            package.uncompressed_size += entry.uncompressed_size
            package.compressed_size += entry.stored_size
            result.entries.append(BuiltEntry(entry=entry, offset=offset))

        end = writer.tell()
        package.total_size = end - base
        if package.total_size > U32_MAX:
            raise VPPError("Package too large", {"size": package.total_size})

        writer.seek(base)
        write_header(stream, package.header)
        writer.seek(base + HEADER_SIZE)
        for entry in package.entries:
            write_directory_record(writer, entry)
        writer.seek(end)

        return result


def _read_source(source: Source) -> bytes:
    if isinstance(source, Path):
        return source.read_bytes()
    return source


def build_package(
    sources: Iterable[Tuple[str, Union[bytes, Path, str]]],
    output: Union[Path, str, BinaryIO],
    options: Optional[PackOptions] = None,
) -> PackResult:
    """Pack (name, source) pairs into a package, preserving their order.

    A source is either a bytes buffer or a path to a file.
    """
    writer = VPPWriter(output, options)
    for name, source in sources:
        if isinstance(source, (bytes, bytearray)):
            writer.add_bytes(name, source)
        else:
            writer.add_file(name, source)
    return writer.write()
