"""VPP package reader and extractor."""

import re
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import BinaryIO, Dict, Iterator, List, Optional, Tuple, Union

from ..utils.binary import Endian, align_up
from .compression import decompress
from .errors import CorruptPayloadError, FormatError, UnsafeEntryNameError
from .header import SECTOR_SIZE, VPPEntry, VPPHeader, VPPPackage, read_package
from .manifest import SequenceRecorder, manifest_path_for

_DRIVE_PATTERN = re.compile(r"^[A-Za-z]:")


def iter_entry_offsets(entries: List[VPPEntry], data_offset: int) -> Iterator[Tuple[VPPEntry, int]]:
    """Yield (entry, offset) pairs by walking the directory in order.

    The first payload starts at data_offset; each following payload starts
    at the first sector boundary after the previous one ends.
    """
    cursor = data_offset
    for entry in entries:
        yield entry, cursor
        cursor = align_up(cursor + entry.stored_size, SECTOR_SIZE)


def split_extension(name: str) -> Tuple[str, str]:
    """Split name into (stem, extension) at the last dot of its final part.

    A leading dot counts, so ".bashrc" has an empty stem. A trailing dot is
    dropped from the stem and gives an empty extension.
    """
    start = max(name.rfind("/"), name.rfind("\\")) + 1
    dot = name.rfind(".", start)
    if dot == -1:
        return name, ""
    extension = name[dot:] if dot < len(name) - 1 else ""
    return name[:dot], extension


def resolve_output_name(name: str, seen: Dict[str, int]) -> str:
    """Pick a unique output name for an entry within one extraction.

    Repeated names get " [DUPLICATE_n]" inserted before the extension, n
    counting up from 1 for each repeat. seen is updated in place.
    """
    if name not in seen:
        seen[name] = 1
        return name

    count = seen[name]
    seen[name] = count + 1
    stem, extension = split_extension(name)
    return f"{stem} [DUPLICATE_{count}]{extension}"


def check_entry_name(name: str) -> None:
    """Reject names that would be written outside the extraction directory."""
    normalized = name.replace("\\", "/")
    parts = PurePosixPath(normalized).parts
    if (
        not parts
        or normalized.startswith("/")
        or _DRIVE_PATTERN.match(normalized)
        or ".." in parts
    ):
        raise UnsafeEntryNameError(f"Refusing to extract unsafe entry name {name!r}", {"entry": name})


@dataclass
class ExtractOptions:
    """Settings for extracting a package."""

    overwrite: bool = False
    # Append each entry name to a manifest file
    record_sequence: bool = False
    sequence_path: Optional[Path] = None
    # Report corrupt entries instead of aborting
    continue_on_error: bool = False


@dataclass
class ExtractedEntry:
    """Outcome of extracting one entry."""

    entry: VPPEntry
    offset: int
    output_name: str
    path: Path
    written: bool
    error: Optional[FormatError] = None


class VPPReader:
    """Reader for VPP version 3 packages."""

    def __init__(self, source: Union[Path, str, BinaryIO]):
        if isinstance(source, (str, Path)):
            self.path: Optional[Path] = Path(source)
            self._file: Optional[BinaryIO] = None
            self._owns_file = True
        else:
            self.path = None
            self._file = source
            self._owns_file = False
        self._package: Optional[VPPPackage] = None

    def __enter__(self) -> "VPPReader":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def open(self) -> None:
        """Open the package and parse header and directory."""
        if self._owns_file and self._file is None:
            self._file = open(self.path, "rb")
        try:
            self._package = read_package(self._file)
        except Exception:
            self.close()
            raise

    def close(self) -> None:
        """Close the package file if this reader opened it."""
        if self._owns_file and self._file:
            self._file.close()
            self._file = None

    @property
    def package(self) -> VPPPackage:
        if not self._package:
            raise RuntimeError("Package not opened")
        return self._package

    @property
    def header(self) -> VPPHeader:
        return self.package.header

    @property
    def endian(self) -> Endian:
        return self.package.endian

    @property
    def entries(self) -> List[VPPEntry]:
        return self.package.entries

    @property
    def data_offset(self) -> int:
        return self.package.data_offset

    @property
    def compressed_count(self) -> int:
        return sum(1 for entry in self.entries if entry.is_compressed)

    def iter_entries(self) -> Iterator[Tuple[VPPEntry, int]]:
        """Yield every entry with the offset of its payload."""
        return iter_entry_offsets(self.entries, self.data_offset)

    def read_entry(self, entry: VPPEntry, offset: int) -> bytes:
        """Read and, if needed, inflate the payload at offset."""
        self._file.seek(offset)
        data = self._file.read(entry.stored_size)
        if len(data) < entry.stored_size:
            raise CorruptPayloadError(
                f"Payload of {entry.name} truncated",
                {"offset": offset, "expected": entry.stored_size, "actual": len(data)},
            )

        if not entry.is_compressed:
            return data
        try:
            return decompress(data, entry.uncompressed_size)
        except CorruptPayloadError as e:
            e.context.setdefault("entry", entry.name)
            raise

    def list_files(self) -> List[str]:
        """List entry names in directory order."""
        return [e.name for e in self.entries]

    def get_entry_by_name(self, name: str) -> Optional[Tuple[VPPEntry, int]]:
        """Find the first entry called name, with its payload offset."""
        for entry, offset in self.iter_entries():
            if entry.name == name:
                return entry, offset
        return None

    def extract_file(self, name: str) -> bytes:
        """Extract a single entry by name."""
        found = self.get_entry_by_name(name)
        if found is None:
            raise KeyError(name)
        return self.read_entry(*found)

    def extract_all(
        self, output_dir: Path, options: Optional[ExtractOptions] = None
    ) -> Iterator[ExtractedEntry]:
        """Extract every entry to output_dir in directory order.

        Yields an ExtractedEntry per directory record, including entries that
        were skipped because their output already exists.
        Names that are absolute or climb out of output_dir with ".." raise
        UnsafeEntryNameError before anything is written for them.
        """
        options = options or ExtractOptions()
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        recorder = None
        if options.record_sequence:
            recorder = SequenceRecorder(options.sequence_path or self._default_sequence_path())
            recorder.open()

        seen: Dict[str, int] = {}
        try:
            for entry, offset in self.iter_entries():
                output_name = resolve_output_name(entry.name, seen)
                output_path = output_dir / output_name
                result = ExtractedEntry(
                    entry=entry,
                    offset=offset,
                    output_name=output_name,
                    path=output_path,
                    written=False,
                )

                try:
                    check_entry_name(output_name)
                    if options.overwrite or not output_path.exists():
                        data = self.read_entry(entry, offset)
                        output_path.parent.mkdir(parents=True, exist_ok=True)
                        output_path.write_bytes(data)
                        result.written = True
                except FormatError as e:
                    if not options.continue_on_error:
                        raise
                    result.error = e

                if recorder:
                    recorder.record(entry.name)

                yield result
        finally:
            if recorder:
                recorder.close()

    def _default_sequence_path(self) -> Path:
        if self.path is None:
            raise ValueError("sequence_path is required when reading from a stream")
        return manifest_path_for(self.path)
