"""Sequence manifests: plain text files listing entry order, one name per line.

Unpacking can record the directory order of a package into a manifest, and
packing can read it back so the rebuilt package keeps the same order.
"""

from pathlib import Path
from typing import Dict, Iterable, List, Optional, TextIO, TypeVar, Union

from .errors import MissingManifestError

MANIFEST_SUFFIX = ".vpp.txt"

T = TypeVar("T")


def manifest_path_for(path: Union[str, Path]) -> Path:
    """Return the manifest path belonging to a package or input directory.

    ``levels.vpp`` and a directory ``levels`` both map to ``levels.vpp.txt``.
    """
    return Path(path).with_suffix(MANIFEST_SUFFIX)


def parse_manifest(text: str) -> List[str]:
    """Split manifest text into names, stopping at the first blank line."""
    names = []
    for line in text.splitlines():
        if line == "":
            break
        names.append(line)
    return names


def read_manifest(path: Union[str, Path]) -> List[str]:
    """Read the ordered list of names from a manifest file."""
    path = Path(path)
    if not path.is_file():
        raise MissingManifestError(f"Sequence manifest not found: {path}", {"path": str(path)})
    return parse_manifest(path.read_text(encoding="ascii", errors="replace"))


def apply_manifest(sources: Dict[str, T], names: Iterable[str]) -> Dict[str, T]:
    """Reorder and filter sources by manifest order.

    Manifest lines may carry directory components; only the basename is
    matched against sources. The first occurrence of a basename wins and
    names with no matching source are dropped.
    """
    ordered: Dict[str, T] = {}
    for line in names:
        name = Path(line.replace("\\", "/")).name
        if name in ordered or name not in sources:
            continue
        ordered[name] = sources[name]
    return ordered


class SequenceRecorder:
    """Appends entry names to a manifest file, one per line."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._file: Optional[TextIO] = None

    def __enter__(self) -> "SequenceRecorder":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def open(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file = open(self.path, "a", encoding="ascii", errors="replace", newline="\n")

    def close(self) -> None:
        if self._file:
            self._file.close()
            self._file = None

    def record(self, name: str) -> None:
        if not self._file:
            raise RuntimeError("Manifest not opened")
        self._file.write(name + "\n")
        self._file.flush()
