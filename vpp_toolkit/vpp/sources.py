"""Input discovery for packing: map entry names to files on disk."""

from pathlib import Path
from typing import Dict, Iterable, List, Union

from .manifest import apply_manifest

PathLike = Union[str, Path]


def collect_directory(directory: PathLike) -> Dict[str, Path]:
    """Collect the regular files of one directory, sorted by name.

    Subdirectories are not descended into.
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise NotADirectoryError(f"Input directory not found: {directory}")

    files: Dict[str, Path] = {}
    for path in sorted(directory.iterdir()):
        if path.is_file():
            files[path.name] = path.resolve()
    return files


def collect_directories(directories: Iterable[PathLike]) -> Dict[str, Path]:
    """Merge several input directories; the first file with a given name wins."""
    files: Dict[str, Path] = {}
    for directory in directories:
        for name, path in collect_directory(directory).items():
            files.setdefault(name, path)
    return files


def collect_sequenced(directories: List[PathLike], names: Iterable[str]) -> Dict[str, Path]:
    """Resolve manifest names against the input directories, in manifest order.

    Each name is looked up in every directory in turn and the result is
    ordered by apply_manifest. A name found in no directory raises
    FileNotFoundError.
    """
    names = list(names)
    found: Dict[str, Path] = {}
    for line in names:
        relative = Path(line.replace("\\", "/"))
        if relative.name in found:
            continue
        for directory in directories:
            candidate = Path(directory) / relative
            if candidate.is_file():
                found[relative.name] = candidate.resolve()
                break
        else:
            raise FileNotFoundError(f"Manifest entry not found in any input directory: {line}")
    return apply_manifest(found, names)


def exclude_path(sources: Dict[str, Path], path: PathLike) -> Dict[str, Path]:
    """Drop any source that is the file at path, e.g. the package being written."""
    target = Path(path).resolve()
    return {name: source for name, source in sources.items() if source != target}
