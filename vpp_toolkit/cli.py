"""VPP Toolkit CLI."""

import sys
from pathlib import Path
from typing import Optional, Tuple

import click

from . import __version__
from .utils.binary import Endian


@click.group()
@click.version_option(version=__version__)
def main():
    """VPP Toolkit - Pack and unpack Volition VPP (version 3) packages.

    \b
    pack:   directory of files -> .vpp package
    unpack: .vpp package -> directory of files
    list:   show the package directory
    """
    pass


def default_pack_output(directory: Path) -> Path:
    """Output path used when pack is given a single directory."""
    directory = Path(directory)
    return directory.parent / f"{directory.name}_PACKED.vpp"


@main.command()
@click.argument("paths", nargs=-1, required=True, type=click.Path(path_type=Path))
@click.option("-c", "--compress", is_flag=True, help="Compress entry data")
@click.option(
    "-f",
    "--flag",
    "flag_bits",
    type=click.IntRange(0, 31),
    multiple=True,
    help="Extra header flag, given as a bit number (repeatable)",
)
@click.option(
    "-l",
    "--little-endian",
    "endian",
    flag_value="little",
    default=True,
    help="Pack data in little-endian mode (default)",
)
@click.option("-b", "--big-endian", "endian", flag_value="big", help="Pack data in big-endian mode")
@click.option("-v", "--verbose", is_flag=True, help="List each entry as it is packed")
@click.option(
    "--padding/--no-padding",
    default=True,
    help="Pad each entry to a 2048-byte sector",
)
@click.option(
    "-s",
    "--sequence",
    is_flag=True,
    help="Order entries by the .vpp.txt manifest",
)
def pack(
    paths: Tuple[Path, ...],
    compress: bool,
    flag_bits: Tuple[int, ...],
    endian: str,
    verbose: bool,
    padding: bool,
    sequence: bool,
):
    """Pack directories into a VPP package.

    \b
    vpp-toolkit pack INPUT_DIR
    vpp-toolkit pack OUTPUT_VPP INPUT_DIR [INPUT_DIR...]

    With a single directory the package is written next to it as
    <dir>_PACKED.vpp. When the same file name appears in several input
    directories, the first one wins.

    With --sequence, entries are taken in the order listed in the manifest
    written by `unpack --sequence` (<dir>.vpp.txt for a single directory,
    <output>.vpp.txt otherwise).
    """
    from .vpp import PackOptions, VPPWriter
    from .vpp.manifest import manifest_path_for, read_manifest
    from .vpp.sources import collect_directories, collect_sequenced, exclude_path

    if len(paths) == 1:
        # Resolve so "." still has a name to build <dir>_PACKED.vpp from
        input_dirs = [paths[0].resolve()]
        output = default_pack_output(input_dirs[0])
        manifest_base = input_dirs[0]
    else:
        input_dirs = list(paths[1:])
        output = paths[0]
        manifest_base = output

    extra_flags = 0
    for bit in flag_bits:
        extra_flags |= 1 << bit

    options = PackOptions(
        endian=Endian.BIG if endian == "big" else Endian.LITTLE,
        compress=compress,
        extra_flags=extra_flags,
        padding=padding,
    )

    click.echo(f"Output:   {output}")
    click.echo(f"Compress: {'yes' if compress else 'no'}")
    click.echo(f"Sequence: {'yes' if sequence else 'no'}")
    click.echo()

    try:
        if sequence:
            names = read_manifest(manifest_path_for(manifest_base))
            sources = collect_sequenced(input_dirs, names)
        else:
            sources = collect_directories(input_dirs)
        sources = exclude_path(sources, output)

        writer = VPPWriter(output, options)
        for name, path in sources.items():
            writer.add_file(name, path)

        result = writer.write()

        if verbose:
            total = len(result.entries)
            width = len(str(total))
            for i, built in enumerate(result.entries, 1):
                entry = built.entry
                note = f" (zlib {entry.compressed_size})" if entry.is_compressed else ""
                click.echo(f"[{i:>{width}}/{total}] {entry.name} {entry.uncompressed_size}{note}")
            click.echo()

        click.echo(f"Packed:     {len(result.entries)} files")
        click.echo(f"Compressed: {result.compressed_count} files")
        click.echo(f"Size:       {result.total_size} bytes")

    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@main.command()
@click.argument("archive", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("output", required=False, type=click.Path(file_okay=False, path_type=Path))
@click.option("-o", "--overwrite", is_flag=True, help="Overwrite files if they already exist")
@click.option("-v", "--verbose", is_flag=True, help="List each entry as it is extracted")
@click.option(
    "-s",
    "--sequence",
    is_flag=True,
    help="Record entry order to <archive>.vpp.txt",
)
@click.option(
    "--keep-going",
    is_flag=True,
    help="Skip corrupt entries instead of stopping",
)
def unpack(
    archive: Path,
    output: Optional[Path],
    overwrite: bool,
    verbose: bool,
    sequence: bool,
    keep_going: bool,
):
    """Unpack a VPP package.

    OUTPUT defaults to a directory named after the package in the current
    directory. Repeated entry names are written as "name [DUPLICATE_n].ext".
    """
    from .vpp import ExtractOptions, VPPReader

    if output is None:
        output = Path.cwd() / archive.stem

    click.echo(f"Opening: {archive}")

    try:
        with VPPReader(archive) as reader:
            total = len(reader.entries)
            click.echo(f"Output:  {output}")
            click.echo(f"Entries: {total}")
            click.echo()

            options = ExtractOptions(
                overwrite=overwrite,
                record_sequence=sequence,
                continue_on_error=keep_going,
            )

            items = reader.extract_all(output, options)
            if verbose:
                results = []
                width = len(str(total))
                for i, item in enumerate(items, 1):
                    status = "" if item.written else " (skipped)"
                    if item.error is not None:
                        status = f" (failed: {item.error})"
                    click.echo(f"[{i:>{width}}/{total}] {item.output_name}{status}")
                    results.append(item)
            else:
                with click.progressbar(
                    items,
                    length=total,
                    label="Extracting",
                    item_show_func=lambda x: x.output_name if x else "",
                ) as bar:
                    results = list(bar)

            failed = [item for item in results if item.error is not None]
            written = sum(1 for item in results if item.written)
            skipped = len(results) - written - len(failed)

            click.echo()
            click.echo(f"Extracted:  {written} files")
            if skipped:
                click.echo(f"Skipped:    {skipped} existing files")
            click.echo(f"Compressed: {reader.compressed_count} files")

            if failed:
                for item in failed:
                    click.echo(f"Failed: {item.entry.name}: {item.error}", err=True)
                sys.exit(1)

    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@main.command(name="list")
@click.argument("archive", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def list_entries(archive: Path):
    """List the entries of a VPP package."""
    from .vpp import VPPReader

    try:
        with VPPReader(archive) as reader:
            endian = "little" if reader.endian == Endian.LITTLE else "big"
            click.echo(f"Endian:  {endian}")
            click.echo(f"Size:    {reader.package.total_size} bytes")
            click.echo(f"Entries: {len(reader.entries)}")
            click.echo()
            for entry, offset in reader.iter_entries():
                note = f"  zlib {entry.compressed_size}" if entry.is_compressed else ""
                click.echo(f"  0x{offset:08X}  {entry.uncompressed_size:>10}  {entry.name}{note}")

    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
