"""Tests for the VPP package reader and extractor."""

import struct
import zlib
from io import BytesIO
from pathlib import Path

import pytest

from vpp_toolkit.utils.binary import Endian
from vpp_toolkit.vpp.errors import BadMagicError, CorruptPayloadError, UnsafeEntryNameError
from vpp_toolkit.vpp.header import VPPEntry
from vpp_toolkit.vpp.reader import (
    ExtractOptions,
    VPPReader,
    check_entry_name,
    iter_entry_offsets,
    resolve_output_name,
    split_extension,
)
from vpp_toolkit.vpp.writer import PackOptions, build_package


def create_package(entries, prefix: str = "<") -> bytes:
    """Hand-assemble a package from (name, uncompressed_size, payload) tuples.

    Payloads are placed on consecutive sector boundaries after the directory.
    """
    count = len(entries)
    directory = b""
    for name, uncompressed, payload in entries:
        directory += name.ljust(24, b"\x00") + struct.pack(prefix + "II", uncompressed, len(payload))

    data = bytearray(struct.pack(prefix + "IIII", 0x51890ACE, 3, count, 0).ljust(2048, b"\x00"))
    data += directory
    data += b"\x00" * (2048 - len(data) % 2048)
    for _, _, payload in entries:
        data += payload
        if len(data) % 2048:
            data += b"\x00" * (2048 - len(data) % 2048)
    struct.pack_into(prefix + "I", data, 12, len(data))
    return bytes(data)


class TestIterEntryOffsets:
    """Tests for offset reconstruction from directory order."""

    def test_sequential_accumulation(self):
        entries = [
            VPPEntry("a", 5, 5),
            VPPEntry("b", 4096, 4096),
            VPPEntry("c", 10000, 2049),  # compressed: stored size counts
            VPPEntry("d", 0, 0),
            VPPEntry("e", 1, 1),
        ]
        offsets = [offset for _, offset in iter_entry_offsets(entries, 4096)]
        assert offsets == [4096, 6144, 10240, 14336, 14336]

    def test_alignment_invariant(self):
        entries = [VPPEntry(str(i), size, size) for i, size in enumerate([1, 2047, 2048, 2049, 7])]
        pairs = list(iter_entry_offsets(entries, 4096))
        for (entry, offset), (_, next_offset) in zip(pairs, pairs[1:]):
            assert next_offset == -(-(offset + entry.stored_size) // 2048) * 2048


class TestResolveOutputName:
    def test_first_occurrence_unchanged(self):
        seen = {}
        assert resolve_output_name("x.txt", seen) == "x.txt"
        assert seen == {"x.txt": 1}

    def test_duplicates_are_numbered(self):
        seen = {}
        names = [resolve_output_name("x.txt", seen) for _ in range(3)]
        assert names == ["x.txt", "x [DUPLICATE_1].txt", "x [DUPLICATE_2].txt"]

    def test_duplicate_without_extension(self):
        seen = {}
        resolve_output_name("readme", seen)
        assert resolve_output_name("readme", seen) == "readme [DUPLICATE_1]"

    def test_duplicate_dotfile_keeps_name_as_extension(self):
        seen = {}
        resolve_output_name(".bashrc", seen)
        assert resolve_output_name(".bashrc", seen) == " [DUPLICATE_1].bashrc"

    def test_sessions_are_independent(self):
        first = {}
        resolve_output_name("x.txt", first)
        assert resolve_output_name("x.txt", {}) == "x.txt"


class TestSplitExtension:
    def test_plain_name(self):
        assert split_extension("level.tbl") == ("level", ".tbl")

    def test_last_dot_wins(self):
        assert split_extension("a.b.c") == ("a.b", ".c")

    def test_no_extension(self):
        assert split_extension("readme") == ("readme", "")

    def test_trailing_dot(self):
        assert split_extension("name.") == ("name", "")

    def test_dot_in_directory_ignored(self):
        assert split_extension("dir.d/file") == ("dir.d/file", "")


class TestCheckEntryName:
    def test_plain_names_allowed(self):
        check_entry_name("a.txt")
        check_entry_name("sub/a.txt")
        check_entry_name("x [DUPLICATE_1].txt")

    @pytest.mark.parametrize(
        "name",
        ["../escaped.txt", "sub/../../x", "..\\x", "/etc/passwd", "\\x", "C:x.txt", ""],
    )
    def test_unsafe_names_rejected(self, name):
        with pytest.raises(UnsafeEntryNameError):
            check_entry_name(name)


class TestVPPReader:
    """Tests for VPPReader class."""

    def test_concrete_single_entry(self):
        reader = VPPReader(BytesIO(create_package([(b"a.txt", 5, b"hello")])))
        reader.open()

        assert reader.endian == Endian.LITTLE
        assert reader.data_offset == 4096
        [(entry, offset)] = list(reader.iter_entries())
        assert offset == 4096
        assert reader.read_entry(entry, offset) == b"hello"

    def test_compression_inferred_per_entry(self):
        raw = b"z" * 100
        payload = zlib.compress(raw)
        stream = BytesIO(create_package([(b"c.bin", 100, payload), (b"r.bin", 3, b"raw")]))

        with VPPReader(stream) as reader:
            assert reader.extract_file("c.bin") == raw
            assert reader.extract_file("r.bin") == b"raw"
            assert reader.compressed_count == 1

    def test_big_endian_package(self):
        stream = BytesIO(create_package([(b"a.txt", 5, b"hello")], prefix=">"))
        with VPPReader(stream) as reader:
            assert reader.endian == Endian.BIG
            assert reader.extract_file("a.txt") == b"hello"

    def test_list_files(self):
        stream = BytesIO(create_package([(b"b", 1, b"1"), (b"a", 1, b"2")]))
        with VPPReader(stream) as reader:
            assert reader.list_files() == ["b", "a"]

    def test_extract_file_missing(self):
        with VPPReader(BytesIO(create_package([]))) as reader:
            with pytest.raises(KeyError):
                reader.extract_file("nope")

    def test_bad_magic(self, tmp_path: Path):
        path = tmp_path / "bad.vpp"
        path.write_bytes(b"\x00" * 4096)
        with pytest.raises(BadMagicError):
            with VPPReader(path):
                pass

    def test_truncated_payload(self):
        data = create_package([(b"a.bin", 4000, b"q" * 4000)])[:5000]
        with VPPReader(BytesIO(data)) as reader:
            with pytest.raises(CorruptPayloadError):
                reader.extract_file("a.bin")

    def test_stream_left_open(self):
        stream = BytesIO(create_package([(b"a", 1, b"a")]))
        with VPPReader(stream):
            pass
        assert not stream.closed


class TestExtractAll:
    """Tests for full extraction to disk."""

    def test_round_trip(self, tmp_path: Path):
        files = {
            "a.txt": b"hello",
            "empty.bin": b"",
            "sector.dat": b"\xAA" * 2048,
            "big.dat": bytes(range(256)) * 40,
        }
        package = tmp_path / "test.vpp"
        build_package(files.items(), package, PackOptions(compress=True))

        output = tmp_path / "out"
        with VPPReader(package) as reader:
            results = list(reader.extract_all(output))

        assert [r.output_name for r in results] == list(files)
        for name, data in files.items():
            assert (output / name).read_bytes() == data
        for result in results:
            assert len(result.path.read_bytes()) == result.entry.uncompressed_size

    def test_duplicate_names(self, tmp_path: Path):
        stream = BytesIO(create_package([(b"x.txt", 5, b"first"), (b"x.txt", 6, b"second")]))
        with VPPReader(stream) as reader:
            results = list(reader.extract_all(tmp_path))

        assert [r.output_name for r in results] == ["x.txt", "x [DUPLICATE_1].txt"]
        assert (tmp_path / "x.txt").read_bytes() == b"first"
        assert (tmp_path / "x [DUPLICATE_1].txt").read_bytes() == b"second"

    def test_existing_files_skipped(self, tmp_path: Path):
        (tmp_path / "a.txt").write_bytes(b"keep")
        stream = BytesIO(create_package([(b"a.txt", 3000, b"A" * 3000), (b"b.txt", 3, b"bbb")]))

        with VPPReader(stream) as reader:
            results = list(reader.extract_all(tmp_path))

        assert [r.written for r in results] == [False, True]
        assert (tmp_path / "a.txt").read_bytes() == b"keep"
        # The cursor still moves past the skipped payload
        assert results[1].offset == 8192
        assert (tmp_path / "b.txt").read_bytes() == b"bbb"

    def test_skipped_compressed_entry_advances_by_stored_size(self, tmp_path: Path):
        raw = bytes(range(256)) * 20
        payload = zlib.compress(raw)
        (tmp_path / "c.bin").write_bytes(b"old")
        stream = BytesIO(create_package([(b"c.bin", len(raw), payload), (b"d.bin", 2, b"dd")]))

        with VPPReader(stream) as reader:
            list(reader.extract_all(tmp_path))

        assert (tmp_path / "d.bin").read_bytes() == b"dd"

    def test_overwrite(self, tmp_path: Path):
        (tmp_path / "a.txt").write_bytes(b"old")
        stream = BytesIO(create_package([(b"a.txt", 3, b"new")]))

        with VPPReader(stream) as reader:
            results = list(reader.extract_all(tmp_path, ExtractOptions(overwrite=True)))

        assert results[0].written
        assert (tmp_path / "a.txt").read_bytes() == b"new"

    def test_corrupt_entry_aborts(self, tmp_path: Path):
        stream = BytesIO(create_package([(b"bad", 500, b"\x78\x9c" + b"\x00" * 10), (b"ok", 2, b"ok")]))
        with VPPReader(stream) as reader:
            with pytest.raises(CorruptPayloadError):
                list(reader.extract_all(tmp_path))
        assert not (tmp_path / "ok").exists()

    def test_corrupt_entry_continue(self, tmp_path: Path):
        stream = BytesIO(create_package([(b"bad", 500, b"\x78\x9c" + b"\x00" * 10), (b"ok", 2, b"ok")]))
        options = ExtractOptions(continue_on_error=True)
        with VPPReader(stream) as reader:
            results = list(reader.extract_all(tmp_path, options))

        assert isinstance(results[0].error, CorruptPayloadError)
        assert not results[0].written
        assert not (tmp_path / "bad").exists()
        assert (tmp_path / "ok").read_bytes() == b"ok"

    def test_records_sequence(self, tmp_path: Path):
        package = tmp_path / "level.vpp"
        package.write_bytes(create_package([(b"b.txt", 1, b"b"), (b"a.txt", 1, b"a"), (b"b.txt", 1, b"c")]))

        with VPPReader(package) as reader:
            list(reader.extract_all(tmp_path / "out", ExtractOptions(record_sequence=True)))

        manifest = tmp_path / "level.vpp.txt"
        assert manifest.read_text().splitlines() == ["b.txt", "a.txt", "b.txt"]

    def test_sequence_requires_path_for_streams(self, tmp_path: Path):
        stream = BytesIO(create_package([(b"a", 1, b"a")]))
        with VPPReader(stream) as reader:
            with pytest.raises(ValueError):
                list(reader.extract_all(tmp_path, ExtractOptions(record_sequence=True)))

    def test_parent_traversal_rejected(self, tmp_path: Path):
        output = tmp_path / "out"
        stream = BytesIO(create_package([(b"../escaped.txt", 5, b"hello")]))

        with VPPReader(stream) as reader:
            with pytest.raises(UnsafeEntryNameError):
                list(reader.extract_all(output))

        assert not (tmp_path / "escaped.txt").exists()

    def test_absolute_name_rejected(self, tmp_path: Path):
        output = tmp_path / "out"
        stream = BytesIO(create_package([(b"/abs.txt", 5, b"hello")]))

        with VPPReader(stream) as reader:
            with pytest.raises(UnsafeEntryNameError):
                list(reader.extract_all(output))

        assert list(output.iterdir()) == []

    def test_unsafe_name_continue(self, tmp_path: Path):
        output = tmp_path / "out"
        stream = BytesIO(create_package([(b"../escaped.txt", 5, b"hello"), (b"ok", 2, b"ok")]))
        options = ExtractOptions(continue_on_error=True)

        with VPPReader(stream) as reader:
            results = list(reader.extract_all(output, options))

        assert isinstance(results[0].error, UnsafeEntryNameError)
        assert not results[0].written
        assert not (tmp_path / "escaped.txt").exists()
        assert (output / "ok").read_bytes() == b"ok"
