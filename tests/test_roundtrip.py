#!/usr/bin/env python
"""
test_roundtrip.py - End-to-end compress/extract
===============================================

Trees go through compress() and back out through extract(); contents and
checksums must agree. Also covers list_archive, checksum_archive and the
xxHash tree comparison used to check restored trees.
"""

import random
import shutil
import tempfile
import unittest
import zlib
from pathlib import Path

from ziptree import (
    ArchiveStats,
    EntryKind,
    InvalidSourceError,
    SourceNotFoundError,
    checksum_archive,
    compare_trees,
    compress,
    extract,
    list_archive,
    tree_digests,
)


def _write_file(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


def _snapshot_tree(root: Path) -> dict:
    snapshot = {}
    for p in sorted(root.rglob("*")):
        rel = p.relative_to(root).as_posix()
        snapshot[rel] = None if p.is_dir() else p.read_bytes()
    return snapshot


class TestRoundTrip(unittest.TestCase):
    def setUp(self):
        self.test_dir = Path(tempfile.mkdtemp())
        self.src = self.test_dir / "src"
        self.archive = self.test_dir / "out" / "src.zip"
        rng = random.Random(1234)
        _write_file(self.src / "readme.txt", b"hello world\n" * 10)
        _write_file(self.src / "bin" / "blob.bin", bytes(rng.getrandbits(8) for _ in range(70_000)))
        _write_file(self.src / "bin" / "empty.dat", b"")
        _write_file(self.src / "docs" / "nested" / "deep" / "note.md", "ünïcödé ✓".encode("utf-8"))
        _write_file(self.src / ".hidden", b"dot file")
        (self.src / "empty_dir").mkdir()

    def tearDown(self):
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def test_round_trip_is_byte_identical(self):
        crc_out = compress(self.src, self.archive)
        restore = self.test_dir / "restore"
        crc_in = extract(self.archive, restore)

        self.assertEqual(crc_out, crc_in)
        self.assertEqual(_snapshot_tree(self.src), _snapshot_tree(restore / "src"))
        self.assertTrue(compare_trees(self.src, restore / "src").identical)

    def test_checksum_matches_plain_crc_of_traversal(self):
        crc = compress(self.src, self.archive)
        data = b"".join(
            p.read_bytes()
            for p in self._preorder_files(self.src)
        )
        self.assertEqual(crc, zlib.crc32(data))

    def _preorder_files(self, path: Path):
        if path.is_dir():
            for child in sorted(path.iterdir()):
                yield from self._preorder_files(child)
        else:
            yield path

    def test_extract_is_idempotent(self):
        compress(self.src, self.archive)
        first = extract(self.archive, self.test_dir / "one")
        second = extract(self.archive, self.test_dir / "two")
        again = extract(self.archive, self.test_dir / "one")

        self.assertEqual(first, second)
        self.assertEqual(first, again)
        self.assertEqual(_snapshot_tree(self.test_dir / "one"), _snapshot_tree(self.test_dir / "two"))

    def test_overwrite_changes_content(self):
        compress(self.src, self.archive)
        restore = self.test_dir / "restore"
        _write_file(restore / "src" / "readme.txt", b"stale content that is longer than before" * 10)
        extract(self.archive, restore)
        self.assertEqual((restore / "src" / "readme.txt").read_bytes(), b"hello world\n" * 10)

    def test_stats_agree_between_directions(self):
        out_stats, in_stats = ArchiveStats(), ArchiveStats()
        compress(self.src, self.archive, stats=out_stats)
        extract(self.archive, self.test_dir / "restore", stats=in_stats)
        self.assertEqual(out_stats.files, 5)
        self.assertEqual(out_stats.directories, 6)
        self.assertEqual(
            (out_stats.files, out_stats.directories, out_stats.bytes_copied),
            (in_stats.files, in_stats.directories, in_stats.bytes_copied),
        )

    def test_single_file_round_trip(self):
        src = self.src / "readme.txt"
        crc_out = compress(src, self.archive)
        restore = self.test_dir / "restore"
        self.assertEqual(extract(self.archive, restore), crc_out)
        self.assertEqual((restore / "readme.txt").read_bytes(), src.read_bytes())


class TestArchiveInspection(unittest.TestCase):
    def setUp(self):
        self.test_dir = Path(tempfile.mkdtemp())
        self.src = self.test_dir / "tree"
        self.archive = self.test_dir / "tree.zip"
        _write_file(self.src / "a.txt", b"alpha")
        _write_file(self.src / "sub" / "b.txt", b"bravo!")

    def tearDown(self):
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def test_list_archive(self):
        compress(self.src, self.archive)
        entries = list_archive(self.archive)
        self.assertEqual([e.name for e in entries], ["tree/", "tree/a.txt", "tree/sub/", "tree/sub/b.txt"])
        self.assertEqual([e.kind for e in entries],
                         [EntryKind.DIRECTORY, EntryKind.FILE, EntryKind.DIRECTORY, EntryKind.FILE])
        self.assertEqual([e.size for e in entries], [0, 5, 0, 6])
        self.assertTrue(entries[0].is_dir)
        self.assertFalse(entries[1].is_dir)

    def test_list_archive_requires_file(self):
        with self.assertRaises(InvalidSourceError):
            list_archive(self.test_dir / "nope.zip")

    def test_checksum_archive_matches_compress(self):
        crc = compress(self.src, self.archive)
        stats = ArchiveStats()
        self.assertEqual(checksum_archive(self.archive, stats=stats), crc)
        self.assertEqual((stats.files, stats.directories, stats.bytes_copied), (2, 2, 11))
        self.assertFalse((self.test_dir / "tree" / "tree").exists())


class TestTreeComparison(unittest.TestCase):
    def setUp(self):
        self.test_dir = Path(tempfile.mkdtemp())
        self.left = self.test_dir / "left"
        self.right = self.test_dir / "right"
        for root in (self.left, self.right):
            _write_file(root / "same.txt", b"same")
            _write_file(root / "dir" / "changed.txt", b"v1")
        (self.right / "dir" / "changed.txt").write_bytes(b"v2")
        _write_file(self.left / "only_left.txt", b"l")
        _write_file(self.right / "only_right.txt", b"r")
        (self.right / "new_empty").mkdir()

    def tearDown(self):
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def test_tree_digests(self):
        digests = tree_digests(self.left)
        self.assertEqual(sorted(digests), ["dir", "dir/changed.txt", "only_left.txt", "same.txt"])
        self.assertEqual(digests["dir"], "")
        self.assertEqual(len(digests["same.txt"]), 16)

    def test_compare_trees(self):
        diff = compare_trees(self.left, self.right)
        self.assertFalse(diff.identical)
        self.assertEqual(diff.missing, ["only_left.txt"])
        self.assertEqual(diff.extra, ["new_empty", "only_right.txt"])
        self.assertEqual(diff.changed, ["dir/changed.txt"])

    def test_compare_identical(self):
        self.assertTrue(compare_trees(self.left, self.left).identical)

    def test_missing_tree(self):
        with self.assertRaises(SourceNotFoundError):
            tree_digests(self.test_dir / "absent")

    def test_single_file_digest(self):
        digests = tree_digests(self.left / "same.txt")
        self.assertEqual(list(digests), ["same.txt"])


if __name__ == "__main__":
    unittest.main()
