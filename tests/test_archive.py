"""Tests for the gzip codec and tar archiver."""

from __future__ import annotations

import gzip
import io
import os
import shutil
import tarfile
import tempfile
import unittest
from pathlib import Path

from support import make_site, write_archive, write_escaping_archive

from wpbackup.backup.archive import GzipCodec, TarArchiver


class TestGzipCodec(unittest.TestCase):
    """Tests for GzipCodec."""

    def setUp(self) -> None:
        """Set up test fixtures."""
        self.temp_dir = tempfile.mkdtemp()
        self.codec = GzipCodec()

    def tearDown(self) -> None:
        """Clean up temporary directories."""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_compress_stream(self) -> None:
        """Test streaming compression into a file."""
        dest = Path(self.temp_dir) / "out.sql.gz"
        payload = b"INSERT INTO t VALUES (1);\n" * 1000

        written = self.codec.compress_stream(io.BytesIO(payload), dest)

        self.assertEqual(written, len(payload))
        with gzip.open(dest, "rb") as f:
            self.assertEqual(f.read(), payload)

    def test_open_stream(self) -> None:
        """Test streaming decompression."""
        dest = Path(self.temp_dir) / "out.sql.gz"
        self.codec.compress_stream(io.BytesIO(b"SELECT 1;\n"), dest)

        with self.codec.open_stream(dest) as stream:
            self.assertEqual(stream.read(), b"SELECT 1;\n")

    def test_test_reports_error(self) -> None:
        """Test that test() explains a failure."""
        path = Path(self.temp_dir) / "bad.sql.gz"
        path.write_bytes(b"\x1f\x8b\x08\x00broken")

        valid, error = self.codec.test(path)

        self.assertFalse(valid)
        self.assertIn("damaged", error)


class TestTarArchiver(unittest.TestCase):
    """Tests for TarArchiver."""

    def setUp(self) -> None:
        """Create a small site tree."""
        self.temp_dir = tempfile.mkdtemp()
        self.root = make_site(Path(self.temp_dir) / "site")
        (self.root / "backups").mkdir()
        (self.root / "backups" / "old.tar.gz").write_bytes(b"previous backup")
        self.archiver = TarArchiver()

    def tearDown(self) -> None:
        """Clean up temporary directories."""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _names(self, path: Path) -> set[str]:
        with tarfile.open(path, "r:gz") as tar:
            return {member.name for member in tar.getmembers()}

    def test_create_relative_members(self) -> None:
        """Test that members are stored relative to the root."""
        dest = Path(self.temp_dir) / "files.tar.gz"

        self.archiver.create(self.root, dest, excludes=["backups"])

        names = self._names(dest)
        self.assertIn("./index.php", names)
        self.assertIn("./wp-content/themes/twentyten/style.css", names)
        self.assertFalse(any(name.startswith("/") for name in names))

    def test_create_excludes_storage(self) -> None:
        """Test that the backup directory is never archived."""
        dest = self.root / "backups" / "new.tar.gz"

        self.archiver.create(self.root, dest, excludes=["backups"])

        names = self._names(dest)
        self.assertFalse(any(name.startswith("./backups") for name in names))

    def test_create_excludes_uploads(self) -> None:
        """Test that a nested directory can be excluded with its contents."""
        dest = Path(self.temp_dir) / "files.tar.gz"

        self.archiver.create(self.root, dest, excludes=["backups", "wp-content/uploads"])

        names = self._names(dest)
        self.assertIn("./wp-content", names)
        self.assertFalse(any("uploads" in name for name in names))

    def test_exclude_matches_exact_path_only(self) -> None:
        """Test that an exclude does not drop same-named directories elsewhere."""
        (self.root / "wp-content" / "themes" / "backups").mkdir()
        (self.root / "wp-content" / "themes" / "backups" / "keep.txt").write_text("keep")
        dest = Path(self.temp_dir) / "files.tar.gz"

        self.archiver.create(self.root, dest, excludes=["backups"])

        self.assertIn("./wp-content/themes/backups/keep.txt", self._names(dest))

    def test_list_entries(self) -> None:
        """Test listing archive members."""
        path = write_archive(Path(self.temp_dir) / "files.tar.gz", {"a.txt": b"a"})

        valid, names = self.archiver.list_entries(path)

        self.assertTrue(valid)
        self.assertEqual(names, ["./a.txt"])

    def test_extract_overwrites(self) -> None:
        """Test that extraction replaces existing files and keeps others."""
        path = write_archive(
            Path(self.temp_dir) / "files.tar.gz",
            {"index.php": b"<?php // restored\n", "new.txt": b"new"},
        )

        count = self.archiver.extract(path, self.root)

        self.assertEqual(count, 2)
        self.assertEqual((self.root / "index.php").read_bytes(), b"<?php // restored\n")
        self.assertEqual((self.root / "new.txt").read_text(), "new")
        self.assertTrue((self.root / "wp-config.php").exists())

    @unittest.skipUnless(hasattr(os, "symlink") and os.name == "posix", "requires symlinks")
    def test_absolute_symlink_round_trip(self) -> None:
        """Test that a symlink to a directory outside the root is restored as a link."""
        shared = Path(self.temp_dir) / "shared-uploads"
        shared.mkdir()
        (shared / "photo.jpg").write_bytes(b"jpeg")
        os.symlink(shared, self.root / "media")
        dest = Path(self.temp_dir) / "files.tar.gz"
        self.archiver.create(self.root, dest, excludes=["backups"])
        (self.root / "media").unlink()

        valid, names = self.archiver.list_entries(dest)
        self.archiver.extract(dest, self.root)

        self.assertTrue(valid)
        self.assertIn("./media", names)
        self.assertTrue((self.root / "media").is_symlink())
        self.assertEqual(os.readlink(self.root / "media"), str(shared))
        # The link is not followed when archiving
        self.assertNotIn("./media/photo.jpg", names)

    def test_list_entries_rejects_escaping_member(self) -> None:
        """Test that a member extraction would refuse fails the listing."""
        path = write_escaping_archive(Path(self.temp_dir) / "evil.tar.gz")

        valid, errors = self.archiver.list_entries(path)

        self.assertFalse(valid)
        self.assertIn("cannot be restored", errors[0])

    def test_extract_rejects_escaping_members(self) -> None:
        """Test that members pointing outside the target are refused."""
        path = Path(self.temp_dir) / "evil.tar.gz"
        with tarfile.open(path, "w:gz") as tar:
            info = tarfile.TarInfo(name="../escaped.txt")
            info.size = 4
            tar.addfile(info, io.BytesIO(b"evil"))

        with self.assertRaises(tarfile.TarError):
            self.archiver.extract(path, self.root)

        self.assertFalse((Path(self.temp_dir) / "escaped.txt").exists())


if __name__ == "__main__":
    unittest.main()
