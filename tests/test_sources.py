"""Tests for the local file source."""

import os
import stat

import pytest

from lootedit.errors import ErrorKind, SourceError
from lootedit.sources import DirEntry, FileSource, LocalSource, SourceKind, os_error_kind


class TestLocalSource:
    """LocalSource against a temporary directory."""

    def test_satisfies_protocol(self, tmp_path):
        source = LocalSource(tmp_path)
        assert isinstance(source, FileSource)
        assert source.kind is SourceKind.LOCAL

    def test_list(self, tmp_path):
        (tmp_path / "types.xml").write_bytes(b"<types/>")
        (tmp_path / "db").mkdir()
        entries = sorted(LocalSource(tmp_path).list(str(tmp_path)), key=lambda e: e.name)
        assert entries == [DirEntry("db", True), DirEntry("types.xml", False)]

    def test_relative_paths_use_root(self, tmp_path):
        (tmp_path / "types.xml").write_bytes(b"<types/>")
        source = LocalSource(tmp_path)
        assert source.read_file("types.xml") == b"<types/>"
        assert source.start_dir() == str(tmp_path)

    def test_write_replaces_content(self, tmp_path):
        target = tmp_path / "types.xml"
        target.write_bytes(b"old")
        source = LocalSource(tmp_path)
        source.write_file(str(target), b"new")
        assert target.read_bytes() == b"new"
        assert [p.name for p in tmp_path.iterdir()] == ["types.xml"]

    def test_write_keeps_mode(self, tmp_path):
        target = tmp_path / "types.xml"
        target.write_bytes(b"old")
        os.chmod(target, 0o640)
        LocalSource(tmp_path).write_file(str(target), b"new")
        assert stat.S_IMODE(os.stat(target).st_mode) == 0o640

    def test_write_into_missing_directory(self, tmp_path):
        with pytest.raises(SourceError) as info:
            LocalSource(tmp_path).write_file(str(tmp_path / "nope" / "types.xml"), b"x")
        assert info.value.kind is ErrorKind.NOT_FOUND

    def test_read_missing(self, tmp_path):
        with pytest.raises(SourceError) as info:
            LocalSource(tmp_path).read_file("missing.xml")
        assert info.value.kind is ErrorKind.NOT_FOUND
        assert info.value.path == "missing.xml"

    def test_list_file_is_error(self, tmp_path):
        (tmp_path / "types.xml").write_bytes(b"")
        with pytest.raises(SourceError):
            LocalSource(tmp_path).list(str(tmp_path / "types.xml"))

    def test_parent_and_join(self, tmp_path):
        source = LocalSource(tmp_path)
        assert source.parent(str(tmp_path / "db")) == str(tmp_path)
        assert source.parent(os.path.abspath(os.sep)) is None
        assert source.join(str(tmp_path), "db") == str(tmp_path / "db")


class TestErrorKinds:
    """Mapping OSError subclasses onto error kinds."""

    @pytest.mark.parametrize(
        "exc, kind",
        [
            (FileNotFoundError(), ErrorKind.NOT_FOUND),
            (PermissionError(), ErrorKind.PERMISSION_DENIED),
            (TimeoutError(), ErrorKind.TIMEOUT),
            (ConnectionResetError(), ErrorKind.TRANSPORT_FAILURE),
            (IsADirectoryError(), ErrorKind.IO_FAILURE),
        ],
    )
    def test_os_error_kind(self, exc, kind):
        assert os_error_kind(exc) is kind

    def test_message_format(self):
        err = SourceError(ErrorKind.PERMISSION_DENIED, "read-only", "/srv/types.xml")
        assert str(err) == "permission denied: read-only (/srv/types.xml)"
