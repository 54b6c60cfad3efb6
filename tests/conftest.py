"""Shared fixtures: an in-memory file source and sample documents."""

from __future__ import annotations

import posixpath

import pytest

from lootedit.editor import Editor
from lootedit.errors import ErrorKind, SourceError
from lootedit.sources import DirEntry, SourceKind

SAMPLE_XML = b"""<?xml version="1.0" encoding="UTF-8" standalone="yes"?>
<types>
    <type name="AKM">
        <nominal>10</nominal>
        <lifetime>7200</lifetime>
        <restock>1800</restock>
        <flags count_in_cargo="0" count_in_hoarder="0" count_in_map="1" count_in_player="0" crafted="0" deloot="0"/>
        <category name="weapons"/>
        <usage name="Military"/>
    </type>
    <type name="Apple">
        <nominal>40</nominal>
        <lifetime>3600</lifetime>
    </type>
    <type name="Bandage">
        <nominal>25</nominal>
    </type>
</types>
"""


class MemorySource:
    """A ``FileSource`` over a dict of POSIX paths to bytes."""

    def __init__(self, files: dict[str, bytes] | None = None, kind=SourceKind.LOCAL):
        self.kind = kind
        self.files = dict(files or {})
        self.fail_writes: set[str] = set()
        self.writes: list[str] = []
        self.closed = False

    def _dirs(self) -> set[str]:
        dirs = {"/"}
        for path in self.files:
            parent = posixpath.dirname(path)
            while parent not in dirs:
                dirs.add(parent)
                parent = posixpath.dirname(parent)
        return dirs

    def list(self, path):
        dirs = self._dirs()
        if path not in dirs:
            raise SourceError(ErrorKind.NOT_FOUND, "no such directory", path)
        names = {}
        for candidate in list(self.files) + list(dirs):
            if candidate != path and posixpath.dirname(candidate) == path:
                names[posixpath.basename(candidate)] = candidate in dirs
        return [DirEntry(name, is_dir) for name, is_dir in names.items()]

    def read_file(self, path):
        if path not in self.files:
            raise SourceError(ErrorKind.NOT_FOUND, "no such file", path)
        return self.files[path]

    def write_file(self, path, data):
        if path in self.fail_writes:
            raise SourceError(ErrorKind.PERMISSION_DENIED, "read-only", path)
        self.files[path] = data
        self.writes.append(path)

    def start_dir(self):
        return "/srv"

    def join(self, directory, name):
        return posixpath.normpath(posixpath.join(directory, name))

    def parent(self, path):
        path = posixpath.normpath(path)
        return None if path == "/" else posixpath.dirname(path)

    def close(self):
        self.closed = True


@pytest.fixture
def sample_xml():
    return SAMPLE_XML


@pytest.fixture
def source():
    return MemorySource({"/srv/types.xml": SAMPLE_XML, "/srv/notes.txt": b"hello"})


@pytest.fixture
def editor(source):
    ed = Editor(source)
    assert ed.open("/srv/types.xml")
    return ed
