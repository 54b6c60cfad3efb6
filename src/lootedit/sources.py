"""File sources: the places a document is listed, read from and written to."""

from __future__ import annotations

import contextlib
import logging
import os
import shutil
import tempfile
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum
from typing import Protocol, runtime_checkable

from .errors import ErrorKind, SourceError

log = logging.getLogger(__name__)


class SourceKind(Enum):
    LOCAL = "local"
    REMOTE = "ssh"


@dataclass(frozen=True)
class DirEntry:
    name: str
    is_directory: bool


@runtime_checkable
class FileSource(Protocol):
    """What the editor and the picker need from a backend.

    Implementations raise :class:`SourceError` from every operation; the
    error's ``kind`` tells permission problems, missing paths and transport
    trouble apart.
    """

    kind: SourceKind

    def list(self, path: str) -> list[DirEntry]: ...

    def read_file(self, path: str) -> bytes: ...

    def write_file(self, path: str, data: bytes) -> None: ...

    def start_dir(self) -> str: ...

    def join(self, directory: str, name: str) -> str: ...

    def parent(self, path: str) -> str | None: ...

    def close(self) -> None: ...


def os_error_kind(exc: OSError) -> ErrorKind:
    if isinstance(exc, FileNotFoundError):
        return ErrorKind.NOT_FOUND
    if isinstance(exc, PermissionError):
        return ErrorKind.PERMISSION_DENIED
    if isinstance(exc, TimeoutError):
        return ErrorKind.TIMEOUT
    if isinstance(exc, ConnectionError):
        return ErrorKind.TRANSPORT_FAILURE
    return ErrorKind.IO_FAILURE


@contextlib.contextmanager
def translate_os_errors(path: str, action: str) -> Iterator[None]:
    """Re-raise ``OSError`` from the block as :class:`SourceError`."""
    try:
        yield
    except OSError as exc:
        log.warning("%s %s failed: %s", action, path, exc)
        raise SourceError(os_error_kind(exc), exc.strerror or str(exc), path) from exc


class LocalSource:
    """The local filesystem, with relative paths resolved against *root*."""

    kind = SourceKind.LOCAL

    def __init__(self, root: str | os.PathLike = ".") -> None:
        self.root = os.path.abspath(os.fspath(root))

    def _resolve(self, path: str) -> str:
        return os.path.join(self.root, os.path.expanduser(path))

    def list(self, path: str) -> list[DirEntry]:
        with translate_os_errors(path, "list"):
            with os.scandir(self._resolve(path)) as entries:
                return [DirEntry(entry.name, entry.is_dir()) for entry in entries]

    def read_file(self, path: str) -> bytes:
        with translate_os_errors(path, "read"):
            with open(self._resolve(path), "rb") as handle:
                return handle.read()

    def write_file(self, path: str, data: bytes) -> None:
        """Replace *path* with *data* via a temp file and ``os.replace``."""
        target = self._resolve(path)
        directory, name = os.path.split(target)
        with translate_os_errors(path, "write"):
            fd, tmp_path = tempfile.mkstemp(prefix=f".{name}.", suffix=".tmp", dir=directory)
            try:
                with os.fdopen(fd, "wb") as handle:
                    handle.write(data)
                    handle.flush()
                    os.fsync(handle.fileno())
                if os.path.exists(target):
                    shutil.copymode(target, tmp_path)
                os.replace(tmp_path, target)
            except BaseException:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_path)
                raise
        log.info("wrote %d bytes to %s", len(data), target)

    def start_dir(self) -> str:
        return self.root

    def join(self, directory: str, name: str) -> str:
        return os.path.normpath(os.path.join(directory, name))

    def parent(self, path: str) -> str | None:
        path = os.path.abspath(self._resolve(path))
        parent = os.path.dirname(path)
        return None if parent == path else parent

    def close(self) -> None:
        pass
