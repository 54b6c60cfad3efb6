"""Directory browser used to choose the document to open."""

from __future__ import annotations

import logging

from .errors import LootEditError
from .sources import DirEntry, FileSource, SourceKind

log = logging.getLogger(__name__)

PARENT = ".."


class FilePicker:
    """Lists one directory of the editor's active source at a time.

    ``source_of`` is called on every operation so the picker follows the
    editor when it switches between local and remote.
    """

    def __init__(self, source_of) -> None:
        self._source_of = source_of
        self.cwd: str = ""
        self.kind: SourceKind | None = None
        self.entries: list[DirEntry] = []
        self.selected: int | None = None
        self.status: str = "Press Enter to open, q to quit"

    @property
    def source(self) -> FileSource:
        return self._source_of()

    def reset(self, directory: str | None = None) -> None:
        """Jump to *directory* (default: the source's start directory)."""
        try:
            start = directory or self.source.start_dir()
        except LootEditError as exc:
            self.status = str(exc)
            return
        self.chdir(start)

    def chdir(self, directory: str) -> bool:
        source = self.source
        try:
            listing = source.list(directory)
        except LootEditError as exc:
            log.warning("cannot list %s: %s", directory, exc)
            self.status = str(exc)
            return False
        listing.sort(key=lambda e: (not e.is_directory, e.name.lower()))
        if source.parent(directory) is not None:
            listing.insert(0, DirEntry(PARENT, True))
        self.cwd = directory
        self.kind = source.kind
        self.entries = listing
        self.selected = 0 if listing else None
        return True

    def refresh(self) -> None:
        """Re-list the current directory, or start over if the source changed."""
        if self.kind is not self.source.kind:
            self.reset()
        else:
            self.chdir(self.cwd)

    # -- Navigation ---------------------------------------------------------

    def next(self) -> None:
        if self.selected is None:
            return
        self.selected = self.selected + 1 if self.selected + 1 < len(self.entries) else 0

    def previous(self) -> None:
        if self.selected is None:
            return
        self.selected = self.selected - 1 if self.selected > 0 else len(self.entries) - 1

    def jump(self, delta: int) -> None:
        if self.selected is None:
            return
        self.selected = max(0, min(self.selected + delta, len(self.entries) - 1))

    def activate(self) -> str | None:
        """Enter the selected directory, or return the selected file's path."""
        if self.selected is None:
            return None
        entry = self.entries[self.selected]
        source = self.source
        if entry.is_directory:
            if entry.name == PARENT:
                target = source.parent(self.cwd) or self.cwd
            else:
                target = source.join(self.cwd, entry.name)
            if self.chdir(target):
                self.status = ""
            return None
        path = source.join(self.cwd, entry.name)
        self.status = f"Selected file: {path} ({source.kind.value})"
        return path
