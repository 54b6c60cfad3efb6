"""Two-pane editor state machine for loot documents.

The editor owns the open :class:`~lootedit.document.LootDocument`, the
selection, at most one edit buffer and the active file source.  Input layers
drive it only through :meth:`Editor.dispatch` (plus :meth:`Editor.type_text`
and :meth:`Editor.backspace` while editing) and render :attr:`Editor.view`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum, auto

from . import document
from .document import LootDocument, LootType
from .errors import LootEditError, StateError
from .hints import hint_for
from .remote import ConnectionState, RemoteConfig, RemoteSource
from .sources import FileSource, LocalSource, SourceKind

log = logging.getLogger(__name__)

NEW_TYPE_NAME = "new_type"
NEW_FIELD_NAME = "new_field"
COPY_SUFFIX = "_copy"
BACKUP_SUFFIX = ".bak"


class Command(Enum):
    MOVE_UP = auto()
    MOVE_DOWN = auto()
    SWITCH_PANE = auto()
    ENTER_EDIT = auto()
    APPLY_EDIT = auto()
    CANCEL_EDIT = auto()
    ADD = auto()
    COPY = auto()
    DELETE = auto()
    SAVE = auto()
    TOGGLE_HELP = auto()
    QUIT = auto()
    TOGGLE_SOURCE = auto()


class Pane(Enum):
    TYPES = auto()
    FIELDS = auto()


class EditorState(Enum):
    BROWSING = auto()
    EDITING = auto()


class EditTarget(Enum):
    TYPE_NAME = "type name"
    FIELD_NAME = "field name"
    FIELD_VALUE = "field value"


@dataclass
class EditBuffer:
    target: EditTarget
    type_index: int
    field_index: int | None
    original: str
    text: str


@dataclass(frozen=True)
class SourceDescriptor:
    source: FileSource
    path: str

    @property
    def kind(self) -> SourceKind:
        return self.source.kind


@dataclass(frozen=True)
class FieldRow:
    name: str
    value: str


@dataclass(frozen=True)
class EditorView:
    path: str | None
    source_kind: SourceKind
    document_kind: SourceKind | None
    pane: Pane
    state: EditorState
    types: tuple[str, ...]
    fields: tuple[FieldRow, ...]
    selected_type: int | None
    selected_field: int | None
    edit_target: EditTarget | None
    edit_text: str
    status: str
    help_visible: bool
    dirty: bool
    hint: str = ""


class Editor:
    """Editor core.  Use as a context manager so a remote session is closed."""

    def __init__(
        self,
        source: FileSource | None = None,
        *,
        backup: bool = True,
        connector: Callable[[RemoteConfig], RemoteSource] = RemoteSource,
    ) -> None:
        self.local_source: FileSource = source if source is not None else LocalSource()
        self.source: FileSource = self.local_source
        self.backup = backup
        self._connector = connector
        self.document: LootDocument | None = None
        self.origin: SourceDescriptor | None = None
        self.pane = Pane.TYPES
        self.selected_type: int | None = None
        self.selected_field: int | None = None
        self.edit: EditBuffer | None = None
        self.status = "Load a file to begin"
        self.help_visible = False
        self.dirty = False
        self.quit_requested = False
        self._quit_armed = False

    def __enter__(self) -> Editor:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        """Release the remote session, if any."""
        if self.source is not self.local_source:
            self.source.close()
            self.source = self.local_source

    # -- Read-only view ---------------------------------------------------

    @property
    def state(self) -> EditorState:
        return EditorState.EDITING if self.edit is not None else EditorState.BROWSING

    @property
    def view(self) -> EditorView:
        loot_type = self._current_type()
        fields = tuple(FieldRow(f.name, f.value) for f in loot_type.fields) if loot_type else ()
        types = tuple(t.name for t in self.document.types) if self.document else ()
        return EditorView(
            path=self.origin.path if self.origin else None,
            source_kind=self.source.kind,
            document_kind=self.origin.kind if self.origin else None,
            pane=self.pane,
            state=self.state,
            types=types,
            fields=fields,
            selected_type=self.selected_type,
            selected_field=self.selected_field,
            edit_target=self.edit.target if self.edit else None,
            edit_text=self.edit.text if self.edit else "",
            status=self.status,
            help_visible=self.help_visible,
            dirty=self.dirty,
            hint=self._current_hint(),
        )

    # -- Selection helpers --------------------------------------------------

    def _current_hint(self) -> str:
        loot_type = self._current_type()
        if loot_type is None or self.selected_field is None:
            return ""
        return hint_for(loot_type.fields[self.selected_field])

    def _current_type(self) -> LootType | None:
        if self.document is None or self.selected_type is None:
            return None
        return self.document.types[self.selected_type]

    @staticmethod
    def _clamp(index: int | None, length: int) -> int | None:
        if length == 0:
            return None
        if index is None:
            return 0
        return max(0, min(index, length - 1))

    def _revalidate(self) -> None:
        """Re-clamp every index against the current collections."""
        types = self.document.types if self.document else []
        self.selected_type = self._clamp(self.selected_type, len(types))
        loot_type = self._current_type()
        self.selected_field = self._clamp(
            self.selected_field, len(loot_type.fields) if loot_type else 0
        )
        if self.selected_type is None:
            self.pane = Pane.TYPES

    # -- Dispatch -------------------------------------------------------------

    def dispatch(self, command: Command, arg=None) -> None:
        """Run one command.  Parse and I/O errors end up in :attr:`status`."""
        if command is not Command.QUIT:
            self._quit_armed = False
        self._revalidate()
        handler = self._HANDLERS[command]
        try:
            if arg is None:
                handler(self)
            else:
                handler(self, arg)
        except StateError:
            raise
        except LootEditError as exc:
            log.warning("%s failed: %s", command.name, exc)
            self.status = str(exc)
        self._revalidate()

    def _browsing_only(self, what: str) -> bool:
        if self.edit is not None:
            self.status = f"Finish editing before {what}"
            return False
        return True

    def _has_document(self) -> bool:
        if self.document is None:
            self.status = "No file loaded"
            return False
        return True

    # -- Navigation -----------------------------------------------------------

    @staticmethod
    def _step(index: int, delta: int, length: int) -> int:
        # wraps only when already sitting on an end
        target = index + delta
        if target >= length:
            return 0 if index == length - 1 else length - 1
        if target < 0:
            return length - 1 if index == 0 else 0
        return target

    def _move(self, delta: int) -> None:
        if self.edit is not None or self.document is None:
            return
        if self.pane is Pane.TYPES:
            if self.selected_type is None:
                return
            self.selected_type = self._step(self.selected_type, delta, len(self.document.types))
            self.selected_field = None
        else:
            loot_type = self._current_type()
            if loot_type is None or self.selected_field is None:
                return
            self.selected_field = self._step(self.selected_field, delta, len(loot_type.fields))

    def move_up(self, count: int = 1) -> None:
        self._move(-count)

    def move_down(self, count: int = 1) -> None:
        self._move(count)

    def switch_pane(self) -> None:
        if not self._browsing_only("switching panes"):
            return
        if self.pane is Pane.FIELDS:
            self.pane = Pane.TYPES
        elif self.selected_type is None:
            self.status = "No type selected"
        else:
            self.pane = Pane.FIELDS

    # -- Edit session ---------------------------------------------------------

    def enter_edit(self, target: EditTarget | None = None) -> None:
        if self.edit is not None:
            self.status = f"Already editing {self.edit.target.value}"
            return
        if not self._has_document():
            return
        loot_type = self._current_type()
        if loot_type is None:
            self.status = "No type selected"
            return
        if self.pane is Pane.TYPES:
            self.edit = EditBuffer(
                EditTarget.TYPE_NAME, self.selected_type, None, loot_type.name, loot_type.name
            )
        else:
            if self.selected_field is None:
                self.status = f"Type {loot_type.name!r} has no fields"
                return
            item = loot_type.fields[self.selected_field]
            if target is EditTarget.FIELD_NAME:
                original = item.name
            else:
                target = EditTarget.FIELD_VALUE
                original = item.value
            self.edit = EditBuffer(
                target, self.selected_type, self.selected_field, original, original
            )
        self.status = f"Editing {self.edit.target.value}"

    def type_text(self, text: str) -> None:
        if self.edit is not None:
            self.edit.text += text

    def backspace(self) -> None:
        if self.edit is not None:
            self.edit.text = self.edit.text[:-1]

    def set_edit_text(self, text: str) -> None:
        if self.edit is not None:
            self.edit.text = text

    def apply_edit(self) -> None:
        buf = self.edit
        if buf is None:
            self.status = "Nothing to apply"
            return
        self.edit = None
        if buf.text == buf.original:
            self.status = "No change"
            return
        doc = self.document
        if buf.target is EditTarget.TYPE_NAME:
            document.rename_type(doc, buf.type_index, buf.text)
            self.status = "Type renamed"
        elif buf.target is EditTarget.FIELD_NAME:
            document.set_field_name(doc.types[buf.type_index], buf.field_index, buf.text)
            self.status = "Field renamed"
        else:
            document.set_field_value(doc.types[buf.type_index], buf.field_index, buf.text)
            self.status = "Value updated"
        self.dirty = True

    def cancel_edit(self) -> None:
        if self.edit is None:
            return
        self.edit = None
        self.status = "Edit cancelled"

    # -- Structural edits ---------------------------------------------------

    def _may_restructure(self, what: str) -> bool:
        return self._browsing_only(what) and self._has_document()

    def _field_target(self) -> LootType | None:
        """The selected type, if it has a selected field; else set status."""
        loot_type = self._current_type()
        if self.selected_field is None:
            self.status = f"Type {loot_type.name!r} has no fields"
            return None
        return loot_type

    def add(self) -> None:
        if not self._may_restructure("adding"):
            return
        if self.pane is Pane.TYPES:
            self.selected_type = document.add_type(self.document, NEW_TYPE_NAME)
            self.selected_field = None
            self.status = "Type added"
        else:
            self.selected_field = document.add_field(self._current_type(), NEW_FIELD_NAME)
            self.status = "Field added"
        self.dirty = True

    def copy(self) -> None:
        if not self._may_restructure("copying"):
            return
        if self.pane is Pane.TYPES:
            if self.selected_type is None:
                self.status = "No type to copy"
                return
            index = document.copy_type(self.document, self.selected_type)
            copied = self.document.types[index]
            document.rename_type(self.document, index, copied.name + COPY_SUFFIX)
            self.selected_type = index
            self.selected_field = 0
            self.status = "Type copied"
        else:
            loot_type = self._field_target()
            if loot_type is None:
                return
            self.selected_field = document.copy_field(loot_type, self.selected_field)
            self.status = "Field copied"
        self.dirty = True

    def delete(self) -> None:
        if not self._may_restructure("deleting"):
            return
        if self.pane is Pane.TYPES:
            if self.selected_type is None:
                self.status = "No type to delete"
                return
            document.delete_type(self.document, self.selected_type)
            self.selected_field = 0
            self.status = "Type deleted"
        else:
            loot_type = self._field_target()
            if loot_type is None:
                return
            document.delete_field(loot_type, self.selected_field)
            self.status = "Field deleted"
        self.dirty = True

    # -- Files ----------------------------------------------------------------

    def open(self, path: str) -> bool:
        """Load *path* from the active source.  Prior state survives failure."""
        if not self._browsing_only("opening a file"):
            return False
        try:
            doc = document.parse(self.source.read_file(path))
        except LootEditError as exc:
            log.warning("open %s failed: %s", path, exc)
            self.status = f"Failed to open file: {exc}"
            return False
        self.document = doc
        self.origin = SourceDescriptor(self.source, path)
        self.pane = Pane.TYPES
        self.selected_type = None
        self.selected_field = None
        self._revalidate()
        self.dirty = False
        self.status = f"Loaded {path} ({len(doc.types)} types)"
        log.info("opened %s from %s", path, self.source.kind.value)
        return True

    def close_document(self) -> None:
        self.document = None
        self.origin = None
        self.edit = None
        self.selected_type = None
        self.selected_field = None
        self.pane = Pane.TYPES
        self.dirty = False

    def _write_backup(self, origin: SourceDescriptor) -> None:
        try:
            previous = origin.source.read_file(origin.path)
            origin.source.write_file(origin.path + BACKUP_SUFFIX, previous)
        except LootEditError as exc:
            log.warning("backup of %s skipped: %s", origin.path, exc)

    def save(self) -> None:
        if not self._browsing_only("saving") or not self._has_document():
            return
        data = document.serialize(self.document)
        origin = self.origin
        if self.backup:
            self._write_backup(origin)
        origin.source.write_file(origin.path, data)
        self.dirty = False
        where = "remote " if origin.kind is SourceKind.REMOTE else ""
        self.status = f"Saved {where}{origin.path}"

    # -- Session --------------------------------------------------------------

    def toggle_help(self) -> None:
        if not self._browsing_only("opening help"):
            return
        self.help_visible = not self.help_visible

    def quit(self) -> None:
        if self.edit is not None:
            self.status = "Finish editing before quitting"
            return
        if self.dirty and not self._quit_armed:
            self._quit_armed = True
            self.status = "Unsaved changes! Save with s or quit again to discard"
            return
        self.quit_requested = True

    def toggle_source(self, credentials: RemoteConfig | None = None) -> None:
        if not self._browsing_only("switching source"):
            return
        if self.source is not self.local_source:
            self._leave_remote(credentials)
            return
        if credentials is None:
            self.status = "Remote credentials required"
            return
        remote = self._connector(credentials)
        try:
            remote.connect()
        except LootEditError as exc:
            state = getattr(remote, "state", ConnectionState.FAULTED)
            log.info("remote connect to %s ended %s", credentials.label, state.name)
            remote.close()
            self.status = f"SSH connect failed: {exc}"
            return
        self.source = remote
        self.status = f"Connected to {credentials.label}"

    def _leave_remote(self, credentials: RemoteConfig | None = None) -> None:
        remote = self.source
        if self.origin is not None and self.origin.source is remote:
            if self.dirty:
                if getattr(remote, "state", None) is ConnectionState.FAULTED:
                    self._reconnect(remote, credentials)
                else:
                    self.status = "Unsaved remote changes! Save before switching to local"
                return
            self.close_document()
        remote.close()
        self.source = self.local_source
        self.status = "Switched to local"

    def _reconnect(self, remote: RemoteSource, credentials: RemoteConfig | None) -> None:
        """Bring a faulted session back so unsaved remote changes can be saved."""
        if credentials is not None:
            remote.config = credentials
        try:
            remote.connect()
        except LootEditError as exc:
            remote.close()
            self.status = f"SSH reconnect failed: {exc}"
            return
        self.status = f"Reconnected to {remote.config.label}, save with s"

    _HANDLERS = {
        Command.MOVE_UP: move_up,
        Command.MOVE_DOWN: move_down,
        Command.SWITCH_PANE: switch_pane,
        Command.ENTER_EDIT: enter_edit,
        Command.APPLY_EDIT: apply_edit,
        Command.CANCEL_EDIT: cancel_edit,
        Command.ADD: add,
        Command.COPY: copy,
        Command.DELETE: delete,
        Command.SAVE: save,
        Command.TOGGLE_HELP: toggle_help,
        Command.QUIT: quit,
        Command.TOGGLE_SOURCE: toggle_source,
    }
