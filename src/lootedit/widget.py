"""Textual widgets: the file picker and the two-pane types editor."""

from __future__ import annotations

from dataclasses import dataclass

from rich import box
from rich.console import Group
from rich.table import Table
from rich.text import Text
from textual import events
from textual.message import Message
from textual.widget import Widget

from .editor import Command, Editor, EditorState, EditTarget, Pane
from .picker import FilePicker
from .sources import SourceKind

PAGE_STEP = 10
PICKER_PAGE_STEP = 5
MARKER = "▶ "


def scroll_window(top: int, selected: int | None, count: int, rows: int) -> int:
    """Return the first visible row so that *selected* stays on screen."""
    if selected is None or rows <= 0:
        return 0
    if selected < top:
        top = selected
    elif selected >= top + rows:
        top = selected - rows + 1
    return max(0, min(top, max(0, count - rows)))


def _list_text(
    labels: list[str], selected: int | None, top: int, rows: int, active: bool
) -> Text:
    result = Text(no_wrap=True, overflow="ellipsis")
    highlight = "bold reverse" if active else "bold"
    end = min(len(labels), top + rows)
    for idx in range(top, end):
        if idx == selected:
            result.append(MARKER + labels[idx], style=highlight)
        else:
            result.append("  " + labels[idx])
        if idx < end - 1:
            result.append("\n")
    return result


class PickerPane(Widget, can_focus=True):
    """Directory listing; Enter opens a directory or selects a file."""

    DEFAULT_CSS = """
    PickerPane {
        height: 1fr;
        background: $surface;
        padding: 0 1;
    }
    """

    # -- Messages ----------------------------------------------------------

    @dataclass
    class FileSelected(Message):
        path: str

    @dataclass
    class ConnectRequested(Message):
        pass

    @dataclass
    class HelpToggled(Message):
        visible: bool

    @dataclass
    class Quit(Message):
        pass

    def __init__(
        self,
        picker: FilePicker,
        editor: Editor,
        *,
        name: str | None = None,
        id: str | None = None,
        classes: str | None = None,
    ) -> None:
        super().__init__(name=name, id=id, classes=classes)
        self.picker = picker
        self.editor = editor
        self._scroll_top = 0

    def on_key(self, event: events.Key) -> None:
        event.prevent_default()
        event.stop()
        self._handle_key(event)
        self.refresh()

    def _handle_key(self, event) -> None:
        key = event.key
        char = event.character or ""
        picker = self.picker

        if char == "k" or key == "up":
            picker.previous()
        elif char == "j" or key == "down":
            picker.next()
        elif key == "pageup":
            picker.jump(-PICKER_PAGE_STEP)
        elif key == "pagedown":
            picker.jump(PICKER_PAGE_STEP)
        elif key == "enter":
            path = picker.activate()
            if path is not None:
                self.post_message(self.FileSelected(path))
        elif char == "r":
            if self.editor.source.kind is SourceKind.REMOTE:
                self.editor.dispatch(Command.TOGGLE_SOURCE)
                picker.reset()
                picker.status = self.editor.status
            else:
                self.post_message(self.ConnectRequested())
        elif char == "?":
            self.editor.dispatch(Command.TOGGLE_HELP)
            self.post_message(self.HelpToggled(self.editor.help_visible))
        elif char == "q":
            self.editor.dispatch(Command.QUIT)
            if self.editor.quit_requested:
                self.post_message(self.Quit())
            else:
                picker.status = self.editor.status

    def render(self) -> Group:
        picker = self.picker
        height = self.content_region.height
        rows = max(1, height - 4)
        self._scroll_top = scroll_window(
            self._scroll_top, picker.selected, len(picker.entries), rows
        )
        labels = [
            e.name + "/" if e.is_directory and e.name != ".." else e.name
            for e in picker.entries
        ]
        source = self.editor.source.kind.value
        header = Text()
        header.append(" Location ", style="bold white on dark_blue")
        header.append(f" {picker.cwd} ", style="bold")
        header.append(f"({source})", style="dim")
        body = _list_text(labels, picker.selected, self._scroll_top, rows, True)
        footer = Text()
        footer.append(" ?:help  r:remote  q:quit ", style="bold white on dark_green")
        footer.append(f"  {picker.status or 'No file selected'}")
        return Group(header, Text(""), body, Text(""), footer)


class TypesPane(Widget, can_focus=True):
    """Types / fields / tips columns over an :class:`Editor`.

    Keys (browsing):
      j k arrows  move      PgUp PgDn  move by 10
      h l Tab     pane      Enter      edit value (type name on the left)
      n           rename field
      a add   c copy   d delete   s save   r reconnect/local
      ? help   q quit   Esc back
    Keys (editing):
      typing / Backspace / Enter apply / Escape cancel
    """

    DEFAULT_CSS = """
    TypesPane {
        height: 1fr;
        background: $surface;
        padding: 0 1;
    }
    """

    @dataclass
    class CloseRequested(Message):
        pass

    @dataclass
    class HelpToggled(Message):
        visible: bool

    @dataclass
    class Quit(Message):
        pass

    def __init__(
        self,
        editor: Editor,
        *,
        name: str | None = None,
        id: str | None = None,
        classes: str | None = None,
    ) -> None:
        super().__init__(name=name, id=id, classes=classes)
        self.editor = editor
        self._type_top = 0
        self._field_top = 0

    # -- Input -------------------------------------------------------------

    def on_key(self, event: events.Key) -> None:
        event.prevent_default()
        event.stop()
        if self.editor.state is EditorState.EDITING:
            self._handle_editing(event)
        else:
            self._handle_browsing(event)
        self.refresh()

    def _handle_editing(self, event) -> None:
        key = event.key
        char = event.character
        editor = self.editor
        if key == "enter":
            editor.dispatch(Command.APPLY_EDIT)
        elif key == "escape":
            editor.dispatch(Command.CANCEL_EDIT)
        elif key == "backspace":
            editor.backspace()
        elif char and char.isprintable():
            editor.type_text(char)

    def _collection_size(self) -> int:
        view = self.editor.view
        return len(view.types) if view.pane is Pane.TYPES else len(view.fields)

    def _handle_browsing(self, event) -> None:
        key = event.key
        char = event.character or ""
        editor = self.editor
        pane = editor.pane

        if char == "k" or key == "up":
            editor.dispatch(Command.MOVE_UP)
        elif char == "j" or key == "down":
            editor.dispatch(Command.MOVE_DOWN)
        elif key == "pageup":
            editor.dispatch(Command.MOVE_UP, PAGE_STEP)
        elif key == "pagedown":
            editor.dispatch(Command.MOVE_DOWN, PAGE_STEP)
        elif char == "h" or key == "left":
            if pane is Pane.FIELDS:
                editor.dispatch(Command.SWITCH_PANE)
        elif char == "l" or key == "right":
            if pane is Pane.TYPES:
                editor.dispatch(Command.SWITCH_PANE)
        elif key == "tab":
            editor.dispatch(Command.SWITCH_PANE)
        elif key == "enter":
            editor.dispatch(Command.ENTER_EDIT)
        elif char == "n":
            editor.dispatch(Command.ENTER_EDIT, EditTarget.FIELD_NAME)
        elif char == "a":
            before = self._collection_size()
            editor.dispatch(Command.ADD)
            if self._collection_size() > before:
                # name the new element right away
                editor.dispatch(Command.ENTER_EDIT, EditTarget.FIELD_NAME)
        elif char == "c":
            editor.dispatch(Command.COPY)
        elif char == "d":
            editor.dispatch(Command.DELETE)
        elif char == "s":
            editor.dispatch(Command.SAVE)
        elif char == "r":
            # reconnects a dropped session, or leaves a healthy one
            if editor.source.kind is SourceKind.REMOTE:
                editor.dispatch(Command.TOGGLE_SOURCE)
                if editor.document is None:
                    self.post_message(self.CloseRequested())
        elif char == "?":
            editor.dispatch(Command.TOGGLE_HELP)
            self.post_message(self.HelpToggled(editor.help_visible))
        elif char == "q":
            editor.dispatch(Command.QUIT)
            if editor.quit_requested:
                self.post_message(self.Quit())
        elif key == "escape":
            if editor.dirty:
                editor.status = "Unsaved changes! Save with s before leaving"
            else:
                self.post_message(self.CloseRequested())

    # -- Rendering -----------------------------------------------------------

    _STATE_STYLE = {
        EditorState.BROWSING: "bold white on dark_green",
        EditorState.EDITING: "bold white on dark_blue",
    }

    def render(self) -> Group:
        view = self.editor.view
        height = self.content_region.height
        rows = max(1, height - 6)

        self._type_top = scroll_window(self._type_top, view.selected_type, len(view.types), rows)
        self._field_top = scroll_window(
            self._field_top, view.selected_field, len(view.fields), rows
        )
        types_active = view.pane is Pane.TYPES
        type_list = _list_text(
            list(view.types), view.selected_type, self._type_top, rows, types_active
        )
        field_list = _list_text(
            [f"{row.name}: {row.value}" for row in view.fields],
            view.selected_field,
            self._field_top,
            rows,
            not types_active,
        )

        table = Table(box=box.ROUNDED, expand=True, show_edge=True, padding=(0, 1))
        table.add_column(f"Types ({len(view.types)})", ratio=35, no_wrap=True)
        table.add_column("Fields", ratio=45, no_wrap=True)
        table.add_column("Tips", ratio=20)
        table.add_row(type_list, field_list, Text(view.hint, style="italic"))

        status = Text()
        status.append(f" {view.state.name} ", style=self._STATE_STYLE[view.state])
        kind = view.document_kind.value if view.document_kind else view.source_kind.value
        status.append(f" {view.path or '[no file]'} ({kind})", style="bold")
        if view.dirty:
            status.append(" [+]", style="bold yellow")
        status.append(f"  {view.status}")

        if view.state is EditorState.EDITING:
            edit_line = Text()
            edit_line.append(f"{view.edit_target.value}: ", style="bold yellow")
            edit_line.append(view.edit_text)
            edit_line.append(" ", style="reverse")
        else:
            edit_line = Text("?:help  a:add  c:copy  d:delete  s:save  q:quit", style="dim")
        return Group(table, status, edit_line)
