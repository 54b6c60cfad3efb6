"""Terminal application for editing types.xml files."""

from __future__ import annotations

import argparse
import os
import sys

from textual.app import App, ComposeResult
from textual.containers import Vertical
from textual.widgets import Header, Static

from .editor import Command, Editor
from .logger import setup_logging
from .picker import FilePicker
from .prompt import ConnectScreen, form_defaults
from .remote import DEFAULT_TIMEOUT, RemoteConfig
from .sources import LocalSource, SourceKind
from .widget import PickerPane, TypesPane

HELP_TEXT = """\
[b]File picker[/b]
  Up/Down j/k   move          PgUp/PgDn  jump
  Enter         open directory or file
  r             connect over SSH / back to local
  ?             toggle help   q  quit

[b]Editor[/b]
  Up/Down j/k   move          PgUp/PgDn  move by 10
  Left/Right h/l Tab          switch between types and fields
  Enter         edit value (type name in the types pane)
  n             rename field
  a             add type/field and name it
  c             copy          d  delete
  s             save (previous file kept as .bak)
  r             reconnect a dropped SSH session / back to local
  Esc           back to the picker (when saved)
  ?             toggle help   q  quit

[b]While editing[/b]
  type to change text, Backspace, Enter to apply, Esc to cancel
"""


class LootEditorApp(App):
    """Picker screen plus the two-pane editor over one :class:`Editor`."""

    CSS = """
    Screen {
        layout: vertical;
    }
    #picker, #types {
        height: 1fr;
    }
    #help-panel {
        display: none;
        dock: right;
        width: 60;
        height: 100%;
        border: solid $accent;
        background: $surface;
        padding: 0 1;
    }
    #help-panel.visible {
        display: block;
    }
    """

    TITLE = "types.xml editor"
    BINDINGS = []
    ENABLE_COMMAND_PALETTE = False

    def __init__(
        self,
        editor: Editor,
        *,
        path: str = "",
        remote: RemoteConfig | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.editor = editor
        self.picker = FilePicker(lambda: self.editor.source)
        self.initial_path = path
        self.remote = remote
        self.timeout = timeout

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        yield PickerPane(self.picker, self.editor, id="picker")
        yield TypesPane(self.editor, id="types")
        with Vertical(id="help-panel"):
            yield Static(HELP_TEXT, id="help-text")

    def on_mount(self) -> None:
        if self.remote is not None:
            self.editor.dispatch(Command.TOGGLE_SOURCE, self.remote)
            if self.editor.source.kind is not SourceKind.REMOTE:
                self.notify(self.editor.status, severity="error", timeout=6)
        self._open_initial(self.initial_path)

    def on_unmount(self) -> None:
        self.editor.close()

    def _open_initial(self, target: str) -> None:
        if target and self.editor.source.kind is SourceKind.LOCAL:
            target = os.path.abspath(target)
        if target and not self.picker.chdir(target):
            if self.editor.open(target):
                self.picker.reset(self.editor.source.parent(target))
                self._show_editor()
                return
            self.notify(self.editor.status, severity="error", timeout=6)
        if not target:
            self.picker.reset()
        self._show_picker()

    # -- Screens ---------------------------------------------------------

    def _update_title(self) -> None:
        view = self.editor.view
        kind = view.document_kind or view.source_kind
        self.sub_title = f"{view.path} ({kind.value})" if view.path else f"[{kind.value}]"

    def _show_picker(self) -> None:
        self.query_one("#types").display = False
        picker_pane = self.query_one("#picker", PickerPane)
        picker_pane.display = True
        picker_pane.focus()
        picker_pane.refresh()
        self._update_title()

    def _show_editor(self) -> None:
        self.query_one("#picker").display = False
        types_pane = self.query_one("#types", TypesPane)
        types_pane.display = True
        types_pane.focus()
        types_pane.refresh()
        self._update_title()

    def _set_help(self, visible: bool) -> None:
        self.query_one("#help-panel").set_class(visible, "visible")

    # -- Event handlers --------------------------------------------------

    def on_picker_pane_file_selected(self, event: PickerPane.FileSelected) -> None:
        if self.editor.open(event.path):
            self._show_editor()
        else:
            self.picker.status = self.editor.status
            self.query_one("#picker").refresh()

    def on_picker_pane_connect_requested(self, event: PickerPane.ConnectRequested) -> None:
        config = self.remote or RemoteConfig.from_env()
        defaults = form_defaults(config, os.environ.get("USER", ""))
        trust = config.trust_new_host if config else False
        self.push_screen(ConnectScreen(defaults, self.timeout, trust), self._connect)

    def _connect(self, config: RemoteConfig | None) -> None:
        if config is None:
            self.picker.status = "SSH connect cancelled"
        else:
            self.editor.dispatch(Command.TOGGLE_SOURCE, config)
            if self.editor.source.kind is SourceKind.REMOTE:
                self.remote = config
                self.picker.reset()
            self.picker.status = self.editor.status
        self._show_picker()

    def on_types_pane_close_requested(self, event: TypesPane.CloseRequested) -> None:
        self.editor.close_document()
        self.picker.refresh()
        self._show_picker()

    def on_picker_pane_help_toggled(self, event: PickerPane.HelpToggled) -> None:
        self._set_help(event.visible)

    def on_types_pane_help_toggled(self, event: TypesPane.HelpToggled) -> None:
        self._set_help(event.visible)

    def on_picker_pane_quit(self, event: PickerPane.Quit) -> None:
        self.exit()

    def on_types_pane_quit(self, event: TypesPane.Quit) -> None:
        self.exit()


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="lootedit",
        description="Two-pane editor for types.xml loot files, local or over SFTP",
    )
    parser.add_argument(
        "path",
        nargs="?",
        default="",
        help="types.xml file to open, or directory to browse",
    )
    parser.add_argument(
        "--remote",
        metavar="USER@HOST[:PORT]",
        help="browse a remote host over SFTP (password from SSH_PASSWORD)",
    )
    parser.add_argument("--key", metavar="PATH", help="private key for --remote")
    parser.add_argument(
        "--trust-new-host",
        action="store_true",
        default=False,
        help="accept a host key that is not in known_hosts yet",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT,
        help="seconds to wait for connect, read and write (default: %(default)s)",
    )
    parser.add_argument(
        "--no-backup",
        action="store_true",
        default=False,
        help="do not keep a .bak copy when saving",
    )
    parser.add_argument("--log-file", metavar="PATH", help="write logs to this file")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    args = parser.parse_args()

    setup_logging(args.log_file, args.verbose)

    remote = None
    if args.remote:
        try:
            remote = RemoteConfig.from_target(
                args.remote,
                key_path=args.key,
                passphrase=os.environ.get("SSH_PASSPHRASE") or None,
                password=os.environ.get("SSH_PASSWORD") or None,
                timeout=args.timeout,
                trust_new_host=args.trust_new_host,
            )
        except ValueError as exc:
            parser.error(str(exc))

    try:
        local = LocalSource(os.getcwd())
    except OSError as exc:
        print(f"lootedit: {exc}", file=sys.stderr)
        sys.exit(1)

    with Editor(local, backup=not args.no_backup) as editor:
        app = LootEditorApp(editor, path=args.path, remote=remote, timeout=args.timeout)
        app.run()


if __name__ == "__main__":
    main()
