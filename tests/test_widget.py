"""Tests for key handling in the picker and editor widgets."""

from types import SimpleNamespace

import pytest

from lootedit.editor import Command, Editor, EditorState, EditTarget, Pane
from lootedit.picker import FilePicker
from lootedit.prompt import build_config, form_defaults
from lootedit.remote import RemoteConfig
from lootedit.sources import SourceKind
from lootedit.widget import PickerPane, TypesPane, scroll_window

from conftest import MemorySource


def key(name, character=None):
    if character is None and len(name) == 1:
        character = name
    return SimpleNamespace(key=name, character=character)


@pytest.fixture
def messages():
    return []


@pytest.fixture
def picker_pane(source, messages):
    editor = Editor(source)
    picker = FilePicker(lambda: editor.source)
    picker.reset()
    pane = PickerPane(picker, editor)
    pane.post_message = messages.append
    return pane


@pytest.fixture
def types_pane(editor, messages):
    pane = TypesPane(editor)
    pane.post_message = messages.append
    return pane


class TestPickerPane:
    """Keys on the file picker."""

    def test_move(self, picker_pane):
        picker_pane._handle_key(key("j"))
        assert picker_pane.picker.selected == 1
        picker_pane._handle_key(key("up"))
        assert picker_pane.picker.selected == 0

    def test_enter_file_posts_selection(self, picker_pane, messages):
        names = [e.name for e in picker_pane.picker.entries]
        picker_pane.picker.selected = names.index("types.xml")
        picker_pane._handle_key(key("enter"))
        assert len(messages) == 1
        assert isinstance(messages[0], PickerPane.FileSelected)
        assert messages[0].path == "/srv/types.xml"

    def test_r_requests_connection(self, picker_pane, messages):
        picker_pane._handle_key(key("r"))
        assert isinstance(messages[0], PickerPane.ConnectRequested)

    def test_help_toggle(self, picker_pane, messages):
        picker_pane._handle_key(key("?"))
        assert messages[0].visible is True
        picker_pane._handle_key(key("?"))
        assert messages[1].visible is False

    def test_quit(self, picker_pane, messages):
        picker_pane._handle_key(key("q"))
        assert isinstance(messages[0], PickerPane.Quit)


class TestTypesPaneBrowsing:
    """Keys while browsing the types and fields."""

    def test_pane_keys(self, types_pane):
        editor = types_pane.editor
        types_pane._handle_browsing(key("h"))
        assert editor.pane is Pane.TYPES
        types_pane._handle_browsing(key("l"))
        assert editor.pane is Pane.FIELDS
        types_pane._handle_browsing(key("right"))
        assert editor.pane is Pane.FIELDS
        types_pane._handle_browsing(key("tab"))
        assert editor.pane is Pane.TYPES

    def test_page_down(self, types_pane):
        types_pane._handle_browsing(key("l"))
        types_pane._handle_browsing(key("pagedown"))
        assert types_pane.editor.selected_field == 5

    def test_add_starts_naming(self, types_pane):
        editor = types_pane.editor
        types_pane._handle_browsing(key("l"))
        types_pane._handle_browsing(key("a"))
        assert editor.state is EditorState.EDITING
        assert editor.view.edit_target is EditTarget.FIELD_NAME
        assert editor.view.edit_text == "new_field"

    def test_rename_field(self, types_pane):
        types_pane._handle_browsing(key("l"))
        types_pane._handle_browsing(key("n"))
        for _ in "nominal":
            types_pane._handle_editing(key("backspace", ""))
        for char in "min":
            types_pane._handle_editing(key(char))
        types_pane._handle_editing(key("enter", "\r"))
        assert types_pane.editor.document.types[0].fields[0].name == "min"

    def test_escape_cancels_edit(self, types_pane):
        editor = types_pane.editor
        types_pane._handle_browsing(key("enter", "\r"))
        types_pane._handle_editing(key("x"))
        types_pane._handle_editing(key("escape", "\x1b"))
        assert editor.state is EditorState.BROWSING
        assert editor.document.types[0].name == "AKM"

    def test_save_key(self, types_pane, source):
        types_pane._handle_browsing(key("s"))
        assert "/srv/types.xml" in source.writes

    def test_escape_closes_when_clean(self, types_pane, messages):
        types_pane._handle_browsing(key("escape", "\x1b"))
        assert isinstance(messages[0], TypesPane.CloseRequested)

    def test_escape_warns_when_dirty(self, types_pane, messages):
        types_pane._handle_browsing(key("d"))
        types_pane._handle_browsing(key("escape", "\x1b"))
        assert messages == []
        assert types_pane.editor.status.startswith("Unsaved changes")

    def test_quit_twice_when_dirty(self, types_pane, messages):
        types_pane._handle_browsing(key("c"))
        types_pane._handle_browsing(key("q"))
        assert messages == []
        types_pane._handle_browsing(key("q"))
        assert isinstance(messages[0], TypesPane.Quit)

    def test_r_ignored_on_local(self, types_pane, messages):
        types_pane._handle_browsing(key("r"))
        assert messages == []
        assert types_pane.editor.document is not None

    def test_r_leaves_clean_remote(self, messages):
        remote = MemorySource({"/home/dayz/types.xml": b"<types/>"}, kind=SourceKind.REMOTE)
        remote.connect = lambda: None
        editor = Editor(MemorySource(), connector=lambda config: remote)
        editor.dispatch(Command.TOGGLE_SOURCE, RemoteConfig("host", "dayz"))
        assert editor.open("/home/dayz/types.xml")
        pane = TypesPane(editor)
        pane.post_message = messages.append
        pane._handle_browsing(key("r"))
        assert editor.source.kind is SourceKind.LOCAL
        assert isinstance(messages[0], TypesPane.CloseRequested)


class TestScrollWindow:
    """Keeping the selection visible."""

    def test_follows_selection(self):
        assert scroll_window(0, 3, 20, 5) == 0
        assert scroll_window(0, 7, 20, 5) == 3
        assert scroll_window(10, 4, 20, 5) == 4

    def test_clamps(self):
        assert scroll_window(18, 19, 20, 5) == 15
        assert scroll_window(4, None, 20, 5) == 0
        assert scroll_window(0, 2, 3, 10) == 0


class TestConnectForm:
    """Validation of the SSH form."""

    def test_build_config(self):
        config = build_config(
            {"host": " dayz.example ", "user": "dayz", "port": "", "password": "pw"}, 4.0
        )
        assert config == RemoteConfig("dayz.example", "dayz", 22, "pw", None, None, 4.0)

    @pytest.mark.parametrize(
        "values, message",
        [
            ({"user": "dayz"}, "Host is required"),
            ({"host": "h"}, "User is required"),
            ({"host": "h", "user": "u", "port": "ssh"}, "Invalid port: ssh"),
            ({"host": "h", "user": "u", "port": "70000"}, "Invalid port: 70000"),
        ],
    )
    def test_invalid(self, values, message):
        with pytest.raises(ValueError, match=message):
            build_config(values)

    def test_build_config_trust(self):
        values = {"host": "h", "user": "u"}
        assert build_config(values).trust_new_host is False
        assert build_config(values, trust_new_host=True).trust_new_host is True

    def test_form_defaults(self):
        assert form_defaults(None, "me") == {"host": "", "user": "me", "port": "22"}
        defaults = form_defaults(RemoteConfig("h", "u", 2200, key_path="~/.ssh/id"))
        assert defaults["port"] == "2200"
        assert defaults["key"] == "~/.ssh/id"
        assert defaults["password"] == ""
