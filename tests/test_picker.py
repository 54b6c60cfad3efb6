"""Tests for the file picker."""

from lootedit.picker import PARENT, FilePicker
from lootedit.sources import SourceKind

from conftest import MemorySource


def _picker(files=None):
    source = MemorySource(
        files
        if files is not None
        else {
            "/srv/types.xml": b"<types/>",
            "/srv/Zeta.txt": b"",
            "/srv/alpha.xml": b"",
            "/srv/db/events.xml": b"",
            "/srv/Mission/cfg.xml": b"",
        }
    )
    picker = FilePicker(lambda: source)
    picker.reset()
    return picker, source


class TestListing:
    """Directory listing order and the parent entry."""

    def test_start_dir(self):
        picker, _ = _picker()
        assert picker.cwd == "/srv"
        assert picker.selected == 0

    def test_directories_first_case_insensitive(self):
        picker, _ = _picker()
        names = [e.name for e in picker.entries]
        assert names == [PARENT, "db", "Mission", "alpha.xml", "types.xml", "Zeta.txt"]

    def test_no_parent_at_root(self):
        picker, _ = _picker()
        assert picker.chdir("/")
        assert [e.name for e in picker.entries] == ["srv"]

    def test_missing_directory_keeps_listing(self):
        picker, _ = _picker()
        before = list(picker.entries)
        assert not picker.chdir("/nope")
        assert picker.cwd == "/srv"
        assert picker.entries == before
        assert picker.status.startswith("not found")


class TestNavigation:
    """Moving the selection and activating entries."""

    def test_next_previous_wrap(self):
        picker, _ = _picker()
        picker.previous()
        assert picker.selected == len(picker.entries) - 1
        picker.next()
        assert picker.selected == 0

    def test_jump_clamps(self):
        picker, _ = _picker()
        picker.jump(5)
        assert picker.selected == 5
        picker.jump(5)
        assert picker.selected == 5
        picker.jump(-50)
        assert picker.selected == 0

    def test_enter_directory_and_back(self):
        picker, _ = _picker()
        picker.next()
        assert picker.activate() is None
        assert picker.cwd == "/srv/db"
        assert [e.name for e in picker.entries] == [PARENT, "events.xml"]
        picker.selected = 0
        assert picker.activate() is None
        assert picker.cwd == "/srv"

    def test_activate_file(self):
        picker, _ = _picker()
        picker.selected = 4
        assert picker.activate() == "/srv/types.xml"
        assert picker.status == "Selected file: /srv/types.xml (local)"

    def test_empty_directory(self):
        picker, _ = _picker({})
        picker.chdir("/")
        assert picker.entries == []
        assert picker.selected is None
        picker.next()
        picker.jump(3)
        assert picker.activate() is None

    def test_follows_active_source(self):
        local = MemorySource({"/srv/types.xml": b""})
        remote = MemorySource({"/home/dayz/types.xml": b""}, kind=SourceKind.REMOTE)
        remote.start_dir = lambda: "/home/dayz"
        active = [local]
        picker = FilePicker(lambda: active[0])
        picker.reset()
        assert picker.cwd == "/srv"
        active[0] = remote
        picker.reset()
        assert picker.cwd == "/home/dayz"
        picker.selected = 1
        picker.activate()
        assert picker.status.endswith("(ssh)")

    def test_refresh_starts_over_after_source_switch(self):
        local = MemorySource({"/srv/types.xml": b""})
        remote = MemorySource({"/home/dayz/types.xml": b""}, kind=SourceKind.REMOTE)
        remote.start_dir = lambda: "/home/dayz"
        active = [remote]
        picker = FilePicker(lambda: active[0])
        picker.reset()
        active[0] = local
        picker.refresh()
        assert picker.cwd == "/srv"
        assert picker.kind is SourceKind.LOCAL
        picker.refresh()
        assert picker.cwd == "/srv"
