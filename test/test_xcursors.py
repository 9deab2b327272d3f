import logging
import struct
from pathlib import Path

import pytest

from libvcursor import xcursors
from libvcursor.xcursors import XCursorError, XCursorImage, XCursorTheme, parse_xcursor


def xcursor_bytes(*images, comment=False):
    """Build an XCursor file from (nominal, size, hotspot, delay, argb) tuples."""
    entries = len(images) + (1 if comment else 0)
    header = struct.pack("<4sIII", b"Xcur", 16, 0x10000, entries)
    position = 16 + 12 * entries
    toc = b""
    chunks = b""
    if comment:
        chunk = struct.pack("<IIIII", 20, xcursors.CHUNK_COMMENT, 1, 1, 0)
        toc += struct.pack("<III", xcursors.CHUNK_COMMENT, 1, position)
        chunks += chunk
        position += len(chunk)
    for nominal, size, (xhot, yhot), delay, argb in images:
        chunk = struct.pack("<9I", 36, xcursors.CHUNK_IMAGE, nominal, 1, size, size, xhot, yhot, delay)
        chunk += struct.pack("<I", argb) * (size * size)
        toc += struct.pack("<III", xcursors.CHUNK_IMAGE, nominal, position)
        chunks += chunk
        position += len(chunk)
    return header + toc + chunks


GREEN = 0xFF00FF00
RED = 0xFFFF0000


class TestParse:
    def test_single_image(self):
        (frame,) = parse_xcursor(xcursor_bytes((24, 24, (3, 4), 0, GREEN)))
        assert frame.nominal_size == 24
        assert frame.delay == 0
        assert frame.buffer.size == (24, 24)
        assert frame.buffer.hotspot == (3, 4)
        assert frame.buffer.pixel(5, 5) == (255, 0, 255, 0)

    def test_multiple_sizes(self):
        frames = parse_xcursor(xcursor_bytes((24, 24, (0, 0), 0, GREEN), (48, 48, (0, 0), 0, RED)))
        assert [f.nominal_size for f in frames] == [24, 48]

    def test_comment_chunks_are_skipped(self):
        frames = parse_xcursor(xcursor_bytes((16, 16, (0, 0), 0, GREEN), comment=True))
        assert len(frames) == 1

    @pytest.mark.parametrize(
        "data",
        [
            b"",
            b"Xcux" + b"\0" * 12,
            b"Xcur\x10\0\0\0",
            struct.pack("<4sIII", b"Xcur", 16, 0x10000, 0),
            xcursor_bytes((24, 24, (0, 0), 0, GREEN))[:-10],
        ],
    )
    def test_broken(self, data):
        with pytest.raises(XCursorError):
            parse_xcursor(data)


class TestXCursorImage:
    def test_closest(self):
        frames = parse_xcursor(xcursor_bytes((24, 24, (0, 0), 0, GREEN), (48, 48, (0, 0), 0, RED)))
        assert XCursorImage.closest(frames, 40).frames[0].nominal_size == 48
        assert XCursorImage.closest(frames, 30).frames[0].nominal_size == 24

    def test_closest_groups_by_nominal_size(self):
        # some themes ship a 32 nominal image drawn on a 24 pixel canvas
        frames = parse_xcursor(
            xcursor_bytes((24, 24, (0, 0), 0, GREEN), (32, 24, (0, 0), 0, RED), (24, 24, (0, 0), 0, GREEN))
        )
        image = XCursorImage.closest(frames, 24)
        assert [frame.nominal_size for frame in image.frames] == [24, 24]
        assert not any(frame.buffer.pixel(0, 0) == (255, 255, 0, 0) for frame in image.frames)

    def test_animation(self):
        frames = parse_xcursor(xcursor_bytes((24, 24, (0, 0), 50, GREEN), (24, 24, (0, 0), 50, RED)))
        image = XCursorImage.closest(frames, 24)
        assert image.is_animated
        assert image.animation_duration == 100
        assert image.frame(0)[0] == 0
        assert image.frame(60)[0] == 1
        assert image.frame(105)[0] == 0

    def test_static(self):
        image = XCursorImage.closest(parse_xcursor(xcursor_bytes((24, 24, (0, 0), 0, GREEN))), 24)
        assert not image.is_animated
        assert image.frame(1234)[0] == 0


@pytest.fixture
def icons(tmp_path):
    return tmp_path / "icons"


@pytest.fixture
def icon_theme(icons):
    """Write an XCursor theme into the icons directory."""

    def theme(name, inherits=None, cursors=()):
        directory = icons / name
        (directory / "cursors").mkdir(parents=True, exist_ok=True)
        if inherits is not None:
            (directory / "index.theme").write_text(f"[Icon Theme]\nName={name}\nInherits={inherits}\n")
        for cursor, data in cursors:
            (directory / "cursors" / cursor).write_bytes(data)

    return theme


def test_theme_chain(icons, icon_theme):
    icon_theme("mine", inherits="base, other")
    icon_theme("base", inherits="mine")
    chooser = XCursorTheme(theme="mine", search_path=[icons])
    assert list(chooser.theme_chain()) == ["mine", "base", "other", "default"]


def test_legacy_render_through_inherits(icons, icon_theme):
    icon_theme("mine", inherits="base")
    icon_theme("base", cursors=[("left_ptr", xcursor_bytes((24, 24, (1, 1), 0, GREEN)))])
    chooser = XCursorTheme(theme="mine", size=24, search_path=[icons])

    buffer = chooser.legacy_render("default")
    assert buffer.hotspot == (1, 1)
    assert buffer.pixel(0, 0) == (255, 0, 255, 0)
    assert chooser.find_file("left_ptr") == icons / "base" / "cursors" / "left_ptr"

    # unknown to the theme, so the default cursor stands in
    assert chooser.legacy_render("move") is buffer
    assert chooser.load("move") is None


def test_load_picks_size_for_scale(icons, icon_theme):
    data = xcursor_bytes((24, 24, (0, 0), 0, GREEN), (48, 48, (0, 0), 0, RED))
    icon_theme("default", cursors=[("fleur", data)])
    chooser = XCursorTheme(theme="default", size=24, search_path=[icons])
    assert chooser.legacy_render("move", 1).size == (24, 24)
    assert chooser.legacy_render("move", 2).size == (48, 48)
    assert chooser.load("move", 2) is chooser.load("move", 2)


def test_broken_file_tries_next_name(icons, icon_theme, caplog):
    icon_theme(
        "default",
        cursors=[("default", b"garbage"), ("left_ptr", xcursor_bytes((24, 24, (0, 0), 0, RED)))],
    )
    chooser = XCursorTheme(search_path=[icons], theme="default")
    with caplog.at_level(logging.WARNING, logger="libvcursor"):
        buffer = chooser.legacy_render("default")
    assert buffer.pixel(0, 0) == (255, 255, 0, 0)
    assert "Error loading xcursor" in caplog.text


def test_builtin_arrow_when_nothing_found(tmp_path):
    chooser = XCursorTheme(theme="missing", size=32, search_path=[tmp_path])
    buffer = chooser.legacy_render("default", 2)
    assert buffer.size == (64, 64)


def test_animated_legacy_cursor(icons, icon_theme):
    data = xcursor_bytes((24, 24, (0, 0), 50, GREEN), (24, 24, (0, 0), 50, RED))
    icon_theme("default", cursors=[("watch", data)])
    chooser = XCursorTheme(theme="default", search_path=[icons])
    assert chooser.legacy_render("wait", millis=10).pixel(0, 0) == (255, 0, 255, 0)
    assert chooser.legacy_render("wait", millis=60).pixel(0, 0) == (255, 255, 0, 0)


def test_is_legacy_animated(icons, icon_theme):
    data = xcursor_bytes((24, 24, (0, 0), 50, GREEN), (24, 24, (0, 0), 50, RED))
    icon_theme("default", cursors=[("watch", data), ("left_ptr", xcursor_bytes((24, 24, (0, 0), 0, GREEN)))])
    chooser = XCursorTheme(theme="default", search_path=[icons])
    assert chooser.is_legacy_animated("wait")
    assert not chooser.is_legacy_animated("default")
    # falls back to the static default cursor
    assert not chooser.is_legacy_animated("text")



def test_reload(icons, icon_theme):
    icon_theme("one", cursors=[("left_ptr", xcursor_bytes((24, 24, (0, 0), 0, GREEN)))])
    icon_theme("two", cursors=[("left_ptr", xcursor_bytes((24, 24, (0, 0), 0, RED)))])
    chooser = XCursorTheme(theme="one", search_path=[icons])
    assert chooser.legacy_render("default").pixel(0, 0) == (255, 0, 255, 0)
    chooser.reload(theme="two", size=32)
    assert chooser.size == 32
    assert chooser.legacy_render("default").pixel(0, 0) == (255, 255, 0, 0)


@pytest.mark.parametrize(
    "platform_id,cursor_id",
    [
        ("left_ptr", "default"),
        ("FLEUR", "move"),
        ("xterm", "text"),
        ("watch", "wait"),
        ("sb_h_double_arrow", "ew-resize"),
        ("bogus", None),
    ],
)
def test_resolve_symbolic_id(platform_id, cursor_id):
    assert XCursorTheme(search_path=[]).resolve_symbolic_id(platform_id) == cursor_id


def test_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("XCURSOR_THEME", "Adwaita")
    monkeypatch.setenv("XCURSOR_SIZE", "not a number")
    monkeypatch.setenv("XCURSOR_PATH", f"{tmp_path}::/usr/share/icons")
    chooser = XCursorTheme()
    assert chooser.theme == "Adwaita"
    assert chooser.size == 24
    assert chooser.search_path == [tmp_path, Path("/usr/share/icons")]


def test_default_search_path(monkeypatch):
    monkeypatch.delenv("XCURSOR_PATH", raising=False)
    monkeypatch.setenv("XDG_DATA_HOME", "/home/user/.local/share")
    monkeypatch.setenv("XDG_DATA_DIRS", "/usr/share")
    assert xcursors._default_search_path() == [
        Path("/home/user/.local/share/icons"),
        Path("~/.icons").expanduser(),
        Path("/usr/share/icons"),
        Path("/usr/share/pixmaps"),
    ]


def test_as_manager_host(tmp_path):
    from libvcursor.manager import CursorManager

    manager = CursorManager(XCursorTheme(theme="missing", size=24, search_path=[tmp_path]))
    assert manager.set_platform_cursor("xterm", 0) == "text"
    buffer = manager.render(1, 0)
    assert buffer.size == (24, 24)


def test_animated_legacy_cursor_as_manager_host(icons, icon_theme):
    from libvcursor.manager import CursorManager

    data = xcursor_bytes((24, 24, (0, 0), 50, GREEN), (24, 24, (0, 0), 50, RED))
    icon_theme("default", cursors=[("watch", data)])
    manager = CursorManager(XCursorTheme(theme="default", search_path=[icons]))
    manager.set_platform_cursor("watch", 0)
    assert manager.render(1, 10).pixel(0, 0) == (255, 0, 255, 0)
    assert manager.render(1, 60).pixel(0, 0) == (255, 255, 0, 0)
    assert manager.is_animated(1, 60)
