# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in
# all copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.

"""
The legacy bitmap cursor mechanism: XCursor themes.

XCursorTheme is the default HostCursors implementation. It locates
cursor files through the usual XCursor search path and Inherits chains,
parses the XCursor format, and maps both symbolic ids and platform names
onto the files a theme actually ships.
"""

from __future__ import annotations

import configparser
import os
import struct
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from libvcursor import images
from libvcursor.configurable import Configurable
from libvcursor.fallback import HostCursors, builtin_arrow
from libvcursor.log_utils import logger
from libvcursor.utils import CursorError, scaled_size, xdg_data_dirs

if TYPE_CHECKING:
    from collections.abc import Iterator

    from libvcursor.images import PixelBuffer

XCURSOR_MAGIC = b"Xcur"
CHUNK_COMMENT = 0xFFFE0001
CHUNK_IMAGE = 0xFFFD0002

_FILE_HEADER = struct.Struct("<III")
_TOC_ENTRY = struct.Struct("<III")
_IMAGE_HEADER = struct.Struct("<IIIIIIIII")

# symbolic id -> XCursor names, preferred first
CURSOR_NAMES: dict[str, tuple[str, ...]] = {
    "default": ("default", "left_ptr", "arrow", "top_left_arrow"),
    "move": ("move", "fleur", "all-scroll", "size_all"),
    "text": ("text", "xterm", "ibeam"),
    "wait": ("wait", "watch"),
    "progress": ("progress", "left_ptr_watch", "half-busy"),
    "crosshair": ("crosshair", "cross", "cross_reverse", "tcross"),
    "pointer": ("pointer", "hand", "hand1", "hand2", "pointing_hand"),
    "grab": ("grab", "openhand"),
    "grabbing": ("grabbing", "closedhand", "dnd-move"),
    "not-allowed": ("not-allowed", "circle", "crossed_circle", "dnd-none"),
    "help": ("help", "question_arrow", "whats_this"),
    "copy": ("copy", "dnd-copy"),
    "alias": ("alias", "dnd-link", "link"),
    "cell": ("cell", "plus"),
    "vertical-text": ("vertical-text",),
    "context-menu": ("context-menu",),
    "no-drop": ("no-drop", "dnd-no-drop"),
    "ew-resize": ("ew-resize", "col-resize", "sb_h_double_arrow", "h_double_arrow"),
    "ns-resize": ("ns-resize", "row-resize", "sb_v_double_arrow", "v_double_arrow"),
    "nwse-resize": ("nwse-resize", "top_left_corner", "bottom_right_corner", "size_fdiag"),
    "nesw-resize": ("nesw-resize", "top_right_corner", "bottom_left_corner", "size_bdiag"),
    "zoom-in": ("zoom-in",),
    "zoom-out": ("zoom-out",),
}


def _platform_names() -> dict[str, str]:
    names: dict[str, str] = {}
    for cursor_id, aliases in CURSOR_NAMES.items():
        for alias in aliases:
            names.setdefault(alias, cursor_id)
    return names


PLATFORM_NAMES = _platform_names()


class XCursorError(CursorError):
    pass


@dataclass(frozen=True)
class XCursorFrame:
    nominal_size: int
    buffer: PixelBuffer
    delay: int


def _surface_from_pixels(pixels: bytes, width: int, height: int):
    # XCursor pixels are little endian premultiplied ARGB, which is cairo's
    # ARGB32 on little endian machines.
    if struct.pack("=I", 1) != struct.pack("<I", 1):
        swapped = bytearray(pixels)
        swapped[0::4], swapped[1::4], swapped[2::4], swapped[3::4] = (
            pixels[3::4],
            pixels[2::4],
            pixels[1::4],
            pixels[0::4],
        )
        pixels = bytes(swapped)

    surface = images.new_surface(width, height)
    stride = surface.get_stride()
    data = surface.get_data()
    row = width * 4
    for y in range(height):
        data[y * stride : y * stride + row] = pixels[y * row : (y + 1) * row]
    surface.mark_dirty()
    return surface


def parse_xcursor(data: bytes) -> list[XCursorFrame]:
    """Parse every image chunk of an XCursor file."""
    if data[:4] != XCURSOR_MAGIC:
        raise XCursorError("Unrecognized file format")
    try:
        header_size, _version, ntoc = _FILE_HEADER.unpack_from(data, 4)
        frames = []
        for i in range(ntoc):
            chunk_type, _subtype, position = _TOC_ENTRY.unpack_from(
                data, header_size + i * _TOC_ENTRY.size
            )
            if chunk_type != CHUNK_IMAGE:
                continue
            (
                chunk_header,
                actual_type,
                nominal_size,
                _chunk_version,
                width,
                height,
                xhot,
                yhot,
                delay,
            ) = _IMAGE_HEADER.unpack_from(data, position)
            if actual_type != CHUNK_IMAGE:
                logger.debug("XCursor TOC and chunk type disagree at %d, skipping", position)
                continue
            start = position + chunk_header
            pixels = data[start : start + width * height * 4]
            if len(pixels) != width * height * 4:
                raise XCursorError(f"Truncated image chunk at {position}")
            surface = _surface_from_pixels(pixels, width, height)
            frames.append(
                XCursorFrame(nominal_size, images.PixelBuffer(surface, (xhot, yhot)), delay)
            )
    except struct.error as e:
        raise XCursorError(f"Truncated file: {e}") from e
    if not frames:
        raise XCursorError("No images")
    return frames


@dataclass
class XCursorImage:
    """The frames of one cursor at a single nominal size."""

    frames: list[XCursorFrame] = field(default_factory=list)

    @property
    def animation_duration(self) -> int:
        return sum(frame.delay for frame in self.frames)

    @property
    def is_animated(self) -> bool:
        return len(self.frames) > 1

    def frame(self, millis: int) -> tuple[int, XCursorFrame]:
        """
        The frame to show millis into the animation.

        Time wraps, so with a 100ms animation 5ms and 105ms give the same
        frame.
        """
        duration = self.animation_duration
        if duration == 0:
            return 0, self.frames[0]
        millis %= duration
        for index, frame in enumerate(self.frames):
            if millis < frame.delay:
                return index, frame
            millis -= frame.delay
        return 0, self.frames[0]

    @classmethod
    def closest(cls, frames: list[XCursorFrame], size: int) -> XCursorImage:
        best = min(frames, key=lambda frame: abs(size - frame.nominal_size))
        return cls([frame for frame in frames if frame.nominal_size == best.nominal_size])


def _default_search_path() -> list[Path]:
    path = os.environ.get("XCURSOR_PATH")
    if path:
        return [Path(p).expanduser() for p in path.split(":") if p]
    data_dirs = [directory / "icons" for directory in xdg_data_dirs()]
    return [data_dirs[0], Path("~/.icons").expanduser(), *data_dirs[1:], Path("/usr/share/pixmaps")]


class XCursorTheme(Configurable, HostCursors):
    defaults = [
        ("theme", None, "XCursor theme name, $XCURSOR_THEME or 'default' when unset."),
        ("size", None, "Nominal cursor size, $XCURSOR_SIZE or 24 when unset."),
        ("search_path", None, "Directories searched for themes, $XCURSOR_PATH when unset."),
    ]

    def __init__(self, **config):
        Configurable.__init__(self, **config)
        self.add_defaults(XCursorTheme.defaults)
        if self.theme is None:
            self.theme = os.environ.get("XCURSOR_THEME") or "default"
        if self.size is None:
            try:
                self.size = int(os.environ.get("XCURSOR_SIZE", 24))
            except ValueError:
                self.size = 24
        self.search_path = [Path(p) for p in (self.search_path or _default_search_path())]
        self._lock = threading.Lock()
        self._cache: dict[tuple[str, float], XCursorImage | None] = {}

    def theme_chain(self) -> Iterator[str]:
        """The theme followed by everything it inherits, each once."""
        seen = set()
        pending = [self.theme]
        while pending:
            name = pending.pop(0)
            if name in seen:
                continue
            seen.add(name)
            yield name
            pending.extend(self._inherits(name))
        if "default" not in seen:
            yield "default"

    def _inherits(self, theme: str) -> list[str]:
        for directory in self.search_path:
            index = directory / theme / "index.theme"
            if not index.is_file():
                continue
            parser = configparser.ConfigParser(interpolation=None)
            try:
                parser.read(index, encoding="utf-8")
            except (configparser.Error, UnicodeDecodeError) as e:
                logger.warning("Ignoring broken %s: %s", index, e)
                continue
            inherits = parser.get("Icon Theme", "Inherits", fallback="")
            return [name.strip() for name in inherits.split(",") if name.strip()]
        return []

    def find_file(self, name: str) -> Path | None:
        for theme in self.theme_chain():
            for directory in self.search_path:
                path = directory / theme / "cursors" / name
                if path.is_file():
                    return path
        return None

    def load(self, cursor_id: str, scale: float = 1) -> XCursorImage | None:
        """Load cursor_id, trying every XCursor name it is known by."""
        key = (cursor_id, scale)
        with self._lock:
            if key in self._cache:
                return self._cache[key]

        size = scaled_size(self.size, scale)
        image = None
        for name in CURSOR_NAMES.get(cursor_id, (cursor_id,)):
            path = self.find_file(name)
            if path is None:
                continue
            try:
                image = XCursorImage.closest(parse_xcursor(path.read_bytes()), size)
                break
            except (OSError, XCursorError) as e:
                logger.warning("Error loading xcursor %s@%d: %s", path, size, e)

        if image is None:
            logger.debug("No xcursor for '%s' in theme '%s'", cursor_id, self.theme)
        with self._lock:
            self._cache[key] = image
        return image

    def legacy_render(self, cursor_id: str, scale: float = 1, millis: int = 0) -> PixelBuffer:
        image = self.load(cursor_id, scale)
        if image is None and cursor_id != "default":
            image = self.load("default", scale)
        if image is None:
            # The default cursor must always have a fallback.
            return builtin_arrow(scaled_size(self.size, scale))
        return image.frame(millis)[1].buffer

    def is_legacy_animated(self, cursor_id: str, scale: float = 1) -> bool:
        image = self.load(cursor_id, scale)
        if image is None and cursor_id != "default":
            image = self.load("default", scale)
        return image is not None and image.is_animated

    def resolve_symbolic_id(self, platform_id: str) -> str | None:
        return PLATFORM_NAMES.get(platform_id.lower())

    def reload(self, theme: str | None = None, size: int | None = None) -> None:
        if theme is not None:
            self.theme = theme
        if size is not None:
            self.size = size
        with self._lock:
            self._cache.clear()
