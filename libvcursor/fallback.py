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

from __future__ import annotations

import enum
from abc import ABCMeta, abstractmethod
from typing import TYPE_CHECKING

import cairocffi

from libvcursor import images
from libvcursor.log_utils import logger
from libvcursor.renderers.base import RenderErrorKind
from libvcursor.utils import scaled_size

if TYPE_CHECKING:
    from libvcursor.images import PixelBuffer


class FallbackReason(enum.Enum):
    NO_ACTIVE_CURSOR = "no-active-cursor"
    VECTOR_SYSTEM_DISABLED = "vector-system-disabled"
    MISSING_DEFINITION = "missing-definition"
    SOURCE_UNREADABLE = "source-unreadable"
    DECODE_FAILED = "decode-failed"
    TRANSITION_ASSET_UNAVAILABLE = "transition-asset-unavailable"

    @classmethod
    def from_error(cls, kind: RenderErrorKind) -> FallbackReason:
        return cls(kind.value)


class HostCursors(metaclass=ABCMeta):
    """Cursor capabilities owned by the host compositor."""

    @abstractmethod
    def legacy_render(self, cursor_id: str, scale: float = 1, millis: float = 0) -> PixelBuffer:
        """Render cursor_id with the legacy bitmap cursor mechanism, millis into its animation."""

    @abstractmethod
    def resolve_symbolic_id(self, platform_id: str) -> str | None:
        """Map a platform cursor name to a symbolic cursor id."""

    def is_legacy_animated(self, cursor_id: str, scale: float = 1) -> bool:
        """Whether the legacy cursor for cursor_id has more than one frame."""
        return False


def builtin_arrow(size: int) -> PixelBuffer:
    """A plain arrow pointer, drawn rather than loaded so it cannot fail."""
    surface = images.new_surface(size, size)
    ctx = cairocffi.Context(surface)
    ctx.scale(size / 24.0, size / 24.0)
    ctx.move_to(1.5, 1.5)
    ctx.line_to(1.5, 19.5)
    ctx.line_to(6.0, 15.0)
    ctx.line_to(9.0, 22.0)
    ctx.line_to(12.0, 20.5)
    ctx.line_to(9.0, 14.0)
    ctx.line_to(15.0, 14.0)
    ctx.close_path()
    ctx.set_source_rgb(0, 0, 0)
    ctx.fill_preserve()
    ctx.set_source_rgb(1, 1, 1)
    ctx.set_line_width(1.2)
    ctx.set_line_join(cairocffi.LINE_JOIN_MITER)
    ctx.stroke()
    surface.flush()
    hot = max(round(1.5 * size / 24.0), 0)
    return images.PixelBuffer(surface, (hot, hot))


class FallbackController:
    """
    Last resort rendering through the host's legacy cursors.

    fallback() never raises. It draws whatever cursor was last requested
    through the vector path, or default_cursor before any request, and drops
    to a built-in arrow should the host itself fail.
    """

    def __init__(self, host: HostCursors, base_size: int = 24, default_cursor: str = "default") -> None:
        self.host = host
        self.base_size = base_size
        self.default_cursor = default_cursor
        self.last_reason: FallbackReason | None = None
        self._last_requested: str | None = None
        self._last_logged: tuple[FallbackReason, str] | None = None

    @property
    def cursor_id(self) -> str:
        return self._last_requested or self.default_cursor

    def note_requested(self, cursor_id: str) -> None:
        self._last_requested = cursor_id

    def fallback(
        self, reason: FallbackReason, scale: float = 1, now: float = 0, detail: str = ""
    ) -> PixelBuffer:
        cursor_id = self.cursor_id
        self.last_reason = reason
        if self._last_logged != (reason, cursor_id):
            # once per change, not once per frame
            logger.warning(
                "Falling back to legacy cursor '%s' (%s)%s",
                cursor_id,
                reason.value,
                f": {detail}" if detail else "",
            )
            self._last_logged = (reason, cursor_id)

        try:
            return self.host.legacy_render(cursor_id, scale, now)
        except Exception:
            logger.exception("Legacy cursor '%s' failed, drawing the built-in arrow", cursor_id)
            return builtin_arrow(scaled_size(self.base_size, scale))

    def is_animated(self, scale: float = 1) -> bool:
        """Whether the legacy cursor shown by fallback() changes over time."""
        try:
            return self.host.is_legacy_animated(self.cursor_id, scale)
        except Exception:
            logger.exception("Legacy cursor '%s' failed", self.cursor_id)
            return False

    def recovered(self) -> None:
        """Note that the vector path rendered successfully again."""
        if self.last_reason is not None:
            logger.info("Vector cursors rendering again")
        self.last_reason = None
        self._last_logged = None
