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

from libvcursor.utils import CursorError

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from libvcursor.images import PixelBuffer
    from libvcursor.utils import Point

    RasterizerFactory = Callable[[Path, int, Point], "RasterHandle"]


class RenderErrorKind(enum.Enum):
    MISSING_DEFINITION = "missing-definition"
    SOURCE_UNREADABLE = "source-unreadable"
    DECODE_FAILED = "decode-failed"


class RenderError(CursorError):
    def __init__(self, kind: RenderErrorKind, message: str = "") -> None:
        super().__init__(f"{kind.value}: {message}" if message else kind.value)
        self.kind = kind


def read_source(path: Path) -> bytes:
    try:
        with open(path, "rb") as fobj:
            return fobj.read()
    except OSError as e:
        raise RenderError(RenderErrorKind.SOURCE_UNREADABLE, f"{path}: {e}") from e


class RasterHandle(metaclass=ABCMeta):
    """
    A cursor asset materialized at one raster size.

    Handles are created by a rasterizer factory, called with the asset path,
    the effective size in pixels and the hotspot in physical pixels. Single
    images report one frame of zero duration.
    """

    def __init__(self, source: Path, size: int, hotspot: Point) -> None:
        self.source = source
        self.size = size
        self.hotspot = hotspot

    @property
    @abstractmethod
    def total_frames(self) -> int:
        pass

    @property
    @abstractmethod
    def frame_duration_ms(self) -> float:
        pass

    @abstractmethod
    def render_frame(self, index: int) -> PixelBuffer:
        """Rasterize one frame, raising RenderError on failure."""

    @property
    def duration_ms(self) -> float:
        return self.total_frames * self.frame_duration_ms

    @property
    def is_animated(self) -> bool:
        return self.total_frames > 1

    def frame_index(self, phase_ms: float) -> int:
        """The frame shown phase_ms into the animation, clamped to the last frame."""
        if self.frame_duration_ms <= 0 or self.total_frames <= 1:
            return 0
        return max(0, min(int(phase_ms // self.frame_duration_ms), self.total_frames - 1))

    def frame_at_progress(self, progress: float) -> int:
        """The frame at a completion fraction, 0 maps to the first frame and 1 to the last."""
        if self.total_frames <= 1:
            return 0
        return max(0, min(round(progress * (self.total_frames - 1)), self.total_frames - 1))

    def __repr__(self):
        return f"<{self.__class__.__name__}: {self.source.name}@{self.size}px>"
