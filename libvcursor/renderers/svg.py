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

from typing import TYPE_CHECKING

from libvcursor import images
from libvcursor.log_utils import logger
from libvcursor.renderers.base import RasterHandle, RenderError, RenderErrorKind, read_source

if TYPE_CHECKING:
    from pathlib import Path

    from libvcursor.images import PixelBuffer
    from libvcursor.utils import Point


class VectorHandle(RasterHandle):
    """
    A static vector cursor.

    The source is decoded once, its longer side straight at the target size
    so the path is rasterized rather than a bitmap being scaled. Proportions
    are kept.
    """

    def __init__(self, source: Path, size: int, hotspot: Point) -> None:
        RasterHandle.__init__(self, source, size, hotspot)
        bytes_img = read_source(source)
        try:
            surface, file_type = images.get_cairo_surface(bytes_img)
            natural = (surface.get_width(), surface.get_height())
            target = images.fitted_size(*natural, size)
            if file_type != "png" and natural != target:
                surface, file_type = images.get_cairo_surface(bytes_img, *target)
        except images.LoadingError as e:
            raise RenderError(RenderErrorKind.DECODE_FAILED, str(source)) from e
        logger.debug("Decoded %s (%s) at %dpx", source, file_type, size)
        self._buffer = images.PixelBuffer(images.fit_surface(surface, size, size), hotspot)

    @property
    def total_frames(self) -> int:
        return 1

    @property
    def frame_duration_ms(self) -> float:
        return 0

    def render_frame(self, index: int) -> PixelBuffer:
        return self._buffer
