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

import io
import math
import struct
from collections import namedtuple
from dataclasses import dataclass
from typing import TYPE_CHECKING

import cairocffi

from libvcursor.log_utils import logger
from libvcursor.utils import CursorError, clamp

if TYPE_CHECKING:
    from libvcursor.utils import Point


class LoadingError(CursorError):
    pass


_SurfaceInfo = namedtuple("_SurfaceInfo", ("surface", "file_type"))

_PIXEL = struct.Struct("=I")


def _decode_to_image_surface(bytes_img, width=None, height=None):
    # gdk-pixbuf is only opened once something actually needs decoding
    try:
        import cairocffi.pixbuf
    except OSError as e:
        raise LoadingError(f"gdk-pixbuf is unavailable: {e}") from e

    try:
        try:
            surf, fmt = cairocffi.pixbuf.decode_to_image_surface(bytes_img, width, height)
        except TypeError:
            logger.exception(
                "Couldn't load cairo image at specified width and height. "
                "Falling back to image scaling using cairo. "
                "Need cairocffi > v0.8.0"
            )
            surf, fmt = cairocffi.pixbuf.decode_to_image_surface(bytes_img)
    except cairocffi.pixbuf.ImageLoadingError as e:
        raise LoadingError("Couldn't load image!") from e
    return _SurfaceInfo(surf, fmt)


def get_cairo_surface(bytes_img, width=None, height=None):
    """Decode PNG, SVG or any other gdk-pixbuf format to an ImageSurface."""
    if width is None and height is None:
        try:
            surf = cairocffi.ImageSurface.create_from_png(io.BytesIO(bytes_img))
            return _SurfaceInfo(surf, "png")
        except (MemoryError, OSError):
            pass
    return _decode_to_image_surface(bytes_img, width, height)


def new_surface(width: int, height: int) -> cairocffi.ImageSurface:
    return cairocffi.ImageSurface(cairocffi.FORMAT_ARGB32, max(width, 1), max(height, 1))


def fitted_size(width: float, height: float, size: int) -> tuple[int, int]:
    """The longer side scaled to size, the other following in proportion."""
    factor = size / max(width, height, 1)
    return max(round(width * factor), 1), max(round(height * factor), 1)


def fit_surface(surface: cairocffi.ImageSurface, width: int, height: int) -> cairocffi.ImageSurface:
    """
    Return surface scaled to fit a width x height canvas.

    Proportions are kept and the image sits in the top left corner, so
    hotspots scale with the image.
    """
    if surface.get_width() == width and surface.get_height() == height:
        return surface
    target = new_surface(width, height)
    ctx = cairocffi.Context(target)
    factor = min(width / surface.get_width(), height / surface.get_height())
    ctx.scale(factor, factor)
    pattern = cairocffi.SurfacePattern(surface)
    pattern.set_filter(cairocffi.FILTER_BEST)
    ctx.set_source(pattern)
    ctx.paint()
    target.flush()
    return target


@dataclass(frozen=True)
class PixelBuffer:
    """
    A rasterized cursor image.

    The surface is premultiplied ARGB32 and the hotspot is in physical
    pixels. Buffers handed out by the renderer cache are shared: treat them
    as read-only.
    """

    surface: cairocffi.ImageSurface
    hotspot: Point = (0, 0)

    @property
    def width(self) -> int:
        return self.surface.get_width()

    @property
    def height(self) -> int:
        return self.surface.get_height()

    @property
    def size(self) -> tuple[int, int]:
        return (self.width, self.height)

    def pixel(self, x: int, y: int) -> tuple[int, int, int, int]:
        """The premultiplied (a, r, g, b) value at x, y."""
        self.surface.flush()
        offset = y * self.surface.get_stride() + x * 4
        (value,) = _PIXEL.unpack_from(self.surface.get_data(), offset)
        return (value >> 24 & 0xFF, value >> 16 & 0xFF, value >> 8 & 0xFF, value & 0xFF)

    def to_bytes(self) -> bytes:
        self.surface.flush()
        return bytes(self.surface.get_data())

    def __repr__(self):
        return "<{cls_name}: {width}x{height}, hotspot={hotspot}>".format(
            cls_name=self.__class__.__name__,
            width=self.width,
            height=self.height,
            hotspot=self.hotspot,
        )


def _aligned_canvas(*buffers: PixelBuffer):
    """
    Create a surface large enough to hold all buffers with their hotspots
    on the same point. Returns the context and the shared hotspot.
    """
    left = max(b.hotspot[0] for b in buffers)
    top = max(b.hotspot[1] for b in buffers)
    right = max(b.width - b.hotspot[0] for b in buffers)
    bottom = max(b.height - b.hotspot[1] for b in buffers)
    surface = new_surface(left + right, top + bottom)
    return surface, cairocffi.Context(surface), (left, top)


def cross_fade(source: PixelBuffer, target: PixelBuffer, progress: float) -> PixelBuffer:
    """Blend source into target, (1 - progress) * source + progress * target."""
    progress = clamp(progress)
    surface, ctx, (hx, hy) = _aligned_canvas(source, target)
    ctx.set_operator(cairocffi.OPERATOR_ADD)
    for buf, alpha in ((source, 1.0 - progress), (target, progress)):
        if alpha <= 0.0:
            continue
        ctx.set_source_surface(buf.surface, hx - buf.hotspot[0], hy - buf.hotspot[1])
        ctx.paint_with_alpha(alpha)
    surface.flush()
    return PixelBuffer(surface, (hx, hy))


def transform_blend(
    source: PixelBuffer,
    target: PixelBuffer,
    progress: float,
    start_scale: float = 0.5,
    start_rotation: float = 0.0,
) -> PixelBuffer:
    """
    Grow and unrotate target about its hotspot over a fading source.

    start_rotation is in degrees counter clockwise.
    """
    progress = clamp(progress)
    surface, ctx, (hx, hy) = _aligned_canvas(source, target)

    if progress < 1.0:
        ctx.set_source_surface(source.surface, hx - source.hotspot[0], hy - source.hotspot[1])
        ctx.paint_with_alpha(1.0 - progress)

    # cairo rejects a singular matrix
    factor = max(start_scale + (1.0 - start_scale) * progress, 1.0e-3)
    theta = math.radians(start_rotation * (1.0 - progress))
    ctx.save()
    ctx.translate(hx, hy)
    ctx.rotate(-theta)
    ctx.scale(factor, factor)
    pattern = cairocffi.SurfacePattern(target.surface)
    pattern.set_filter(cairocffi.FILTER_BEST)
    matrix = cairocffi.Matrix()
    matrix.translate(target.hotspot[0], target.hotspot[1])
    pattern.set_matrix(matrix)
    ctx.set_source(pattern)
    ctx.paint()
    ctx.restore()
    surface.flush()
    return PixelBuffer(surface, (hx, hy))
