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
A small Lottie (bodymovin JSON) rasterizer for animated cursors.

Only what cursor themes need is understood: shape layers holding groups,
paths, rectangles and ellipses, solid fills and strokes, layer and group
transforms, and linearly interpolated keyframes. Path morphing is not
supported, animated paths hold each keyframe.
"""

from __future__ import annotations

import json
import math
from typing import TYPE_CHECKING

import cairocffi

from libvcursor import images
from libvcursor.log_utils import logger
from libvcursor.renderers.base import RasterHandle, RenderError, RenderErrorKind, read_source

if TYPE_CHECKING:
    from pathlib import Path
    from typing import Any

    from libvcursor.images import PixelBuffer
    from libvcursor.utils import Point

SHAPE_LAYER = 4


def _lerp(a, b, t):
    if isinstance(a, list):
        return [_lerp(x, y, t) for x, y in zip(a, b)]
    return a + (b - a) * t


def property_value(prop: Any, frame: float, default: Any = 0.0) -> Any:
    """Evaluate a (possibly animated) Lottie property at frame."""
    if prop is None:
        return default
    if not isinstance(prop, dict):
        return prop
    value = prop.get("k", default)
    if not prop.get("a") or not isinstance(value, list) or not value:
        return value

    keyframes = value
    if frame <= keyframes[0]["t"]:
        return _unwrap(keyframes[0]["s"])

    for current, following in zip(keyframes, keyframes[1:]):
        if frame < following["t"]:
            start = _unwrap(current["s"])
            if current.get("h"):
                return start
            end = _unwrap(current.get("e", following.get("s", current["s"])))
            if isinstance(start, dict):
                return start
            span = following["t"] - current["t"]
            return _lerp(start, end, (frame - current["t"]) / span if span else 1.0)

    last = keyframes[-1]
    if "s" in last:
        return _unwrap(last["s"])
    # legacy files close the list with a bare time marker
    return _unwrap(keyframes[-2].get("e", keyframes[-2]["s"]))


def _unwrap(value):
    # single values and shape paths are stored as one element lists
    if isinstance(value, list) and len(value) == 1:
        return value[0]
    return value


def _pair(value, default=0.0) -> tuple[float, float]:
    if isinstance(value, (int, float)):
        return (float(value), float(value))
    if isinstance(value, list) and len(value) >= 2:
        return (float(value[0]), float(value[1]))
    return (default, default)


def _color(value, opacity: float) -> tuple[float, float, float, float]:
    channels = [float(c) for c in value[:4]]
    if any(c > 1.0 for c in channels[:3]):
        channels = [c / 255.0 for c in channels[:3]] + channels[3:]
    red, green, blue = channels[:3]
    alpha = channels[3] if len(channels) > 3 else 1.0
    return (red, green, blue, alpha * opacity)


class LottieHandle(RasterHandle):
    def __init__(self, source: Path, size: int, hotspot: Point) -> None:
        RasterHandle.__init__(self, source, size, hotspot)
        data = read_source(source)
        try:
            composition = json.loads(data)
        except ValueError as e:
            raise RenderError(RenderErrorKind.DECODE_FAILED, f"{source}: {e}") from e
        if not isinstance(composition, dict) or not isinstance(composition.get("layers"), list):
            raise RenderError(RenderErrorKind.DECODE_FAILED, f"{source}: no layers")

        self.composition = composition
        self.width = float(composition.get("w", 24))
        self.height = float(composition.get("h", 24))
        self.frame_rate = float(composition.get("fr", 60))
        self.in_point = float(composition.get("ip", 0))
        self.out_point = float(composition.get("op", self.in_point + 1))
        if self.width <= 0 or self.height <= 0:
            raise RenderError(RenderErrorKind.DECODE_FAILED, f"{source}: empty canvas")

        logger.debug(
            "Parsed %s: %gx%g, %d frames at %g fps",
            source,
            self.width,
            self.height,
            self.total_frames,
            self.frame_rate,
        )

    @property
    def total_frames(self) -> int:
        return max(int(self.out_point - self.in_point), 1)

    @property
    def frame_duration_ms(self) -> float:
        if self.frame_rate <= 0:
            return 0
        return 1000.0 / self.frame_rate

    def render_frame(self, index: int) -> PixelBuffer:
        frame = self.in_point + index % self.total_frames
        surface = images.new_surface(self.size, self.size)
        ctx = cairocffi.Context(surface)
        # the longer side fills the canvas, proportions are kept
        factor = self.size / max(self.width, self.height)
        ctx.scale(factor, factor)
        try:
            # the first layer in the file is the top one
            for layer in reversed(self.composition["layers"]):
                self._draw_layer(ctx, layer, frame)
        except (KeyError, TypeError, ValueError, IndexError, ZeroDivisionError) as e:
            raise RenderError(
                RenderErrorKind.DECODE_FAILED, f"{self.source} frame {index}: {e!r}"
            ) from e
        surface.flush()
        return images.PixelBuffer(surface, self.hotspot)

    def _draw_layer(self, ctx, layer: dict, frame: float) -> None:
        if layer.get("ty") != SHAPE_LAYER or layer.get("hd"):
            return
        if not layer.get("ip", self.in_point) <= frame < layer.get("op", self.out_point):
            return

        transform = layer.get("ks", {})
        opacity = property_value(transform.get("o"), frame, 100.0) / 100.0
        ctx.save()
        self._apply_transform(ctx, transform, frame)
        if opacity < 1.0:
            ctx.push_group()
            self._draw_shapes(ctx, layer.get("shapes", []), frame)
            ctx.pop_group_to_source()
            ctx.paint_with_alpha(max(opacity, 0.0))
        else:
            self._draw_shapes(ctx, layer.get("shapes", []), frame)
        ctx.restore()

    def _apply_transform(self, ctx, transform: dict, frame: float) -> None:
        px, py = _pair(property_value(transform.get("p"), frame))
        ax, ay = _pair(property_value(transform.get("a"), frame))
        sx, sy = _pair(property_value(transform.get("s"), frame, [100.0, 100.0]), 100.0)
        rotation = property_value(transform.get("r"), frame, 0.0)
        ctx.translate(px, py)
        ctx.rotate(math.radians(float(rotation)))
        # a zero scale would leave cairo with a singular matrix
        ctx.scale(sx / 100.0 or 1.0e-6, sy / 100.0 or 1.0e-6)
        ctx.translate(-ax, -ay)

    def _draw_shapes(self, ctx, shapes: list, frame: float) -> None:
        geometry = []
        styles = []
        for shape in shapes:
            if shape.get("hd"):
                continue
            kind = shape.get("ty")
            if kind in ("sh", "rc", "el"):
                geometry.append(shape)
            elif kind in ("fl", "st"):
                styles.append(shape)
            elif kind == "gr":
                self._draw_group(ctx, shape, frame)

        for style in styles:
            ctx.new_path()
            for shape in geometry:
                self._add_geometry(ctx, shape, frame)
            opacity = property_value(style.get("o"), frame, 100.0) / 100.0
            ctx.set_source_rgba(*_color(property_value(style["c"], frame), opacity))
            if style["ty"] == "fl":
                ctx.set_fill_rule(
                    cairocffi.FILL_RULE_EVEN_ODD if style.get("r") == 2 else cairocffi.FILL_RULE_WINDING
                )
                ctx.fill()
            else:
                ctx.set_line_width(float(property_value(style.get("w"), frame, 1.0)))
                ctx.set_line_cap(cairocffi.LINE_CAP_ROUND)
                ctx.set_line_join(cairocffi.LINE_JOIN_ROUND)
                ctx.stroke()

    def _draw_group(self, ctx, group: dict, frame: float) -> None:
        items = group.get("it", [])
        transform = next((item for item in items if item.get("ty") == "tr"), None)
        ctx.save()
        if transform is None:
            self._draw_shapes(ctx, items, frame)
        else:
            self._apply_transform(ctx, transform, frame)
            opacity = property_value(transform.get("o"), frame, 100.0) / 100.0
            if opacity < 1.0:
                ctx.push_group()
                self._draw_shapes(ctx, items, frame)
                ctx.pop_group_to_source()
                ctx.paint_with_alpha(max(opacity, 0.0))
            else:
                self._draw_shapes(ctx, items, frame)
        ctx.restore()

    def _add_geometry(self, ctx, shape: dict, frame: float) -> None:
        kind = shape["ty"]
        if kind == "sh":
            self._add_path(ctx, property_value(shape["ks"], frame))
        elif kind == "rc":
            cx, cy = _pair(property_value(shape["p"], frame))
            w, h = _pair(property_value(shape["s"], frame))
            ctx.rectangle(cx - w / 2.0, cy - h / 2.0, w, h)
        elif kind == "el":
            cx, cy = _pair(property_value(shape["p"], frame))
            w, h = _pair(property_value(shape["s"], frame))
            if w <= 0 or h <= 0:
                return
            ctx.save()
            ctx.translate(cx, cy)
            ctx.scale(w / 2.0, h / 2.0)
            ctx.new_sub_path()
            ctx.arc(0, 0, 1, 0, 2 * math.pi)
            ctx.restore()

    @staticmethod
    def _add_path(ctx, path: dict) -> None:
        vertices = path.get("v", [])
        if not vertices:
            return
        in_tangents = path.get("i") or [[0, 0]] * len(vertices)
        out_tangents = path.get("o") or [[0, 0]] * len(vertices)

        def segment(a: int, b: int) -> None:
            ax, ay = vertices[a]
            bx, by = vertices[b]
            ctx.curve_to(
                ax + out_tangents[a][0],
                ay + out_tangents[a][1],
                bx + in_tangents[b][0],
                by + in_tangents[b][1],
                bx,
                by,
            )

        ctx.move_to(*vertices[0])
        for index in range(1, len(vertices)):
            segment(index - 1, index)
        if path.get("c"):
            segment(len(vertices) - 1, 0)
            ctx.close_path()
