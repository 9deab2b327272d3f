import textwrap
import threading

import cairocffi
import pytest

from libvcursor import images
from libvcursor.definitions import CursorFormat
from libvcursor.fallback import HostCursors
from libvcursor.renderers.base import RasterHandle, RenderError
from libvcursor.xcursors import PLATFORM_NAMES

# asset file stem -> solid colour of its fake raster
COLORS = {
    "default": (1.0, 0.0, 0.0),
    "move": (0.0, 0.0, 1.0),
    "wait": (0.0, 1.0, 0.0),
    "text": (1.0, 1.0, 1.0),
    "spin": (1.0, 1.0, 0.0),
    "morph": (0.0, 1.0, 1.0),
}


def _solid(size, color, hotspot=(0, 0)):
    surface = images.new_surface(size, size)
    ctx = cairocffi.Context(surface)
    ctx.set_source_rgb(*color)
    ctx.paint()
    surface.flush()
    return images.PixelBuffer(surface, hotspot)


class FakeHandle(RasterHandle):
    def __init__(self, source, size, hotspot, frames=1, frame_ms=0):
        RasterHandle.__init__(self, source, size, hotspot)
        self.frames = frames
        self.frame_ms = frame_ms
        self.rendered = []

    @property
    def total_frames(self):
        return self.frames

    @property
    def frame_duration_ms(self):
        return self.frame_ms

    def render_frame(self, index):
        self.rendered.append(index)
        color = COLORS.get(self.source.stem, (0.5, 0.5, 0.5))
        # later frames get darker so frames are distinguishable
        shade = 1.0 - index / max(self.frames, 1) / 2
        return _solid(self.size, tuple(c * shade for c in color), self.hotspot)


class FakeRasterizer:
    """A rasterizer factory counting materializations per asset."""

    def __init__(self, frames=1, frame_ms=0):
        self.frames = frames
        self.frame_ms = frame_ms
        self.calls = []
        self.failures = {}
        self.handles = []
        self.gate = None

    def fail(self, stem, kind):
        self.failures[stem] = kind

    def heal(self, stem):
        self.failures.pop(stem, None)

    def count(self, stem):
        return sum(1 for source, _size in self.calls if source.stem == stem)

    def __call__(self, source, size, hotspot):
        self.calls.append((source, size))
        if self.gate is not None:
            self.gate.wait(5)
        if source.stem in self.failures:
            raise RenderError(self.failures[source.stem], str(source))
        handle = FakeHandle(source, size, hotspot, self.frames, self.frame_ms)
        self.handles.append(handle)
        return handle


class FakeHost(HostCursors):
    def __init__(self):
        self.calls = []
        self.millis = []
        self.buffers = {}
        self.animated = set()
        self.broken = False

    def legacy_render(self, cursor_id, scale=1, millis=0):
        self.calls.append((cursor_id, scale))
        self.millis.append(millis)
        if self.broken:
            raise RuntimeError("legacy cursors are gone")
        # animated legacy cursors flip between two frames every 100ms
        frame = int(millis // 100) % 2 if cursor_id in self.animated else 0
        key = (cursor_id, scale) if frame == 0 else (cursor_id, scale, frame)
        if key not in self.buffers:
            shade = 0.2 + 0.6 * frame
            self.buffers[key] = _solid(8, (shade, shade, shade))
        return self.buffers[key]

    def is_legacy_animated(self, cursor_id, scale=1):
        if self.broken:
            raise RuntimeError("legacy cursors are gone")
        return cursor_id in self.animated

    def resolve_symbolic_id(self, platform_id):
        return PLATFORM_NAMES.get(platform_id)


@pytest.fixture
def solid():
    """Factory of single colour PixelBuffers."""
    return _solid


@pytest.fixture
def rasterizer():
    return FakeRasterizer()


@pytest.fixture
def animated_rasterizer():
    return FakeRasterizer(frames=4, frame_ms=100)


@pytest.fixture
def rasterizers(rasterizer, animated_rasterizer):
    return {
        CursorFormat.VECTOR: rasterizer,
        CursorFormat.FRAME_ANIMATION: animated_rasterizer,
    }


@pytest.fixture
def host():
    return FakeHost()


BASIC_THEME = """
[cursors.default]
format = "vector"
file = "vectors/default.svg"
hotspot = [2, 3]

[cursors.move]
format = "vector"
file = "vectors/move.svg"

[cursors.wait]
format = "vector"
file = "vectors/wait.svg"

[cursors.text]
format = "vector"
file = "vectors/text.svg"

[cursors.spin]
format = "frame-animation"
file = "lottie/spin.json"
loop_mode = "bounce"

[transitions."default->move"]
transition_type = "cross-fade"
duration_ms = 200
easing = "ease-in-out"

[transitions."move->wait"]
transition_type = "cross-fade"
duration_ms = 100
easing = "linear"

[transitions."move->default"]
transition_type = "transform"
duration_ms = 100
easing = "linear"

[transitions."default->text"]
transition_type = "frame-driven"
file = "lottie/morph.json"
duration_ms = 300
easing = "linear"

[transitions."text->default"]
transition_type = "morph"
duration_ms = 100
easing = "linear"

[transitions."move->spin"]
transition_type = "cross-fade"
duration_ms = 100
easing = "linear"
"""

ASSETS = (
    "vectors/default.svg",
    "vectors/move.svg",
    "vectors/wait.svg",
    "vectors/text.svg",
    "lottie/spin.json",
    "lottie/morph.json",
)


@pytest.fixture
def make_theme(tmp_path):
    """Write a theme directory, returning its path."""

    def make(descriptor=BASIC_THEME, assets=ASSETS, name="theme"):
        root = tmp_path / name
        root.mkdir()
        (root / "theme.toml").write_text(textwrap.dedent(descriptor))
        for asset in assets:
            path = root / asset
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text("placeholder")
        return root

    return make


@pytest.fixture
def theme(make_theme):
    return make_theme()


@pytest.fixture
def gate():
    return threading.Event()
