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

from dataclasses import dataclass
from typing import TYPE_CHECKING

from libvcursor import confreader, images
from libvcursor.animator import BlendRequest, CursorAnimator, CursorRequest, Static
from libvcursor.cache import RendererCache
from libvcursor.configurable import Configurable
from libvcursor.definitions import LoopMode, TransitionKind
from libvcursor.fallback import FallbackController, FallbackReason
from libvcursor.log_utils import logger
from libvcursor.renderers.base import RenderError
from libvcursor.utils import CursorError

if TYPE_CHECKING:
    from pathlib import Path

    from libvcursor.animator import AnimatorState, RenderRequest
    from libvcursor.confreader import ConfigSnapshot
    from libvcursor.definitions import CursorFormat
    from libvcursor.fallback import HostCursors
    from libvcursor.images import PixelBuffer
    from libvcursor.renderers.base import RasterizerFactory


class _TransitionAssetUnavailable(CursorError):
    pass


@dataclass(frozen=True)
class VectorSystem:
    """A loaded theme together with the cache and animator built on it."""

    config: ConfigSnapshot
    cache: RendererCache
    animator: CursorAnimator


class CursorManager(Configurable):
    """
    Decides which cursor image to show, once per output per frame.

    The host calls set_cursor (or set_platform_cursor) whenever the
    requested cursor changes, from any thread, and render(scale, now) from
    the thread owning the display pipeline. render never raises: every
    failure of the vector path ends in the host's legacy cursor.
    """

    defaults = [
        ("base_size", 24, "Base cursor size in logical pixels."),
        ("default_cursor", "default", "Cursor made live right after a theme loads."),
        ("fallback_cursor", "default", "Legacy cursor shown before any cursor was requested."),
        ("transform_start_scale", 0.5, "Initial scale of the incoming cursor in transform transitions."),
        (
            "transform_start_rotation",
            0.0,
            "Initial rotation in degrees of the incoming cursor in transform transitions.",
        ),
        (
            "decode_timeout",
            None,
            "Seconds to wait for another thread decoding the same asset, None waits forever.",
        ),
    ]

    def __init__(
        self,
        host: HostCursors,
        theme_root: str | Path | None = None,
        rasterizers: dict[CursorFormat, RasterizerFactory] | None = None,
        now: float = 0,
        **config,
    ):
        Configurable.__init__(self, **config)
        self.add_defaults(CursorManager.defaults)
        for option in self.unknown_options():
            logger.warning("Unknown cursor manager option '%s'", option)

        self.host = host
        self.rasterizers = rasterizers
        self.fallback_controller = FallbackController(host, self.base_size, self.fallback_cursor)
        self._system: VectorSystem | None = None
        self._morph_warned: set[tuple[str, str]] = set()
        if theme_root is not None:
            self.load(theme_root, now)

    @property
    def system(self) -> VectorSystem | None:
        return self._system

    @property
    def enabled(self) -> bool:
        return self._system is not None

    @property
    def state(self) -> AnimatorState:
        system = self._system
        if system is None:
            return Static()
        return system.animator.state

    def load(self, theme_root: str | Path, now: float = 0) -> bool:
        """
        Load (or reload) a vector theme, swapping it in as a whole.

        On failure the vector system is disabled and all rendering goes
        through the legacy cursors until a later load succeeds.
        """
        previous = self._system
        live_id = previous.animator.live_id if previous is not None else None
        try:
            config = confreader.load(theme_root, self.base_size)
        except confreader.LoadError as e:
            logger.warning("Failed to load vector cursor theme, using legacy cursors: %s", e)
            self._system = None
            return False

        cache = RendererCache(config.store, config.base_size, self.rasterizers, self.decode_timeout)
        system = VectorSystem(config, cache, CursorAnimator(config.store))
        for cursor_id in (live_id, self.default_cursor):
            if cursor_id is not None and cursor_id in config.store:
                system.animator.set_cursor(cursor_id, now)
                break
        else:
            logger.debug("No default cursor in %s, starting without a cursor", config.theme_root)

        self._system = system
        self._morph_warned.clear()
        return True

    reload = load

    def set_cursor(self, cursor_id: str, now: float) -> None:
        system = self._system
        if system is None or cursor_id in system.config.store:
            self.fallback_controller.note_requested(cursor_id)
        if system is not None:
            system.animator.set_cursor(cursor_id, now)

    def set_platform_cursor(self, platform_id: str, now: float) -> str | None:
        """Request a cursor by its platform name, returning the symbolic id used."""
        cursor_id = self.host.resolve_symbolic_id(platform_id)
        if cursor_id is None:
            logger.debug("No symbolic cursor for platform cursor '%s'", platform_id)
            return None
        self.set_cursor(cursor_id, now)
        return cursor_id

    def render(self, scale: float, now: float) -> PixelBuffer:
        fallback = self.fallback_controller.fallback
        system = self._system
        if system is None:
            return fallback(FallbackReason.VECTOR_SYSTEM_DISABLED, scale, now)

        request = system.animator.query(now)
        if request is None:
            return fallback(FallbackReason.NO_ACTIVE_CURSOR, scale, now)

        try:
            buffer = self._render_request(system, request, scale)
        except RenderError as e:
            return fallback(FallbackReason.from_error(e.kind), scale, now, str(e))
        except _TransitionAssetUnavailable as e:
            return fallback(FallbackReason.TRANSITION_ASSET_UNAVAILABLE, scale, now, str(e))
        except Exception as e:
            logger.exception("Unexpected error rendering %r", request)
            return fallback(FallbackReason.DECODE_FAILED, scale, now, repr(e))

        self.fallback_controller.recovered()
        return buffer

    def is_animated(self, scale: float, now: float) -> bool:
        """Whether the cursor needs redrawing on the following frames."""
        legacy_animated = self.fallback_controller.is_animated
        system = self._system
        if system is None:
            return legacy_animated(scale)
        request = system.animator.query(now)
        if request is None:
            return legacy_animated(scale)
        if isinstance(request, BlendRequest):
            return True
        if self.fallback_controller.last_reason is not None:
            # the last frame came from the legacy cursors
            return legacy_animated(scale)
        try:
            handle = system.cache.get_or_create(request.cursor_id, scale)
        except RenderError:
            return legacy_animated(scale)
        if not handle.is_animated:
            return False
        return request.loop_mode is not LoopMode.ONCE or request.elapsed < handle.duration_ms

    def _render_request(self, system: VectorSystem, request: RenderRequest, scale: float) -> PixelBuffer:
        if isinstance(request, CursorRequest):
            return self._render_cursor(system, request.cursor_id, scale, request)
        return self._render_blend(system, request, scale)

    def _render_cursor(
        self,
        system: VectorSystem,
        cursor_id: str,
        scale: float,
        request: CursorRequest | None = None,
    ) -> PixelBuffer:
        handle = system.cache.get_or_create(cursor_id, scale)
        index = 0
        if request is not None and handle.is_animated:
            index = handle.frame_index(request.phase(handle.duration_ms))
        return system.cache.get_frame(handle, index)

    def _render_blend(self, system: VectorSystem, request: BlendRequest, scale: float) -> PixelBuffer:
        progress = request.eased_progress

        if request.kind is TransitionKind.FRAME_DRIVEN:
            try:
                handle = system.cache.get_or_create_transition(request.from_id, request.to_id, scale)
                return system.cache.get_frame(handle, handle.frame_at_progress(progress))
            except RenderError as e:
                raise _TransitionAssetUnavailable(f"{request.from_id}->{request.to_id}: {e}") from e

        if request.origin is not None:
            source = self._render_blend(system, request.origin, scale)
        else:
            source = self._render_cursor(system, request.from_id, scale)
        target = self._render_cursor(system, request.to_id, scale)

        if request.kind is TransitionKind.TRANSFORM:
            return images.transform_blend(
                source,
                target,
                progress,
                self.transform_start_scale,
                self.transform_start_rotation,
            )
        if request.kind is TransitionKind.MORPH:
            key = (request.from_id, request.to_id)
            if key not in self._morph_warned:
                logger.warning("Morph transitions are not supported, cross-fading %s->%s", *key)
                self._morph_warned.add(key)
        return images.cross_fade(source, target, progress)
