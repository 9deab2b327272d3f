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
Lazily materialized raster handles and frames.

Entries are keyed by (cursor id, scale) and frames by (entry key, frame
index). Materialization is single-flight: concurrent callers asking for the
same missing key wait for the first caller instead of decoding the asset
again. Failures are handed to every waiter and never stored, so the next
request retries from scratch.
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from libvcursor.definitions import CursorFormat
from libvcursor.log_utils import logger
from libvcursor.renderers import default_rasterizers
from libvcursor.renderers.base import RenderError, RenderErrorKind
from libvcursor.utils import scale_point, scaled_size

if TYPE_CHECKING:
    from collections.abc import Callable, Hashable
    from typing import Any

    from libvcursor.definitions import DefinitionStore
    from libvcursor.images import PixelBuffer
    from libvcursor.renderers.base import RasterHandle, RasterizerFactory


class _Flight:
    __slots__ = ("done", "result", "error")

    def __init__(self) -> None:
        self.done = threading.Event()
        self.result: Any = None
        self.error: RenderError | None = None


class CacheEntry:
    def __init__(self, key: Hashable, handle: RasterHandle) -> None:
        self.key = key
        self.handle = handle
        self.frames: dict[Hashable, PixelBuffer] = {}

    def __repr__(self):
        return f"<CacheEntry: {self.key!r}, {len(self.frames)} frames>"


class RendererCache:
    def __init__(
        self,
        store: DefinitionStore,
        base_size: int,
        rasterizers: dict[CursorFormat, RasterizerFactory] | None = None,
        decode_timeout: float | None = None,
    ) -> None:
        self.store = store
        self.base_size = base_size
        self.rasterizers = default_rasterizers() if rasterizers is None else rasterizers
        self.decode_timeout = decode_timeout

        self._lock = threading.Lock()
        self._entries: dict[Hashable, CacheEntry] = {}
        self._owners: dict[int, CacheEntry] = {}
        self._flights: dict[Hashable, _Flight] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        cursor_id, scale = key  # type: ignore
        return ("cursor", cursor_id, scale) in self._entries

    def get_or_create(self, cursor_id: str, scale: float) -> RasterHandle:
        definition = self.store.lookup_cursor(cursor_id)
        if definition is None:
            raise RenderError(RenderErrorKind.MISSING_DEFINITION, cursor_id)
        factory = self._factory(definition.format)

        def materialize() -> RasterHandle:
            return factory(
                definition.source,
                scaled_size(self.base_size, scale),
                scale_point(definition.hotspot, scale),
            )

        return self._entry(("cursor", cursor_id, scale), materialize).handle

    def get_or_create_transition(self, from_id: str, to_id: str, scale: float) -> RasterHandle:
        """The handle of a frame-driven transition asset."""
        transition = self.store.lookup_transition(from_id, to_id)
        if transition is None or transition.source is None:
            raise RenderError(RenderErrorKind.MISSING_DEFINITION, f"{from_id}->{to_id}")
        source = transition.source
        target = self.store.lookup_cursor(to_id)
        hotspot = target.hotspot if target is not None else (0, 0)
        factory = self._factory(CursorFormat.FRAME_ANIMATION)

        def materialize() -> RasterHandle:
            return factory(
                source,
                scaled_size(self.base_size, scale),
                scale_point(hotspot, scale),
            )

        return self._entry(("transition", from_id, to_id, scale), materialize).handle

    def get_frame(self, handle: RasterHandle, frame_index: int) -> PixelBuffer:
        entry = self._owners.get(id(handle))
        if entry is None or entry.handle is not handle:
            raise ValueError(f"{handle!r} was not created by this cache")
        key = (entry.key, frame_index)
        return self._single_flight(entry.frames, key, lambda: handle.render_frame(frame_index))

    def _factory(self, cursor_format: CursorFormat) -> RasterizerFactory:
        try:
            return self.rasterizers[cursor_format]
        except KeyError:
            raise RenderError(
                RenderErrorKind.DECODE_FAILED, f"no rasterizer for {cursor_format.value}"
            ) from None

    def _entry(self, key: Hashable, materialize: Callable[[], RasterHandle]) -> CacheEntry:
        def create() -> CacheEntry:
            logger.debug("Materializing %r", key)
            entry = CacheEntry(key, materialize())
            self._owners[id(entry.handle)] = entry
            return entry

        return self._single_flight(self._entries, key, create)

    def _single_flight(self, table: dict, key: Hashable, compute: Callable[[], Any]) -> Any:
        with self._lock:
            if key in table:
                return table[key]
            flight = self._flights.get(key)
            leader = flight is None
            if flight is None:
                flight = self._flights[key] = _Flight()

        if not leader:
            if not flight.done.wait(self.decode_timeout):
                raise RenderError(RenderErrorKind.DECODE_FAILED, f"timed out waiting for {key!r}")
            if flight.error is not None:
                raise flight.error
            return flight.result

        completed = False
        try:
            flight.result = compute()
            completed = True
        except RenderError as e:
            flight.error = e
            raise
        except Exception as e:
            logger.exception("Rasterizer failed for %r", key)
            flight.error = RenderError(RenderErrorKind.DECODE_FAILED, f"{key!r}: {e!r}")
            raise flight.error from e
        finally:
            if not completed and flight.error is None:
                flight.error = RenderError(RenderErrorKind.DECODE_FAILED, f"{key!r}: interrupted")
            with self._lock:
                if completed:
                    table[key] = flight.result
                del self._flights[key]
            flight.done.set()
        return flight.result
