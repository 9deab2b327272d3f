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
The cursor animation state machine.

The animator holds exactly one of three states: Static (nothing selected),
Animated (one live cursor) or Transitioning (blending towards the most
recently requested cursor). Time is never read from a clock: every call
takes ``now`` in milliseconds from the caller, and a finished transition is
collapsed lazily by the next query instead of by a timer.
"""

from __future__ import annotations

import dataclasses
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING

from libvcursor.definitions import LoopMode, TransitionKind
from libvcursor.easing import Easing
from libvcursor.log_utils import logger
from libvcursor.utils import clamp

if TYPE_CHECKING:
    from libvcursor.definitions import DefinitionStore


def loop_phase(elapsed: float, duration: float, loop_mode: LoopMode) -> float:
    """Fold elapsed time into [0, duration] according to the loop policy."""
    elapsed = max(elapsed, 0.0)
    if duration <= 0:
        return 0.0
    if loop_mode is LoopMode.ONCE:
        return min(elapsed, duration)
    if loop_mode is LoopMode.BOUNCE:
        period = 2.0 * duration
        phase = elapsed % period
        return phase if phase <= duration else period - phase
    return elapsed % duration


def transition_progress(start_time: float, duration: float, now: float) -> float:
    if duration <= 0:
        return 1.0
    return clamp((now - start_time) / duration)


@dataclass(frozen=True)
class CursorRequest:
    """Draw a single cursor, elapsed milliseconds after it became live."""

    cursor_id: str
    elapsed: float
    loop_mode: LoopMode = LoopMode.LOOP

    def phase(self, native_duration: float) -> float:
        return loop_phase(self.elapsed, native_duration, self.loop_mode)

    @property
    def cursor_ids(self) -> tuple[str, ...]:
        return (self.cursor_id,)


@dataclass(frozen=True)
class BlendRequest:
    """
    Draw a transition between two cursors.

    origin, when set, is a superseded transition frozen at the moment the
    new one started; it is drawn in place of from_id.
    """

    from_id: str
    to_id: str
    kind: TransitionKind
    progress: float
    eased_progress: float
    origin: BlendRequest | None = None

    @property
    def cursor_ids(self) -> tuple[str, ...]:
        if self.origin is not None:
            return (*self.origin.cursor_ids, self.to_id)
        return (self.from_id, self.to_id)


RenderRequest = CursorRequest | BlendRequest


@dataclass(frozen=True)
class Static:
    pass


@dataclass(frozen=True)
class Animated:
    cursor_id: str
    start_time: float
    loop_mode: LoopMode = LoopMode.LOOP

    @property
    def live_id(self) -> str:
        return self.cursor_id


@dataclass(frozen=True)
class Transitioning:
    from_id: str
    to_id: str
    start_time: float
    duration: float
    kind: TransitionKind
    easing: Easing
    loop_mode: LoopMode = LoopMode.LOOP
    origin: BlendRequest | None = None

    @property
    def live_id(self) -> str:
        return self.to_id

    def progress(self, now: float) -> float:
        return transition_progress(self.start_time, self.duration, now)

    def blend(self, now: float) -> BlendRequest:
        progress = self.progress(now)
        return BlendRequest(
            self.from_id,
            self.to_id,
            self.kind,
            progress,
            self.easing(progress),
            self.origin,
        )


AnimatorState = Static | Animated | Transitioning


def advance(state: AnimatorState, now: float) -> tuple[AnimatorState, RenderRequest | None]:
    """
    Derive what to draw at now.

    Returns the (possibly collapsed) new state alongside the request. A
    transition which has run its course becomes Animated, anchored at now,
    so the destination starts its own animation from the first frame.
    """
    if isinstance(state, Animated):
        return state, CursorRequest(state.cursor_id, max(now - state.start_time, 0.0), state.loop_mode)
    if isinstance(state, Transitioning):
        if state.progress(now) >= 1.0:
            collapsed = Animated(state.to_id, now, state.loop_mode)
            return advance(collapsed, now)
        return state, state.blend(now)
    return state, None


def request_cursor(
    state: AnimatorState, store: DefinitionStore, cursor_id: str, now: float
) -> AnimatorState:
    """The state following a request for cursor_id at now."""
    definition = store.lookup_cursor(cursor_id)
    if definition is None:
        return state
    if isinstance(state, Static):
        return Animated(cursor_id, now, definition.loop_mode)
    if state.live_id == cursor_id:
        return state

    transition = store.lookup_transition(state.live_id, cursor_id)
    if transition is None:
        return Animated(cursor_id, now, definition.loop_mode)

    origin = None
    if isinstance(state, Transitioning) and state.progress(now) < 1.0:
        # only one level of history is kept
        origin = dataclasses.replace(state.blend(now), origin=None)
    return Transitioning(
        state.live_id,
        cursor_id,
        now,
        transition.duration_ms,
        transition.kind,
        transition.easing,
        definition.loop_mode,
        origin,
    )


class CursorAnimator:
    """
    Thread safe holder of the animator state.

    set_cursor may be called from an input thread while query runs on the
    render thread, a single lock serializes both.
    """

    def __init__(self, store: DefinitionStore) -> None:
        self.store = store
        self._lock = threading.Lock()
        self._state: AnimatorState = Static()

    @property
    def state(self) -> AnimatorState:
        with self._lock:
            return self._state

    @property
    def live_id(self) -> str | None:
        state = self.state
        if isinstance(state, Static):
            return None
        return state.live_id

    def set_cursor(self, cursor_id: str, now: float) -> None:
        with self._lock:
            old = self._state
            new = request_cursor(old, self.store, cursor_id, now)
            self._state = new

        if new is old:
            if cursor_id not in self.store:
                logger.debug("Ignoring unknown cursor '%s'", cursor_id)
            return
        logger.debug("Cursor state %r -> %r", old, new)

    def query(self, now: float) -> RenderRequest | None:
        with self._lock:
            old = self._state
            new, request = advance(old, now)
            self._state = new
        if new is not old:
            logger.debug("Transition to '%s' complete", request.cursor_id)  # type: ignore
        return request

    def clear(self) -> None:
        with self._lock:
            self._state = Static()
