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

"""Typed cursor and transition definitions, and the read-only store holding them."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from libvcursor.easing import Easing

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping
    from pathlib import Path

    from libvcursor.utils import Point


class _ConfigEnum(enum.Enum):
    """An enum parsed from a theme descriptor value, aliases included."""

    @classmethod
    def from_config(cls, value: str):
        key = value.strip().lower()
        key = cls._aliases().get(key, key)
        return cls(key)

    @classmethod
    def _aliases(cls) -> dict[str, str]:
        return {}


class CursorFormat(_ConfigEnum):
    VECTOR = "vector"
    FRAME_ANIMATION = "frame-animation"

    @classmethod
    def _aliases(cls) -> dict[str, str]:
        return {"svg": "vector", "lottie": "frame-animation"}


class LoopMode(_ConfigEnum):
    ONCE = "once"
    LOOP = "loop"
    BOUNCE = "bounce"


class TransitionKind(_ConfigEnum):
    CROSS_FADE = "cross-fade"
    TRANSFORM = "transform"
    FRAME_DRIVEN = "frame-driven"
    # reserved, rendered with the cross-fade rule
    MORPH = "morph"

    @classmethod
    def _aliases(cls) -> dict[str, str]:
        return {"crossfade": "cross-fade", "lottie": "frame-driven"}


@dataclass(frozen=True)
class CursorDefinition:
    cursor_id: str
    format: CursorFormat
    source: Path
    hotspot: Point = (0, 0)
    loop_mode: LoopMode = LoopMode.LOOP


@dataclass(frozen=True)
class TransitionDefinition:
    from_id: str
    to_id: str
    kind: TransitionKind = TransitionKind.CROSS_FADE
    duration_ms: int = 200
    easing: Easing = Easing.EASE_IN_OUT
    source: Path | None = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.from_id, self.to_id)


@dataclass(frozen=True)
class DefinitionStore:
    """
    Immutable lookup tables produced by the theme loader.

    Lookups never raise: a missing cursor or transition is reported as
    None and the caller decides whether that is fatal.
    """

    cursors: Mapping[str, CursorDefinition] = field(default_factory=dict)
    transitions: Mapping[tuple[str, str], TransitionDefinition] = field(default_factory=dict)

    def lookup_cursor(self, cursor_id: str) -> CursorDefinition | None:
        return self.cursors.get(cursor_id)

    def lookup_transition(
        self, from_id: str | None, to_id: str
    ) -> TransitionDefinition | None:
        if from_id is None:
            return None
        return self.transitions.get((from_id, to_id))

    def cursor_ids(self) -> Iterator[str]:
        return iter(self.cursors)

    def __contains__(self, cursor_id: object) -> bool:
        return cursor_id in self.cursors

    def __len__(self) -> int:
        return len(self.cursors)
