# Copyright (c) 2008, Aldo Cortesi <aldo@corte.si>
# Copyright (c) 2011, Andrew Grigorev <andrew@ei-grad.ru>
#
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
Loading of vector cursor themes.

A theme is a directory holding a ``theme.toml`` descriptor next to the
assets it references::

    [cursors.default]
    format = "vector"
    file = "vectors/default.svg"
    hotspot = [4, 4]

    [transitions."default->move"]
    transition_type = "cross-fade"
    duration_ms = 200
    easing = "ease-in-out"

Any problem with the descriptor, or a referenced file missing at load time,
is a LoadError and disables the vector system for that theme.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from libvcursor.definitions import (
    CursorDefinition,
    CursorFormat,
    DefinitionStore,
    LoopMode,
    TransitionDefinition,
    TransitionKind,
)
from libvcursor.easing import Easing
from libvcursor.log_utils import logger
from libvcursor.utils import CursorError

if TYPE_CHECKING:
    from typing import Any

THEME_FILE = "theme.toml"
TRANSITION_SEPARATOR = "->"

_CURSOR_KEYS = {"format", "file", "hotspot", "loop_mode"}
_TRANSITION_KEYS = {"transition_type", "file", "duration_ms", "easing"}


class ConfigError(CursorError):
    pass


class LoadError(ConfigError):
    pass


@dataclass(frozen=True)
class ConfigSnapshot:
    """Everything loaded from one theme. Replaced wholesale, never mutated."""

    theme_root: Path
    base_size: int
    store: DefinitionStore


def _enum(enum_cls, value: Any, where: str):
    if not isinstance(value, str):
        raise LoadError(f"{where}: expected a string, got {value!r}")
    try:
        return enum_cls.from_config(value) if hasattr(enum_cls, "from_config") else enum_cls(value)
    except ValueError:
        raise LoadError(f"{where}: unknown value {value!r}") from None


def _asset(theme_root: Path, value: Any, where: str) -> Path:
    if not isinstance(value, str) or not value:
        raise LoadError(f"{where}: 'file' must be a non-empty string")
    path = (theme_root / value).resolve()
    if not path.is_file():
        raise LoadError(f"{where}: {path} does not exist")
    return path


def _warn_unknown(table: dict, known: set[str], where: str) -> None:
    for key in sorted(set(table) - known):
        logger.warning("%s: ignoring unknown key '%s'", where, key)


def parse_cursor(theme_root: Path, cursor_id: str, table: Any) -> CursorDefinition:
    where = f"cursors.{cursor_id}"
    if not isinstance(table, dict):
        raise LoadError(f"{where}: expected a table")
    _warn_unknown(table, _CURSOR_KEYS, where)

    if "format" not in table:
        raise LoadError(f"{where}: 'format' is required")
    cursor_format = _enum(CursorFormat, table["format"], f"{where}.format")

    hotspot = table.get("hotspot", [0, 0])
    if (
        not isinstance(hotspot, list)
        or len(hotspot) != 2
        or not all(isinstance(v, int) and not isinstance(v, bool) for v in hotspot)
    ):
        raise LoadError(f"{where}.hotspot: expected two integers, got {hotspot!r}")

    loop_mode = LoopMode.LOOP
    if "loop_mode" in table:
        loop_mode = _enum(LoopMode, table["loop_mode"], f"{where}.loop_mode")
        if cursor_format is not CursorFormat.FRAME_ANIMATION:
            logger.debug("%s: loop_mode only applies to frame animations", where)

    return CursorDefinition(
        cursor_id,
        cursor_format,
        _asset(theme_root, table.get("file"), where),
        (hotspot[0], hotspot[1]),
        loop_mode,
    )


def parse_transition(theme_root: Path, key: str, table: Any) -> TransitionDefinition:
    where = f'transitions."{key}"'
    from_id, sep, to_id = key.partition(TRANSITION_SEPARATOR)
    from_id, to_id = from_id.strip(), to_id.strip()
    if not sep or not from_id or not to_id or TRANSITION_SEPARATOR in to_id:
        raise LoadError(f"{where}: expected a '<from>{TRANSITION_SEPARATOR}<to>' key")
    if not isinstance(table, dict):
        raise LoadError(f"{where}: expected a table")
    _warn_unknown(table, _TRANSITION_KEYS, where)

    kind = _enum(TransitionKind, table.get("transition_type", "cross-fade"), f"{where}.transition_type")
    easing = _enum(Easing, table.get("easing", Easing.EASE_IN_OUT.value), f"{where}.easing")

    duration = table.get("duration_ms", 200)
    if not isinstance(duration, int) or isinstance(duration, bool) or duration < 0:
        raise LoadError(f"{where}.duration_ms: expected a non-negative integer, got {duration!r}")

    source = None
    if kind is TransitionKind.FRAME_DRIVEN or "file" in table:
        source = _asset(theme_root, table.get("file"), where)

    return TransitionDefinition(from_id, to_id, kind, duration, easing, source)


def parse_theme(theme_root: Path, descriptor: dict) -> DefinitionStore:
    cursor_tables = descriptor.get("cursors", {})
    transition_tables = descriptor.get("transitions", {})
    if not isinstance(cursor_tables, dict) or not isinstance(transition_tables, dict):
        raise LoadError("'cursors' and 'transitions' must be tables")

    cursors = {
        cursor_id: parse_cursor(theme_root, cursor_id, table)
        for cursor_id, table in cursor_tables.items()
    }

    transitions = {}
    for key, table in transition_tables.items():
        transition = parse_transition(theme_root, key, table)
        for cursor_id in transition.key:
            if cursor_id not in cursors:
                logger.warning("Transition '%s' refers to undefined cursor '%s'", key, cursor_id)
        transitions[transition.key] = transition

    return DefinitionStore(cursors, transitions)


def load(theme_root: str | Path, base_size: int = 24) -> ConfigSnapshot:
    """Load the theme in theme_root, raising LoadError if it is unusable."""
    theme_root = Path(theme_root).expanduser()
    if isinstance(base_size, bool) or not isinstance(base_size, int) or base_size <= 0:
        raise LoadError(f"base size must be a positive integer, got {base_size!r}")

    descriptor_path = theme_root / THEME_FILE
    try:
        with open(descriptor_path, "rb") as fobj:
            descriptor = tomllib.load(fobj)
    except OSError as e:
        raise LoadError(f"Failed to read {descriptor_path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise LoadError(f"Failed to parse {descriptor_path}: {e}") from e

    store = parse_theme(theme_root, descriptor)
    logger.info(
        "Loaded cursor theme %s: %d cursors, %d transitions",
        theme_root,
        len(store.cursors),
        len(store.transitions),
    )
    logger.debug("Cursors: %s", ", ".join(sorted(store.cursors)))
    return ConfigSnapshot(theme_root, base_size, store)
