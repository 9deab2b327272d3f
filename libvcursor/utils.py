# Copyright (c) 2008, Aldo Cortesi. All rights reserved.
# Copyright (c) 2020, Matt Colligan. All rights reserved.
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

from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

Point = tuple[int, int]


class CursorError(Exception):
    pass


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def scale_point(point: Point, scale: float) -> Point:
    """Scale a point given in base-size units to physical pixels."""
    return (round(point[0] * scale), round(point[1] * scale))


def scaled_size(base_size: int, scale: float) -> int:
    """The effective raster size, never smaller than a single pixel."""
    return max(round(base_size * scale), 1)


def xdg_data_dirs() -> Iterator[Path]:
    """
    Yield data directories in XDG precedence order.

    $XDG_DATA_HOME comes first, falling back to ~/.local/share, then each
    entry of $XDG_DATA_DIRS (or /usr/local/share:/usr/share).
    """
    data_home = os.path.expandvars("$XDG_DATA_HOME")
    if data_home == "$XDG_DATA_HOME":
        data_home = os.path.expanduser("~/.local/share")
    yield Path(data_home)

    data_dirs = os.environ.get("XDG_DATA_DIRS") or "/usr/local/share:/usr/share"
    for directory in data_dirs.split(":"):
        if directory:
            yield Path(directory)
