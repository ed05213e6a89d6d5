#!/usr/bin/env python3
"""
kioskprint
layout_tools.py (helpers only)
------------------------------
Collage geometry in canvas pixels:

- fit_cover: object-cover placement of an image in a cell (CoverPlacement)
- cell_rect / cell_rects: grid cells separated by uniform padding (CellRect)

Zero or negative sizes raise InvalidGeometry.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Tuple

from ..errors import InvalidGeometry


@dataclass(frozen=True)
class CoverPlacement:
    """Where to draw a scaled image, relative to the cell's top-left corner."""
    draw_width: float
    draw_height: float
    offset_x: float
    offset_y: float

    def scale_for(self, img_w: float) -> float:
        return self.draw_width / img_w


@dataclass(frozen=True)
class CellRect:
    x: float
    y: float
    width: float
    height: float

    def to_pixels(self) -> Tuple[int, int, int, int]:
        """
        Integer (x0, y0, x1, y1) region, end-exclusive. Edges are rounded
        independently so neighbouring cells never share a pixel.
        """
        x0 = int(round(self.x))
        y0 = int(round(self.y))
        x1 = int(round(self.x + self.width))
        y1 = int(round(self.y + self.height))
        return x0, y0, x1, y1

    def contains(self, other: "CellRect") -> bool:
        return (
            self.x <= other.x
            and self.y <= other.y
            and self.x + self.width >= other.x + other.width
            and self.y + self.height >= other.y + other.height
        )


def fit_cover(img_w: float, img_h: float, cell_w: float, cell_h: float) -> CoverPlacement:
    """
    Object-cover placement of an img_w x img_h image inside a cell_w x cell_h cell.

    The returned rectangle covers the whole cell on both axes and keeps the
    image aspect ratio; it overflows on one axis, so callers must clip to the
    cell. Offsets are <= 0 and centre the overflow.
    """
    if img_w <= 0 or img_h <= 0:
        raise InvalidGeometry(f"Image must have positive size, got {img_w}x{img_h}")
    if cell_w <= 0 or cell_h <= 0:
        raise InvalidGeometry(f"Cell must have positive size, got {cell_w}x{cell_h}")

    img_aspect = img_w / img_h
    cell_aspect = cell_w / cell_h

    if img_aspect > cell_aspect:
        # wider than the cell: match heights, overflow left/right
        draw_h = float(cell_h)
        draw_w = cell_h * img_aspect
        return CoverPlacement(draw_w, draw_h, (cell_w - draw_w) / 2.0, 0.0)

    draw_w = float(cell_w)
    draw_h = cell_w / img_aspect
    return CoverPlacement(draw_w, draw_h, 0.0, (cell_h - draw_h) / 2.0)


def _axis_cell(total: float, count: int, padding: float) -> float:
    if count <= 0:
        raise InvalidGeometry(f"Grid must have positive dimensions, got {count}")
    size = (total - padding * (count + 1)) / count
    if size <= 0:
        raise InvalidGeometry(
            f"Padding {padding} leaves no room for {count} cell(s) across {total}px"
        )
    return size


def cell_rect(
    canvas_w: float, canvas_h: float,
    cols: int, rows: int,
    padding: float,
    row: int, col: int,
) -> CellRect:
    """Rectangle of grid cell (row, col) with uniform padding around every cell."""
    if canvas_w <= 0 or canvas_h <= 0:
        raise InvalidGeometry(f"Canvas must have positive size, got {canvas_w}x{canvas_h}")
    if padding < 0:
        raise InvalidGeometry(f"Padding must be >= 0, got {padding}")
    cw = _axis_cell(canvas_w, cols, padding)
    ch = _axis_cell(canvas_h, rows, padding)
    if not (0 <= row < rows and 0 <= col < cols):
        raise InvalidGeometry(f"Cell ({row}, {col}) is outside a {rows}x{cols} grid")
    return CellRect(
        x=padding + col * (cw + padding),
        y=padding + row * (ch + padding),
        width=cw,
        height=ch,
    )


def cell_rects(
    canvas_w: float, canvas_h: float,
    cols: int, rows: int,
    padding: float,
) -> List[List[CellRect]]:
    """All cell rectangles, indexed [row][col]."""
    return [
        [cell_rect(canvas_w, canvas_h, cols, rows, padding, r, c) for c in range(cols)]
        for r in range(rows)
    ]
