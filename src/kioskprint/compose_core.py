#!/usr/bin/env python3
"""
kioskprint
compose_core.py - template-driven photo collage compositor

Lays 1-4 photos into a fixed portrait canvas:
 - canvas filled opaque with the background color (white)
 - template grid cells separated by uniform padding
 - each photo cover-fitted to its cell (aspect preserved, overflow cropped)
 - photos with transparency are blended over the background
 - final canvas encoded once (JPEG quality 90 by default)

Exports:
  - Compositor(params).compose(template, slots, ...) -> CompositeImage
  - compose_files(template_id, image_paths, out_path, params=None) -> CompositeImage
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Sequence, Tuple, Union

import cv2
import numpy as np

from .buffers import PixelBuffer, SourceImage
from .defaults import CANVAS_DEFAULTS, CanvasParams, apply_canvas_overrides
from .errors import IncompleteTemplate, InvalidSlot
from .templates import Template, get_template
from .tools import io_pages as IO
from .tools.layout_tools import CellRect, cell_rect, fit_cover

logger = logging.getLogger(__name__)

SlotAssignment = Mapping[int, SourceImage]


@dataclass(frozen=True)
class CompositeImage:
    """Encoded collage plus the raw canvas it was encoded from."""
    width: int
    height: int
    data: bytes
    format: str
    canvas: PixelBuffer

    @property
    def mime_type(self) -> str:
        return "image/jpeg" if self.format == "JPEG" else f"image/{self.format.lower()}"

    def save(self, path: Union[str, Path]) -> Path:
        p = Path(path)
        p.write_bytes(self.data)
        return p


# ----------------------------
# Drawing helpers
# ----------------------------

def _scaled(rgba: np.ndarray, size: Tuple[int, int]) -> np.ndarray:
    w, h = size
    src_h, src_w = rgba.shape[:2]
    if (w, h) == (src_w, src_h):
        return rgba
    shrinking = w < src_w or h < src_h
    interp = cv2.INTER_AREA if shrinking else cv2.INTER_LINEAR
    return cv2.resize(rgba, (w, h), interpolation=interp)


def _blend_into(region: np.ndarray, tile_rgba: np.ndarray) -> None:
    """Write tile over region in place, honouring straight alpha."""
    alpha = tile_rgba[..., 3]
    if np.all(alpha == 255):
        region[...] = tile_rgba[..., :3]
        return
    a = alpha[..., None].astype(np.float32) / 255.0
    out = tile_rgba[..., :3].astype(np.float32) * a + region.astype(np.float32) * (1.0 - a)
    region[...] = np.clip(np.rint(out), 0, 255).astype(np.uint8)


def draw_cover(canvas: np.ndarray, image: SourceImage, rect: CellRect) -> None:
    """
    Cover-fit image into rect on canvas (HxWx3), clipped to the rect.
    The source image is only read.
    """
    x0, y0, x1, y1 = rect.to_pixels()
    cw, ch = x1 - x0, y1 - y0
    placement = fit_cover(image.width, image.height, cw, ch)
    scale = placement.scale_for(image.width)

    # crop in source coordinates; the resize never exceeds the cell
    sx0, sx1 = _source_window(-placement.offset_x / scale, cw / scale, image.width)
    sy0, sy1 = _source_window(-placement.offset_y / scale, ch / scale, image.height)
    window = image.pixels.as_array()[sy0:sy1, sx0:sx1]
    tile = _scaled(window, (cw, ch))
    _blend_into(canvas[y0:y1, x0:x1], tile)


def _source_window(start: float, length: float, limit: int) -> Tuple[int, int]:
    """Integer [lo, hi) source span covering start..start+length, at least one pixel."""
    def snap(v: float) -> float:
        r = round(v)
        return r if abs(v - r) < 1e-6 else v

    lo = min(max(int(math.floor(snap(start))), 0), limit - 1)
    hi = min(max(int(math.ceil(snap(start + length))), lo + 1), limit)
    return lo, hi


# ----------------------------
# Compositor
# ----------------------------

class Compositor:
    def __init__(self, params: Optional[CanvasParams] = None):
        self.params = params or CANVAS_DEFAULTS

    @staticmethod
    def check_slots(template: Template, slots: SlotAssignment) -> None:
        unknown = sorted(s for s in slots if s not in template.slot_positions)
        if unknown:
            raise InvalidSlot(
                f"Template '{template.template_id}' has slots 1..{template.slot_count}; got {unknown}"
            )
        missing = [s for s in template.slots if s not in slots]
        if missing:
            raise IncompleteTemplate(template.template_id, missing)

    def compose(
        self,
        template: Template,
        slots: SlotAssignment,
        canvas_width: Optional[int] = None,
        canvas_height: Optional[int] = None,
        padding: Optional[int] = None,
    ) -> CompositeImage:
        params = apply_canvas_overrides(
            self.params, width=canvas_width, height=canvas_height, padding=padding,
        )
        self.check_slots(template, slots)

        width, height = int(params.width), int(params.height)
        canvas = np.empty((height, width, 3), dtype=np.uint8)
        canvas[...] = np.array(params.background, dtype=np.uint8)

        # cells are disjoint, so order doesn't matter
        for slot in template.slots:
            row, col = template.position(slot)
            rect = cell_rect(
                width, height, template.grid_cols, template.grid_rows,
                params.padding, row, col,
            )
            logger.debug(
                f"slot {slot} -> cell ({row},{col}) at "
                f"{rect.to_pixels()} from {slots[slot]}"
            )
            draw_cover(canvas, slots[slot], rect)

        data = IO.encode_canvas(canvas, params.output_format, params.quality)
        logger.info(
            f"Composed '{template.template_id}' {width}x{height} "
            f"{params.output_format} ({len(data)} bytes)"
        )
        return CompositeImage(
            width=width,
            height=height,
            data=data,
            format=params.output_format,
            canvas=PixelBuffer.from_array(canvas),
        )


def compose_files(
    template_id: str,
    image_paths: Sequence[Union[str, Path]],
    out_path: Optional[Union[str, Path]] = None,
    params: Optional[CanvasParams] = None,
) -> CompositeImage:
    """Decode image files into slots 1..N in the given order, compose, optionally write."""
    template = get_template(template_id)
    if len(image_paths) > template.slot_count:
        raise InvalidSlot(
            f"Template '{template_id}' takes {template.slot_count} image(s), got {len(image_paths)}"
        )
    slots = {i: IO.load_image(p) for i, p in enumerate(image_paths, start=1)}
    result = Compositor(params).compose(template, slots)
    if out_path is not None:
        result.save(out_path)
    return result
