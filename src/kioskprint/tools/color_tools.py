#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
kioskprint
color_tools.py (helpers only)
-----------------------------
Pixel-level color detection primitives:

- Per-pixel tests: channel_max_diff, rgb_to_hsl_saturation
- Page measurement: measure_color -> ColorStats, classify -> bool
- Confidence banding of a measured percentage: confidence_band

This is a cheap heuristic, not color segmentation. A page is "color" only
when the share of colored pixels clears percentage_threshold, so a few
anti-aliased or JPEG-artifact pixels cannot flip a grayscale page.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

import numpy as np

from ..buffers import PixelBuffer
from ..defaults import COLOR_DEFAULTS, ANALYSIS_DEFAULTS, ColorPolicy, ThresholdMode
from ..errors import InvalidBuffer


class Confidence(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


@dataclass(frozen=True)
class ColorStats:
    """Result of measuring one pixel buffer."""
    considered: int     # pixels with alpha >= cutoff
    colored: int        # considered pixels that tripped the policy
    percentage: float   # colored / considered * 100 (0.0 when nothing considered)
    is_color: bool

    def to_dict(self) -> dict:
        return {
            "considered": self.considered,
            "colored": self.colored,
            "percentage": round(self.percentage, 4),
            "is_color": self.is_color,
        }


# ---------------------------- Per-pixel tests ----------------------------

def _rgba_view(buffer: Union[PixelBuffer, np.ndarray]) -> np.ndarray:
    if isinstance(buffer, PixelBuffer):
        return buffer.as_array()
    arr = np.asarray(buffer)
    if arr.dtype != np.uint8:
        raise InvalidBuffer(f"Expected uint8 pixels, got {arr.dtype}")
    if arr.ndim == 1:
        if arr.size % 4 != 0:
            raise InvalidBuffer(f"RGBA buffer length {arr.size} is not a multiple of 4")
        return arr.reshape(-1, 1, 4)
    if arr.ndim != 3 or arr.shape[2] != 4:
        raise InvalidBuffer(f"Expected HxWx4 RGBA pixels, got shape {arr.shape}")
    return arr


def channel_max_diff(rgb: np.ndarray) -> np.ndarray:
    """max(|r-g|, |g-b|, |r-b|) per pixel, as int16. Equals max(rgb) - min(rgb)."""
    c = rgb.astype(np.int16)
    return c.max(axis=-1) - c.min(axis=-1)


def rgb_to_hsl_saturation(rgb: np.ndarray) -> np.ndarray:
    """
    HSL saturation (0..1) for uint8 RGB pixels.

    S = d / (mx + mn)        when lightness <= 0.5
    S = d / (510 - mx - mn)  otherwise
    with d = mx - mn on the 0..255 scale; achromatic pixels (d == 0) are 0.
    """
    c = rgb.astype(np.int32)
    mx = c.max(axis=-1)
    mn = c.min(axis=-1)
    d = (mx - mn).astype(np.float64)
    total = mx + mn
    denom = np.where(total > 255, 510 - total, total).astype(np.float64)
    sat = np.zeros_like(d)
    np.divide(d, denom, out=sat, where=(d > 0) & (denom > 0))
    return sat


def colored_mask(rgb: np.ndarray, policy: ColorPolicy = COLOR_DEFAULTS) -> np.ndarray:
    """Boolean mask of pixels the policy calls colored (alpha not considered)."""
    mask = channel_max_diff(rgb) > int(policy.color_threshold)
    if policy.mode is ThresholdMode.CHANNEL_DIFF_OR_SATURATION:
        mask |= rgb_to_hsl_saturation(rgb) > float(policy.saturation_threshold)
    return mask


# ---------------------------- Page measurement ----------------------------

def measure_color(
    buffer: Union[PixelBuffer, np.ndarray],
    policy: ColorPolicy = COLOR_DEFAULTS,
) -> ColorStats:
    """Count considered/colored pixels in an RGBA buffer and apply the percentage gate."""
    rgba = _rgba_view(buffer)
    opaque = rgba[..., 3] >= int(policy.alpha_cutoff)
    considered = int(np.count_nonzero(opaque))
    if considered == 0:
        return ColorStats(considered=0, colored=0, percentage=0.0, is_color=False)

    rgb = rgba[..., :3][opaque]
    colored = int(np.count_nonzero(colored_mask(rgb, policy)))
    pct = colored / considered * 100.0
    return ColorStats(
        considered=considered,
        colored=colored,
        percentage=pct,
        is_color=pct > float(policy.percentage_threshold),
    )


def classify(buffer: Union[PixelBuffer, np.ndarray], policy: ColorPolicy = COLOR_DEFAULTS) -> bool:
    """True when the buffer should be billed as color."""
    return measure_color(buffer, policy).is_color


# ---------------------------- Confidence ----------------------------

def confidence_band(
    percentage: float,
    threshold: float,
    low_ratio: Optional[float] = None,
    medium_ratio: Optional[float] = None,
) -> Confidence:
    """
    Band how far a measured percentage sits from the decision threshold.

    The margin is a ratio: pct/threshold above the threshold, threshold/pct
    at or below it (infinite for 0 %). Below low_ratio -> LOW, below
    medium_ratio -> MEDIUM, else HIGH.
    """
    low_ratio = ANALYSIS_DEFAULTS.low_ratio if low_ratio is None else low_ratio
    medium_ratio = ANALYSIS_DEFAULTS.medium_ratio if medium_ratio is None else medium_ratio
    if threshold <= 0:
        raise ValueError("threshold must be > 0")

    if percentage > threshold:
        margin = percentage / threshold
    elif percentage <= 0:
        margin = float("inf")
    else:
        margin = threshold / percentage

    if margin < low_ratio:
        return Confidence.LOW
    if margin < medium_ratio:
        return Confidence.MEDIUM
    return Confidence.HIGH


__all__ = [
    "Confidence",
    "ColorStats",
    "channel_max_diff",
    "rgb_to_hsl_saturation",
    "colored_mask",
    "measure_color",
    "classify",
    "confidence_band",
]
