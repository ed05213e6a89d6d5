#!/usr/bin/env python3
"""
kioskprint
defaults.py
-----------
Single source of truth for tunable parameters.

Every knob the analyzer and compositor read lives in one of the frozen
parameter packs below. The CLI, the YAML loader (config_io.py) and library
callers all go through the apply_*_overrides helpers, which ignore None values
so "not given" always means "use the default".

Packs:
  - ColorPolicy     pixel classifier thresholds (+ BASIC_POLICY / REFINED_POLICY)
  - AnalysisParams  page rendering and confidence banding
  - CanvasParams    collage canvas size, padding and output encoding
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Optional, Tuple


class ThresholdMode(str, Enum):
    CHANNEL_DIFF = "channel_diff"
    CHANNEL_DIFF_OR_SATURATION = "channel_diff_or_saturation"

    @classmethod
    def parse(cls, value: Any) -> "ThresholdMode":
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        aliases = {"basic": cls.CHANNEL_DIFF, "refined": cls.CHANNEL_DIFF_OR_SATURATION}
        if key in aliases:
            return aliases[key]
        try:
            return cls(key)
        except ValueError:
            raise ValueError(
                f"Unknown threshold mode {value!r}; expected one of "
                f"{[m.value for m in cls]} (or 'basic'/'refined')"
            ) from None


# ---------------------------------------------------------------------------
# Color classification
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ColorPolicy:
    mode: ThresholdMode = ThresholdMode.CHANNEL_DIFF
    color_threshold: int = 15            # max |r-g|,|g-b|,|r-b| above this = colored
    saturation_threshold: float = 0.1    # HSL S above this = colored (refined mode only)
    percentage_threshold: float = 0.1    # % of considered pixels needed to call a page color
    alpha_cutoff: int = 128              # pixels with alpha below this are ignored


BASIC_POLICY = ColorPolicy()
REFINED_POLICY = ColorPolicy(
    mode=ThresholdMode.CHANNEL_DIFF_OR_SATURATION,
    color_threshold=25,
    saturation_threshold=0.1,
    percentage_threshold=0.5,
)
COLOR_DEFAULTS = BASIC_POLICY


def policy_for_mode(mode: Any) -> ColorPolicy:
    """Return the preset policy matching a mode name ('basic', 'refined', ...)."""
    m = ThresholdMode.parse(mode)
    return REFINED_POLICY if m is ThresholdMode.CHANNEL_DIFF_OR_SATURATION else BASIC_POLICY


def apply_color_overrides(base: Optional[ColorPolicy] = None, **overrides: Any) -> ColorPolicy:
    base = base or COLOR_DEFAULTS
    kw = {k: v for k, v in overrides.items() if v is not None}
    unknown = set(kw) - set(ColorPolicy.__dataclass_fields__)
    if unknown:
        raise ValueError(f"Unknown color settings: {sorted(unknown)}")
    if "mode" in kw:
        kw["mode"] = ThresholdMode.parse(kw["mode"])
    policy = replace(base, **kw)

    if not 0 <= int(policy.color_threshold) <= 255:
        raise ValueError("color_threshold must be within 0..255")
    if not 0.0 <= float(policy.saturation_threshold) <= 1.0:
        raise ValueError("saturation_threshold must be within 0..1")
    if not 0.0 < float(policy.percentage_threshold) < 100.0:
        raise ValueError("percentage_threshold must be within (0, 100)")
    if not 0 <= int(policy.alpha_cutoff) <= 256:
        raise ValueError("alpha_cutoff must be within 0..256")
    return policy


# ---------------------------------------------------------------------------
# Page analysis
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AnalysisParams:
    render_scale: float = 1.0   # 1.0 == 72 dpi
    workers: int = 1            # >1 renders/classifies pages on a thread pool
    renderer: str = "auto"      # auto|fitz|pdf2image
    low_ratio: float = 2.0      # margin (x threshold) below which confidence is LOW
    medium_ratio: float = 5.0   # ... below which it is MEDIUM, else HIGH


ANALYSIS_DEFAULTS = AnalysisParams()

PDF_RENDERERS = ("auto", "fitz", "pdf2image")


def apply_analysis_overrides(base: Optional[AnalysisParams] = None, **overrides: Any) -> AnalysisParams:
    base = base or ANALYSIS_DEFAULTS
    kw = {k: v for k, v in overrides.items() if v is not None}
    unknown = set(kw) - set(AnalysisParams.__dataclass_fields__)
    if unknown:
        raise ValueError(f"Unknown analysis settings: {sorted(unknown)}")
    params = replace(base, **kw)

    if float(params.render_scale) <= 0:
        raise ValueError("render_scale must be > 0")
    if int(params.workers) < 1:
        raise ValueError("workers must be >= 1")
    if params.renderer not in PDF_RENDERERS:
        raise ValueError(f"renderer must be one of {PDF_RENDERERS}")
    if not 1.0 <= float(params.low_ratio) <= float(params.medium_ratio):
        raise ValueError("confidence ratios must satisfy 1 <= low_ratio <= medium_ratio")
    return params


# ---------------------------------------------------------------------------
# Collage canvas
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CanvasParams:
    width: int = 1200
    height: int = 1800
    padding: int = 10
    background: Tuple[int, int, int] = (255, 255, 255)
    output_format: str = "JPEG"   # JPEG|PNG
    quality: int = 90             # JPEG only


CANVAS_DEFAULTS = CanvasParams()

OUTPUT_FORMATS = ("JPEG", "PNG")


def apply_canvas_overrides(base: Optional[CanvasParams] = None, **overrides: Any) -> CanvasParams:
    base = base or CANVAS_DEFAULTS
    kw = {k: v for k, v in overrides.items() if v is not None}
    unknown = set(kw) - set(CanvasParams.__dataclass_fields__)
    if unknown:
        raise ValueError(f"Unknown canvas settings: {sorted(unknown)}")
    if "output_format" in kw:
        fmt = str(kw["output_format"]).upper()
        kw["output_format"] = "JPEG" if fmt == "JPG" else fmt
    if "background" in kw:
        kw["background"] = tuple(int(c) for c in kw["background"])
    params = replace(base, **kw)

    if int(params.width) <= 0 or int(params.height) <= 0:
        raise ValueError("canvas width and height must be > 0")
    if int(params.padding) < 0:
        raise ValueError("padding must be >= 0")
    if len(params.background) != 3 or any(not 0 <= c <= 255 for c in params.background):
        raise ValueError("background must be three 0..255 values (R,G,B)")
    if params.output_format not in OUTPUT_FORMATS:
        raise ValueError(f"output_format must be one of {OUTPUT_FORMATS}")
    if not 1 <= int(params.quality) <= 100:
        raise ValueError("quality must be within 1..100")
    return params


__all__ = [
    "ThresholdMode",
    "ColorPolicy",
    "BASIC_POLICY",
    "REFINED_POLICY",
    "COLOR_DEFAULTS",
    "policy_for_mode",
    "apply_color_overrides",
    "AnalysisParams",
    "ANALYSIS_DEFAULTS",
    "PDF_RENDERERS",
    "apply_analysis_overrides",
    "CanvasParams",
    "CANVAS_DEFAULTS",
    "OUTPUT_FORMATS",
    "apply_canvas_overrides",
]
