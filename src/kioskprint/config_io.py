"""
kioskprint
config_io.py
------------
YAML settings loader.

All sections are optional; anything omitted keeps its built-in default
from defaults.py:

color:
  mode: channel_diff            # or channel_diff_or_saturation (aliases: basic, refined)
  color_threshold: 15
  saturation_threshold: 0.1
  percentage_threshold: 0.1

analysis:
  render_scale: 1.0
  workers: 4
  renderer: auto                # auto|fitz|pdf2image
  low_ratio: 2.0
  medium_ratio: 5.0

canvas:
  width: 1200
  height: 1800
  padding: 10
  background: [255, 255, 255]
  output_format: JPEG
  quality: 90

When the color section names a mode, its preset (basic or refined) is the
starting point and the remaining keys override it.
"""

from __future__ import annotations

import io
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .defaults import (
    ANALYSIS_DEFAULTS, CANVAS_DEFAULTS, COLOR_DEFAULTS,
    AnalysisParams, CanvasParams, ColorPolicy,
    apply_analysis_overrides, apply_canvas_overrides, apply_color_overrides,
    policy_for_mode,
)

CONFIG_ENV_VAR = "KIOSKPRINT_CONFIG"
SECTIONS = ("color", "analysis", "canvas")


@dataclass(frozen=True)
class Settings:
    """Top-level settings object."""
    color: ColorPolicy = field(default=COLOR_DEFAULTS)
    analysis: AnalysisParams = field(default=ANALYSIS_DEFAULTS)
    canvas: CanvasParams = field(default=CANVAS_DEFAULTS)


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ValueError(f"Section '{name}' must be a mapping")
    return dict(section)


def settings_from_dict(data: Optional[Dict[str, Any]], mode: Optional[str] = None) -> Settings:
    """
    Build Settings from a parsed YAML mapping. A mode given here replaces the
    file's color.mode; the file's other color keys still apply on top of it.
    """
    data = data or {}
    if not isinstance(data, dict):
        raise ValueError("Settings file must contain a mapping at the top level")
    unknown = set(data) - set(SECTIONS)
    if unknown:
        raise ValueError(f"Unknown settings sections: {sorted(unknown)}; expected {list(SECTIONS)}")

    color = _section(data, "color")
    if mode is not None:
        color["mode"] = mode
    base = policy_for_mode(color["mode"]) if "mode" in color else COLOR_DEFAULTS

    return Settings(
        color=apply_color_overrides(base, **color),
        analysis=apply_analysis_overrides(None, **_section(data, "analysis")),
        canvas=apply_canvas_overrides(None, **_section(data, "canvas")),
    )


def load_settings(path: Optional[Union[str, Path]] = None, mode: Optional[str] = None) -> Settings:
    """
    Load settings from path, else from $KIOSKPRINT_CONFIG, else defaults.
    mode (e.g. from --mode) picks the color preset under the file's color keys.
    """
    if path is None:
        path = os.environ.get(CONFIG_ENV_VAR) or None
    if path is None:
        return settings_from_dict({}, mode=mode)
    with io.open(Path(path).expanduser(), "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return settings_from_dict(data, mode=mode)


def dump_settings(settings: Settings, path: Union[str, Path]) -> None:
    """Write settings back to YAML (useful as a starting template)."""
    color = asdict(settings.color)
    color["mode"] = settings.color.mode.value
    canvas = asdict(settings.canvas)
    canvas["background"] = list(settings.canvas.background)
    data = {
        "color": color,
        "analysis": asdict(settings.analysis),
        "canvas": canvas,
    }
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(data, f, sort_keys=False)
