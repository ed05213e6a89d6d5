"""
kioskprint
errors.py
---------
Typed failures raised by the analysis and composition core.

None of these are retried inside the package; the caller decides what to do
(e.g. the kiosk falls back to "1 page, color" when a document won't decode).
"""

from __future__ import annotations

from typing import Iterable


class KioskPrintError(Exception):
    """Base class for every error raised by kioskprint."""


class InvalidBuffer(KioskPrintError, ValueError):
    """Pixel data does not match the RGBA contract."""


class DecodeError(KioskPrintError):
    """A document or image could not be decoded or rendered."""


class RendererUnavailable(KioskPrintError, RuntimeError):
    """Neither PyMuPDF nor pdf2image can be imported."""


class InvalidGeometry(KioskPrintError, ValueError):
    """Zero or negative dimensions were passed to layout math."""


class InvalidSlot(KioskPrintError, ValueError):
    """A slot index outside the template's 1..slot_count range."""


class IncompleteTemplate(KioskPrintError):
    """Composition was requested with one or more slots left empty."""

    def __init__(self, template_id: str, missing: Iterable[int]):
        self.template_id = template_id
        self.missing = tuple(sorted(missing))
        slots = ", ".join(str(s) for s in self.missing)
        super().__init__(f"Template '{template_id}' is missing images for slot(s): {slots}")


class TemplateNotFound(KioskPrintError, KeyError):
    """Unknown template id."""

    def __init__(self, template_id: str):
        self.template_id = template_id
        super().__init__(template_id)

    def __str__(self) -> str:
        return f"Unknown template: {self.template_id!r}"


__all__ = [
    "KioskPrintError",
    "InvalidBuffer",
    "DecodeError",
    "RendererUnavailable",
    "InvalidGeometry",
    "InvalidSlot",
    "IncompleteTemplate",
    "TemplateNotFound",
]
