#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
kioskprint
io_pages.py
-----------
Collaborators at the edge of the core:

- PDF rendering: FitzDocument (PyMuPDF) and Pdf2ImageDocument (pdf2image +
  poppler), both exposing page_count() and render_page(index, scale) with
  1-based page indices; open_pdf picks one via choose_pdf_renderer.
- Image decoding: decode_image / load_image (Pillow) -> SourceImage.
- Canvas encoding: encode_canvas (Pillow) -> JPEG/PNG bytes.
- Size-based page estimates for Word documents.

Scale 1.0 renders at 72 dpi (one pixel per PDF point).
Anything that fails to decode raises DecodeError with the original
exception chained.
"""

from __future__ import annotations

import io
import logging
import math
import threading
from pathlib import Path
from typing import Optional, Protocol, Union

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from ..buffers import PixelBuffer, SourceImage
from ..errors import DecodeError, RendererUnavailable

logger = logging.getLogger(__name__)

PdfSource = Union[str, Path, bytes]


class DocumentHandle(Protocol):
    def page_count(self) -> int: ...

    def render_page(self, index: int, scale: float) -> PixelBuffer: ...


def _read_source(source: PdfSource) -> bytes:
    if isinstance(source, (bytes, bytearray, memoryview)):
        return bytes(source)
    return Path(source).expanduser().read_bytes()


def _check_index(index: int, count: int) -> None:
    if not 1 <= index <= count:
        raise IndexError(f"Page {index} out of range 1..{count}")


# ---------------------------- PyMuPDF backend ----------------------------

class FitzDocument:
    """
    PyMuPDF-backed document.

    A fitz.Document must not be shared across threads, so each thread that
    renders gets its own handle opened from the same bytes.
    """

    def __init__(self, data: bytes):
        import fitz  # PyMuPDF
        self._fitz = fitz
        self._data = data
        self._local = threading.local()
        self._lock = threading.Lock()
        self._opened = []
        doc = self._doc()  # fail fast on corrupt input
        if doc.needs_pass:
            self.close()
            raise DecodeError("PDF is password protected")
        self._count = doc.page_count

    def _doc(self):
        doc = getattr(self._local, "doc", None)
        if doc is None:
            try:
                doc = self._fitz.open(stream=self._data, filetype="pdf")
            except Exception as e:
                raise DecodeError(f"Could not open PDF: {e}") from e
            self._local.doc = doc
            with self._lock:
                self._opened.append(doc)
        return doc

    def page_count(self) -> int:
        return self._count

    def render_page(self, index: int, scale: float = 1.0) -> PixelBuffer:
        _check_index(index, self._count)
        try:
            page = self._doc().load_page(index - 1)
            pix = page.get_pixmap(matrix=self._fitz.Matrix(scale, scale), alpha=False)
            arr = np.frombuffer(pix.samples, dtype=np.uint8).reshape(pix.height, pix.stride)
            rgb = arr[:, : pix.width * pix.n].reshape(pix.height, pix.width, pix.n)
        except DecodeError:
            raise
        except Exception as e:
            raise DecodeError(f"Could not render page {index}: {e}") from e
        if pix.n == 1:
            rgb = rgb[:, :, 0]
        return PixelBuffer.from_array(rgb)

    def close(self) -> None:
        with self._lock:
            for doc in self._opened:
                doc.close()
            self._opened.clear()
        self._local = threading.local()

    def __enter__(self) -> "FitzDocument":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


# ---------------------------- pdf2image backend ----------------------------

class Pdf2ImageDocument:
    """pdf2image/poppler-backed document; renders one page per call."""

    def __init__(self, data: bytes):
        from pdf2image import pdfinfo_from_bytes
        self._data = data
        try:
            info = pdfinfo_from_bytes(data)
            self._count = int(info["Pages"])
        except Exception as e:
            raise DecodeError(f"Could not open PDF: {e}") from e

    def page_count(self) -> int:
        return self._count

    def render_page(self, index: int, scale: float = 1.0) -> PixelBuffer:
        from pdf2image import convert_from_bytes
        _check_index(index, self._count)
        try:
            pages = convert_from_bytes(
                self._data, dpi=72.0 * scale, first_page=index, last_page=index,
            )
        except Exception as e:
            raise DecodeError(f"Could not render page {index}: {e}") from e
        if not pages:
            raise DecodeError(f"Renderer returned no image for page {index}")
        rgb = np.array(pages[0].convert("RGB"))
        return PixelBuffer.from_array(rgb)

    def close(self) -> None:
        pass

    def __enter__(self) -> "Pdf2ImageDocument":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def choose_pdf_renderer(prefer: str = "fitz") -> str:
    """Return 'fitz' or 'pdf2image', whichever is importable (preferred first)."""
    order = ["fitz", "pdf2image"] if prefer != "pdf2image" else ["pdf2image", "fitz"]
    for name in order:
        try:
            __import__(name)
            return name
        except ImportError:
            continue
    raise RendererUnavailable(
        "No PDF renderer available. Install PyMuPDF (`pip install pymupdf`) "
        "or pdf2image + poppler."
    )


def open_pdf(source: PdfSource, renderer: str = "auto"):
    """Open a PDF from a path or bytes with the chosen backend."""
    data = _read_source(source)
    if renderer == "auto":
        renderer = choose_pdf_renderer("fitz")
    logger.debug(f"Opening PDF ({len(data)} bytes) with renderer={renderer}")
    if renderer == "fitz":
        return FitzDocument(data)
    if renderer == "pdf2image":
        return Pdf2ImageDocument(data)
    raise ValueError(f"Unknown PDF renderer: {renderer!r} (expected auto|fitz|pdf2image)")


# ---------------------------- Images ----------------------------

def decode_image(data: bytes, name: Optional[str] = None) -> SourceImage:
    """Decode JPEG/PNG bytes to an upright RGBA SourceImage."""
    try:
        with Image.open(io.BytesIO(data)) as im:
            im.load()
            upright = ImageOps.exif_transpose(im)
            rgba = np.array(upright.convert("RGBA"))
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as e:
        raise DecodeError(f"Could not decode image {name or '<bytes>'}: {e}") from e
    return SourceImage(pixels=PixelBuffer.from_array(rgba), name=name)


def load_image(path: Union[str, Path]) -> SourceImage:
    p = Path(path).expanduser()
    return decode_image(p.read_bytes(), name=p.name)


def encode_canvas(rgb: np.ndarray, fmt: str = "JPEG", quality: int = 90) -> bytes:
    """Encode an HxWx3 uint8 canvas."""
    img = Image.fromarray(np.ascontiguousarray(rgb, dtype=np.uint8))
    buf = io.BytesIO()
    if fmt.upper() in ("JPEG", "JPG"):
        img.save(buf, format="JPEG", quality=int(quality))
    else:
        img.save(buf, format=fmt.upper())
    return buf.getvalue()


# ---------------------------- Word documents ----------------------------

DOCX_BYTES_PER_PAGE = 50 * 1024
DOC_BYTES_PER_PAGE = 25 * 1024


def estimate_pages_from_size(size_bytes: int, bytes_per_page: int) -> int:
    """Rough page estimate for formats we can't render; always >= 1."""
    return max(1, math.ceil(size_bytes / bytes_per_page))
