import io
import threading

import numpy as np
import pytest
from PIL import Image

from kioskprint.buffers import PixelBuffer


def solid_rgba(width, height, rgb, alpha=255):
    arr = np.empty((height, width, 4), dtype=np.uint8)
    arr[..., :3] = rgb
    arr[..., 3] = alpha
    return arr


class CountingDocument:
    """In-memory document handle that records every render call."""

    def __init__(self, pages, fail_on=()):
        self.pages = list(pages)
        self.fail_on = set(fail_on)
        self.render_calls = []
        self._lock = threading.Lock()

    def page_count(self):
        return len(self.pages)

    def render_page(self, index, scale):
        with self._lock:
            self.render_calls.append(index)
        if index in self.fail_on:
            raise RuntimeError(f"corrupt page {index}")
        return self.pages[index - 1]


@pytest.fixture
def gray_page():
    arr = solid_rgba(40, 30, (255, 255, 255))
    arr[5:25, 5:35, :3] = 60  # dark gray block
    return PixelBuffer.from_array(arr)


@pytest.fixture
def color_page():
    arr = solid_rgba(40, 30, (255, 255, 255))
    arr[0:10, 0:10, :3] = (220, 30, 30)  # ~8% red
    return PixelBuffer.from_array(arr)


@pytest.fixture
def make_document(gray_page, color_page):
    def _make(color_pages=(), count=5, fail_on=()):
        pages = [color_page if i in color_pages else gray_page for i in range(1, count + 1)]
        return CountingDocument(pages, fail_on=fail_on)
    return _make


@pytest.fixture
def make_pdf(tmp_path):
    """Write a PDF whose listed pages carry a filled red rectangle."""
    fitz = pytest.importorskip("fitz")

    def _make(count=3, color_pages=(), name="doc.pdf"):
        doc = fitz.open()
        for i in range(1, count + 1):
            page = doc.new_page(width=200, height=300)
            page.insert_text((20, 40), f"Page {i}", fontsize=14, color=(0, 0, 0))
            page.draw_rect(fitz.Rect(20, 60, 180, 120), color=(0, 0, 0), fill=(0.3, 0.3, 0.3))
            if i in color_pages:
                page.draw_rect(fitz.Rect(20, 150, 180, 280), color=(1, 0, 0), fill=(1, 0, 0))
        path = tmp_path / name
        doc.save(str(path))
        doc.close()
        return path

    return _make


def encode_png(arr):
    buf = io.BytesIO()
    Image.fromarray(arr).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def write_image(tmp_path):
    def _write(name, width, height, rgb, alpha=255):
        path = tmp_path / name
        path.write_bytes(encode_png(solid_rgba(width, height, rgb, alpha)))
        return path
    return _write
