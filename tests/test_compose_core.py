import io

import numpy as np
import pytest
from PIL import Image

from conftest import solid_rgba
from kioskprint.buffers import PixelBuffer, SourceImage
from kioskprint.compose_core import Compositor, compose_files
from kioskprint.defaults import apply_canvas_overrides
from kioskprint.errors import DecodeError, IncompleteTemplate, InvalidSlot, TemplateNotFound
from kioskprint.templates import get_template
from kioskprint.tools.layout_tools import cell_rect


def _image(w, h, rgb, alpha=255, name=None):
    return SourceImage(PixelBuffer.from_array(solid_rgba(w, h, rgb, alpha)), name=name)


def test_quad_grid_with_missing_slot_is_incomplete():
    template = get_template("quad_grid")
    slots = {i: _image(50, 50, (10, 20, 30)) for i in (1, 2, 4)}
    with pytest.raises(IncompleteTemplate) as exc:
        Compositor().compose(template, slots)
    assert exc.value.missing == (3,)


def test_quad_grid_complete_produces_reference_canvas():
    template = get_template("quad_grid")
    slots = {i: _image(64, 48, (200, 100, 50)) for i in range(1, 5)}
    result = Compositor().compose(template, slots)
    assert (result.width, result.height) == (1200, 1800)
    assert result.format == "JPEG"
    assert result.data[:2] == b"\xff\xd8"
    with Image.open(io.BytesIO(result.data)) as im:
        assert im.size == (1200, 1800)
    assert (result.canvas.width, result.canvas.height) == (1200, 1800)


def test_slot_outside_template_is_rejected():
    template = get_template("single")
    with pytest.raises(InvalidSlot):
        Compositor().compose(template, {1: _image(5, 5, (0, 0, 0)), 2: _image(5, 5, (0, 0, 0))})


@pytest.mark.parametrize("template_id", ["single", "double_vertical", "quad_grid"])
def test_uniform_images_fill_cell_interiors_exactly(template_id):
    template = get_template(template_id)
    color = (12, 180, 99)
    slots = {i: _image(30, 30, color) for i in template.slots}
    result = Compositor().compose(template, slots)
    canvas = result.canvas.as_array()[..., :3]

    covered = np.zeros(canvas.shape[:2], dtype=bool)
    for slot in template.slots:
        row, col = template.position(slot)
        x0, y0, x1, y1 = cell_rect(1200, 1800, template.grid_cols, template.grid_rows, 10, row, col).to_pixels()
        assert np.all(canvas[y0:y1, x0:x1] == color)
        covered[y0:y1, x0:x1] = True
    # padding strips stay white
    assert np.all(canvas[~covered] == 255)


def test_wide_photo_is_center_cropped():
    # left third red, middle third green, right third blue
    arr = solid_rgba(300, 100, (0, 255, 0))
    arr[:, :100, :3] = (255, 0, 0)
    arr[:, 200:, :3] = (0, 0, 255)
    template = get_template("single")
    result = Compositor(apply_canvas_overrides(width=100, height=100, padding=0)).compose(
        template, {1: SourceImage(PixelBuffer.from_array(arr))}
    )
    canvas = result.canvas.as_array()
    # a square cell over a 3:1 photo shows only the middle third
    assert np.all(canvas[:, 5:95, 1] > 200)
    assert np.all(canvas[:, 5:95, 0] < 50)
    assert np.all(canvas[:, 5:95, 2] < 50)


def test_thin_strip_fills_cell_without_oversized_resize(monkeypatch):
    from kioskprint import compose_core

    sizes = []
    real_scaled = compose_core._scaled

    def recording_scaled(rgba, size):
        sizes.append(size)
        return real_scaled(rgba, size)

    monkeypatch.setattr(compose_core, "_scaled", recording_scaled)
    color = (40, 90, 160)
    result = Compositor().compose(get_template("single"), {1: _image(1, 2000, color)})

    x0, y0, x1, y1 = cell_rect(1200, 1800, 1, 1, 10, 0, 0).to_pixels()
    canvas = result.canvas.as_array()[..., :3]
    assert np.all(canvas[y0:y1, x0:x1] == color)
    assert sizes == [(x1 - x0, y1 - y0)]


def test_wide_strip_keeps_its_centre():
    arr = solid_rgba(3000, 3, (255, 0, 0))
    arr[:, 1000:2000, :3] = (0, 0, 255)
    result = Compositor(apply_canvas_overrides(width=60, height=60, padding=0)).compose(
        get_template("single"), {1: SourceImage(PixelBuffer.from_array(arr))}
    )
    assert np.all(result.canvas.as_array()[..., :3] == (0, 0, 255))


def test_transparent_photo_blends_over_white_background():
    template = get_template("single")
    result = Compositor(apply_canvas_overrides(width=40, height=40, padding=0)).compose(
        template, {1: _image(10, 10, (0, 0, 0), alpha=0)}
    )
    assert np.all(result.canvas.as_array()[..., :3] == 255)


def test_source_images_are_not_mutated():
    img = _image(20, 10, (1, 2, 3))
    before = img.pixels.data
    Compositor().compose(get_template("single"), {1: img})
    assert img.pixels.data == before


def test_per_call_canvas_overrides():
    template = get_template("double_vertical")
    slots = {1: _image(8, 8, (0, 0, 0)), 2: _image(8, 8, (255, 0, 0))}
    result = Compositor().compose(template, slots, canvas_width=300, canvas_height=450, padding=0)
    canvas = result.canvas.as_array()
    assert (result.width, result.height) == (300, 450)
    assert tuple(canvas[100, 150, :3]) == (0, 0, 0)
    assert tuple(canvas[350, 150, :3]) == (255, 0, 0)


def test_png_output():
    params = apply_canvas_overrides(width=60, height=90, output_format="png")
    result = Compositor(params).compose(get_template("single"), {1: _image(4, 4, (9, 9, 9))})
    assert result.format == "PNG"
    assert result.mime_type == "image/png"
    assert result.data.startswith(b"\x89PNG")


def test_compose_files_writes_output(write_image, tmp_path):
    paths = [write_image(f"p{i}.png", 40 + i, 30, (i * 40, 10, 10)) for i in range(1, 5)]
    out = tmp_path / "collage.jpg"
    result = compose_files("quad_grid", paths, out)
    assert out.read_bytes() == result.data
    with Image.open(out) as im:
        assert im.size == (1200, 1800)


def test_compose_files_errors(write_image, tmp_path):
    a = write_image("a.png", 10, 10, (0, 0, 0))
    with pytest.raises(TemplateNotFound):
        compose_files("mosaic", [a])
    with pytest.raises(IncompleteTemplate):
        compose_files("double_vertical", [a])
    with pytest.raises(InvalidSlot):
        compose_files("single", [a, a])

    junk = tmp_path / "junk.jpg"
    junk.write_bytes(b"not an image")
    with pytest.raises(DecodeError):
        compose_files("single", [junk])
