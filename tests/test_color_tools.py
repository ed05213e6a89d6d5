import numpy as np
import pytest

from conftest import solid_rgba
from kioskprint.buffers import PixelBuffer
from kioskprint.defaults import BASIC_POLICY, REFINED_POLICY, apply_color_overrides
from kioskprint.errors import InvalidBuffer
from kioskprint.tools.color_tools import (
    Confidence,
    channel_max_diff,
    classify,
    confidence_band,
    measure_color,
    rgb_to_hsl_saturation,
)


def test_fully_transparent_buffer_is_not_color():
    arr = solid_rgba(10, 10, (255, 0, 0), alpha=127)
    stats = measure_color(PixelBuffer.from_array(arr))
    assert stats.considered == 0
    assert stats.percentage == 0.0
    assert stats.is_color is False


@pytest.mark.parametrize("policy", [BASIC_POLICY, REFINED_POLICY])
@pytest.mark.parametrize("threshold", [0, 1, 15, 100])
def test_pure_grayscale_is_never_color(policy, threshold):
    rng = np.random.default_rng(7)
    levels = rng.integers(0, 256, size=(20, 20), dtype=np.uint8)
    arr = solid_rgba(20, 20, (0, 0, 0))
    arr[..., 0] = arr[..., 1] = arr[..., 2] = levels
    policy = apply_color_overrides(policy, color_threshold=threshold)
    assert classify(PixelBuffer.from_array(arr), policy) is False


@pytest.mark.parametrize("policy", [BASIC_POLICY, REFINED_POLICY])
def test_one_percent_colored_pixels_is_color(policy):
    arr = solid_rgba(100, 10, (250, 250, 250))
    arr[0, :10, :3] = (200, 40, 40)  # 10 of 1000 pixels
    stats = measure_color(PixelBuffer.from_array(arr), policy)
    assert stats.colored == 10
    assert stats.percentage == pytest.approx(1.0)
    assert stats.is_color


def test_a_few_artifact_pixels_do_not_flip_a_gray_page():
    arr = solid_rgba(100, 100, (128, 128, 128))
    arr[0, :5, :3] = (150, 120, 120)  # 0.05% slightly tinted
    assert classify(PixelBuffer.from_array(arr), BASIC_POLICY) is False


def test_transparent_pixels_are_excluded_from_the_denominator():
    arr = solid_rgba(10, 10, (255, 255, 255), alpha=0)
    arr[0, 0] = (255, 0, 0, 255)
    arr[0, 1] = (255, 255, 255, 255)
    stats = measure_color(PixelBuffer.from_array(arr))
    assert stats.considered == 2
    assert stats.percentage == pytest.approx(50.0)


def test_alpha_cutoff_is_inclusive_at_128():
    arr = solid_rgba(2, 1, (255, 0, 0))
    arr[0, 0, 3] = 128
    arr[0, 1, 3] = 127
    assert measure_color(PixelBuffer.from_array(arr)).considered == 1


def test_saturation_trips_refined_mode_only():
    # Low channel divergence (diff 12) but clearly saturated near black.
    arr = solid_rgba(10, 10, (20, 8, 8))
    buf = PixelBuffer.from_array(arr)
    assert classify(buf, BASIC_POLICY) is False
    assert classify(buf, REFINED_POLICY) is True


def test_channel_max_diff_matches_pairwise_definition():
    rgb = np.array([[10, 200, 90], [5, 5, 5], [255, 0, 128]], dtype=np.uint8)
    assert channel_max_diff(rgb).tolist() == [190, 0, 255]


def test_hsl_saturation_values():
    rgb = np.array([[255, 0, 0], [128, 128, 128], [0, 0, 0], [255, 255, 255], [191, 64, 64]], dtype=np.uint8)
    sat = rgb_to_hsl_saturation(rgb)
    assert sat[0] == pytest.approx(1.0)
    assert sat[1] == 0.0
    assert sat[2] == 0.0
    assert sat[3] == 0.0
    assert sat[4] == pytest.approx(127 / 255, abs=1e-3)


def test_flat_byte_buffer_with_bad_length_fails_fast():
    with pytest.raises(InvalidBuffer):
        measure_color(np.zeros(10, dtype=np.uint8))


def test_pixel_buffer_rejects_truncated_data():
    with pytest.raises(InvalidBuffer):
        PixelBuffer(width=2, height=2, data=b"\x00" * 15)
    with pytest.raises(InvalidBuffer):
        PixelBuffer(width=2, height=2, data=b"\x00" * 12)


def test_confidence_is_monotonic_in_distance_from_threshold():
    threshold = 0.5
    above = [0.6, 0.9, 1.2, 2.4, 5.0, 40.0]
    bands = [confidence_band(p, threshold) for p in above]
    order = [Confidence.LOW, Confidence.MEDIUM, Confidence.HIGH]
    assert [order.index(b) for b in bands] == sorted(order.index(b) for b in bands)
    assert bands[0] is Confidence.LOW
    assert bands[-1] is Confidence.HIGH

    below = [0.45, 0.2, 0.05, 0.0]
    bands = [confidence_band(p, threshold) for p in below]
    assert [order.index(b) for b in bands] == sorted(order.index(b) for b in bands)
    assert bands[-1] is Confidence.HIGH


def test_confidence_cutoffs_are_configurable():
    assert confidence_band(0.3, 0.1) is Confidence.MEDIUM
    assert confidence_band(0.3, 0.1, low_ratio=4.0, medium_ratio=8.0) is Confidence.LOW
