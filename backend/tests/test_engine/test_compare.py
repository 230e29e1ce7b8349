"""Tests for engine.compare: before/after surfaces and divider."""

import numpy as np
import pytest

from engine.compare import ComparisonView

pytestmark = pytest.mark.smoke


def _solid(value, h=4, w=10):
    return np.full((h, w, 4), value, dtype=np.uint8)


def test_surfaces_are_read_only():
    view = ComparisonView(_solid(10), _solid(200))
    with pytest.raises(ValueError):
        view.before[0, 0, 0] = 1
    with pytest.raises(ValueError):
        view.after[0, 0, 0] = 1


def test_original_scaled_to_output_dimensions():
    view = ComparisonView(_solid(10, h=8, w=20), _solid(200))
    assert view.before.shape == (4, 10, 4)
    assert (view.width, view.height) == (10, 4)


def test_compose_splits_at_divider():
    view = ComparisonView(_solid(10), _solid(200), divider=0.3)
    out = view.compose()
    assert view.split_column == 3
    np.testing.assert_array_equal(out[:, :3], 10)
    np.testing.assert_array_equal(out[:, 3:], 200)


def test_divider_clamped():
    view = ComparisonView(_solid(10), _solid(200))
    assert view.divider == 0.5
    assert view.set_divider(-2) == 0.0
    np.testing.assert_array_equal(view.compose(), 200)
    assert view.set_divider(5) == 1.0
    np.testing.assert_array_equal(view.compose(), 10)
    assert view.set_divider(float("nan")) == 0.5


def test_sync_tracks_latest_render():
    view = ComparisonView(_solid(10), _solid(200), divider=0.0)
    view.sync(_solid(77))
    assert view.syncs == 1
    np.testing.assert_array_equal(view.compose(), 77)


def test_after_layer_follows_in_place_writes():
    buffer = _solid(200)
    view = ComparisonView(_solid(10), buffer, divider=0.0)
    buffer[:] = 33
    np.testing.assert_array_equal(view.after, 33)


def test_sync_rejects_mismatched_buffer():
    view = ComparisonView(_solid(10), _solid(200))
    with pytest.raises(ValueError):
        view.sync(_solid(1, h=5))


def test_divider_does_not_touch_pixels():
    buffer = _solid(200)
    view = ComparisonView(_solid(10), buffer)
    view.set_divider(0.9)
    view.compose()
    np.testing.assert_array_equal(buffer, 200)
