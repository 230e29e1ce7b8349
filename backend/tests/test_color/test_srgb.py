"""Tests for color.srgb: transfer functions, lerp, hex parsing."""

import numpy as np
import pytest

from color.srgb import (
    DECODE_LUT,
    decode_gamma,
    decode_gamma_array,
    encode_gamma,
    encode_gamma_array,
    encode_gamma_unrounded,
    hex_to_rgb,
    lerp,
    rgb_to_linear,
)

pytestmark = pytest.mark.smoke


def test_decode_endpoints():
    assert decode_gamma(0) == 0.0
    assert decode_gamma(255) == 1.0


def test_decode_linear_segment():
    # 10/255 = 0.0392 sits below the 0.04045 breakpoint
    assert decode_gamma(10) == pytest.approx((10 / 255) / 12.92)


def test_decode_power_segment():
    v = 128 / 255
    assert decode_gamma(128) == pytest.approx(((v + 0.055) / 1.055) ** 2.4)
    assert decode_gamma(128) == pytest.approx(0.2158605, abs=1e-6)


def test_decode_is_monotonic():
    values = [decode_gamma(b) for b in range(256)]
    assert all(a < b for a, b in zip(values, values[1:]))


def test_encode_endpoints():
    assert encode_gamma(0.0) == 0
    assert encode_gamma(1.0) == 255


def test_encode_clamps_out_of_range():
    assert encode_gamma(-0.5) == 0
    assert encode_gamma(1.5) == 255


def test_byte_round_trip():
    for b in range(256):
        assert abs(encode_gamma(decode_gamma(b)) - b) <= 1, f"byte {b}"


def test_linear_round_trip_unrounded():
    for x in np.linspace(0.0, 1.0, 501):
        back = decode_gamma(encode_gamma_unrounded(float(x)) * 255)
        assert back == pytest.approx(float(x), abs=1e-9)


def test_lerp():
    assert lerp(0.0, 1.0, 0.0) == 0.0
    assert lerp(0.0, 1.0, 1.0) == 1.0
    assert lerp(2.0, 4.0, 0.5) == 3.0
    assert lerp(4.0, 2.0, 0.25) == 3.5


def test_hex_to_rgb():
    assert hex_to_rgb("#1b602f") == (27, 96, 47)
    assert hex_to_rgb("f784c5") == (247, 132, 197)
    assert hex_to_rgb("  #FFFFFF ") == (255, 255, 255)


@pytest.mark.parametrize("bad", ["", "#fff", "#12345", "#1234567", "#zzzzzz"])
def test_hex_to_rgb_rejects(bad):
    with pytest.raises(ValueError):
        hex_to_rgb(bad)


def test_rgb_to_linear():
    assert rgb_to_linear((0, 255, 128)) == (0.0, 1.0, decode_gamma(128))


def test_decode_lut_matches_scalar():
    assert DECODE_LUT.shape == (256,)
    for b in range(256):
        assert DECODE_LUT[b] == decode_gamma(b)
    with pytest.raises(ValueError):
        DECODE_LUT[0] = 1.0


def test_decode_array_matches_scalar():
    data = np.arange(256, dtype=np.uint8).reshape(16, 16)
    out = decode_gamma_array(data)
    assert out.shape == (16, 16)
    assert out[0, 0] == 0.0
    assert out[15, 15] == 1.0
    assert out[8, 0] == decode_gamma(128)


def test_encode_array_matches_scalar():
    xs = np.concatenate([np.linspace(0.0, 1.0, 1001), [-0.2, 0.001, 0.0031308, 1.3]])
    out = encode_gamma_array(xs)
    assert out.dtype == np.uint8
    expected = np.array([encode_gamma(float(x)) for x in xs], dtype=np.uint8)
    np.testing.assert_array_equal(out, expected)
