"""sRGB transfer functions: byte <-> linear light conversion and lerp.

Scalar forms operate on single channel values. The ``*_array`` forms are
vectorised over numpy arrays and produce bit-identical results to the
scalar forms (both use float64 and round-half-up).
"""

import math

import numpy as np

# IEC 61966-2-1 breakpoints
DECODE_THRESHOLD = 0.04045
ENCODE_THRESHOLD = 0.0031308

Rgb = tuple[int, int, int]
LinearRgb = tuple[float, float, float]


def decode_gamma(byte: int) -> float:
    """sRGB EOTF: 8-bit channel value -> linear intensity in [0, 1]."""
    v = byte / 255.0
    if v <= DECODE_THRESHOLD:
        return v / 12.92
    return ((v + 0.055) / 1.055) ** 2.4


def encode_gamma_unrounded(x: float) -> float:
    """Inverse EOTF: linear intensity -> encoded fraction (no scaling)."""
    if x <= ENCODE_THRESHOLD:
        return x * 12.92
    return 1.055 * x ** (1.0 / 2.4) - 0.055


def encode_gamma(x: float) -> int:
    """Linear intensity -> 8-bit channel value, rounded and clamped."""
    v = math.floor(encode_gamma_unrounded(x) * 255.0 + 0.5)
    return max(0, min(255, v))


def lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


def hex_to_rgb(value: str) -> Rgb:
    """Parse ``#rrggbb`` (leading ``#`` optional) into a byte triple."""
    s = value.strip().removeprefix("#")
    if len(s) != 6:
        raise ValueError(f"expected 6 hex digits, got {value!r}")
    try:
        n = int(s, 16)
    except ValueError:
        raise ValueError(f"invalid hex color: {value!r}") from None
    return (n >> 16) & 255, (n >> 8) & 255, n & 255


def rgb_to_linear(rgb: Rgb) -> LinearRgb:
    r, g, b = rgb
    return decode_gamma(r), decode_gamma(g), decode_gamma(b)


def _build_decode_lut() -> np.ndarray:
    lut = np.array([decode_gamma(i) for i in range(256)], dtype=np.float64)
    lut.flags.writeable = False
    return lut


# byte -> linear, indexed directly by uint8 channel data
DECODE_LUT = _build_decode_lut()


def decode_gamma_array(channels: np.ndarray) -> np.ndarray:
    """Vectorised decode_gamma over a uint8 array."""
    return np.take(DECODE_LUT, channels)


def encode_gamma_array(linear: np.ndarray) -> np.ndarray:
    """Vectorised encode_gamma: float array -> uint8 array."""
    x = np.asarray(linear, dtype=np.float64)
    # Negative inputs never reach the power branch
    curved = 1.055 * np.power(np.maximum(x, ENCODE_THRESHOLD), 1.0 / 2.4) - 0.055
    v = np.where(x <= ENCODE_THRESHOLD, x * 12.92, curved)
    return np.clip(np.floor(v * 255.0 + 0.5), 0, 255).astype(np.uint8)
