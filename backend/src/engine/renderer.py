"""Duotone renderer: maps per-pixel luminance onto a two-color gradient.

All blend math happens in linear light:

    Y   = 0.2126·R + 0.7152·G + 0.0722·B          (BT.709, linear)
    duo = lerp(low, high, Y)                       per channel
    out = lerp(Y, duo, intensity)                  per channel

then each channel is gamma-encoded back to an sRGB byte. Alpha passes
through untouched. At intensity 0 the output is the grayscale luminance,
at intensity 1 the full duotone mapping.
"""

import math

import numpy as np

from color.srgb import (
    LinearRgb,
    Rgb,
    decode_gamma_array,
    encode_gamma_array,
    hex_to_rgb,
    rgb_to_linear,
)

# BT.709 luma coefficients
LUMA_R = 0.2126
LUMA_G = 0.7152
LUMA_B = 0.0722

HERO_GREEN = hex_to_rgb("#1b602f")
BRAVE_PINK = hex_to_rgb("#f784c5")


def clamp_intensity(value: float) -> float:
    """Clamp to [0, 1]. Non-finite values fall back to full intensity."""
    value = float(value)
    if math.isnan(value):
        return 1.0
    return max(0.0, min(1.0, value))


def _check_pixels(pixels: np.ndarray):
    if not isinstance(pixels, np.ndarray):
        raise TypeError(f"expected ndarray, got {type(pixels).__name__}")
    if pixels.ndim != 3 or pixels.shape[2] != 4:
        raise ValueError(f"expected (H, W, 4) RGBA buffer, got shape {pixels.shape}")
    if pixels.dtype != np.uint8:
        raise ValueError(f"expected uint8 buffer, got {pixels.dtype}")


def _is_byte(c) -> bool:
    if isinstance(c, bool) or not isinstance(c, (int, np.integer)):
        return False
    return 0 <= c <= 255


class DuotoneRenderer:
    """Stateless apart from the two anchors, linearised once at construction."""

    def __init__(self, low: Rgb = HERO_GREEN, high: Rgb = BRAVE_PINK):
        for name, rgb in (("low", low), ("high", high)):
            if len(rgb) != 3 or not all(_is_byte(c) for c in rgb):
                raise ValueError(f"{name} anchor must be three bytes, got {rgb!r}")
        self.low: Rgb = tuple(int(c) for c in low)
        self.high: Rgb = tuple(int(c) for c in high)
        self.low_linear: LinearRgb = rgb_to_linear(self.low)
        self.high_linear: LinearRgb = rgb_to_linear(self.high)
        self._low = np.array(self.low_linear, dtype=np.float64)
        self._high = np.array(self.high_linear, dtype=np.float64)

    @classmethod
    def from_hex(cls, low: str, high: str) -> "DuotoneRenderer":
        return cls(hex_to_rgb(low), hex_to_rgb(high))

    def luminance(self, pixels: np.ndarray) -> np.ndarray:
        """Linear relative luminance (H, W) float64 in [0, 1].

        Independent of intensity, so callers re-rendering the same source at
        a new intensity can compute this once and pass it back to render().
        """
        _check_pixels(pixels)
        r = decode_gamma_array(pixels[:, :, 0])
        g = decode_gamma_array(pixels[:, :, 1])
        b = decode_gamma_array(pixels[:, :, 2])
        return LUMA_R * r + LUMA_G * g + LUMA_B * b

    def render(
        self,
        pixels: np.ndarray,
        intensity: float,
        *,
        out: np.ndarray | None = None,
        luminance: np.ndarray | None = None,
    ) -> np.ndarray:
        """Render the duotone of ``pixels`` at ``intensity``.

        Args:
            pixels:    Source RGBA buffer (H, W, 4) uint8.
            intensity: Blend factor, clamped to [0, 1].
            out:       Optional destination buffer of the same shape. May
                       alias ``pixels``.
            luminance: Precomputed luminance(pixels), reused across renders.

        Returns:
            The output buffer (``out`` when given, otherwise a new array).
        """
        _check_pixels(pixels)
        t = clamp_intensity(intensity)
        h, w = pixels.shape[:2]

        if luminance is None:
            luminance = self.luminance(pixels)
        elif luminance.shape != (h, w):
            raise ValueError(
                f"luminance shape {luminance.shape} does not match pixels {(h, w)}"
            )

        if out is None:
            out = np.empty_like(pixels)
        elif out.shape != pixels.shape or out.dtype != np.uint8:
            raise ValueError(
                f"output buffer {out.shape}/{out.dtype} does not match source "
                f"{pixels.shape}/uint8"
            )

        y = luminance[:, :, np.newaxis]
        duo = self._low + (self._high - self._low) * y
        mixed = y + (duo - y) * t

        # out may alias pixels; luminance is already taken from the source
        if out is not pixels:
            out[:, :, 3] = pixels[:, :, 3]
        out[:, :, :3] = encode_gamma_array(mixed)
        return out


def render_duotone(
    pixels: np.ndarray,
    width: int,
    height: int,
    low: Rgb,
    high: Rgb,
    intensity: float,
) -> np.ndarray:
    """One-shot render with explicit dimensions; returns a fresh buffer."""
    _check_pixels(pixels)
    if pixels.shape[:2] != (height, width):
        raise ValueError(
            f"buffer is {pixels.shape[1]}x{pixels.shape[0]}, expected {width}x{height}"
        )
    return DuotoneRenderer(low, high).render(pixels, intensity)
