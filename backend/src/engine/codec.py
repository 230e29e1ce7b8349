"""Bitmap decode and output encode services (Pillow).

Decoded bitmaps are RGBA uint8 arrays of shape (H, W, 4). Output encoding
mirrors the source kind: PNG keeps alpha, JPEG is flattened onto opaque
white first since it has no alpha channel.
"""

import asyncio
import io

import numpy as np
from PIL import Image, ImageOps

from errors import DecodeError, EncodeError

PNG = "image/png"
JPEG = "image/jpeg"
OUTPUT_KINDS = (PNG, JPEG)

# 0-1 scale, as canvas encoders take it
JPEG_QUALITY = 0.92

_PIL_FORMATS = {PNG: "PNG", JPEG: "JPEG"}


def decode_image(data: bytes) -> np.ndarray:
    """Decode PNG/JPEG bytes to an RGBA array, applying EXIF orientation.

    Raises:
        DecodeError: If the bytes are not a readable image.
    """
    if not data:
        raise DecodeError("empty image data")
    try:
        with Image.open(io.BytesIO(data)) as img:
            img = ImageOps.exif_transpose(img)
            rgba = img.convert("RGBA")
    except Image.DecompressionBombError as e:
        raise DecodeError(f"image too large to decode safely: {e}") from e
    except (OSError, ValueError, SyntaxError) as e:
        raise DecodeError(f"cannot decode image: {type(e).__name__}") from e
    bitmap = np.array(rgba)
    if bitmap.shape[0] == 0 or bitmap.shape[1] == 0:
        raise DecodeError(f"image has no pixels: {bitmap.shape[1]}x{bitmap.shape[0]}")
    return bitmap


def flatten_on_white(pixels: np.ndarray) -> np.ndarray:
    """Composite RGBA over opaque white, returning (H, W, 3) uint8."""
    rgb = pixels[:, :, :3].astype(np.uint32)
    alpha = pixels[:, :, 3:4].astype(np.uint32)
    flat = (rgb * alpha + 255 * (255 - alpha) + 127) // 255
    return flat.astype(np.uint8)


def encode_image(
    pixels: np.ndarray, kind: str, quality: float = JPEG_QUALITY
) -> bytes:
    """Encode an RGBA buffer as ``kind`` (PNG or JPEG).

    Raises:
        EncodeError: Unsupported kind, invalid buffer or encoder failure.
    """
    fmt = _PIL_FORMATS.get(kind)
    if fmt is None:
        raise EncodeError(f"unsupported output kind: {kind}")
    if pixels.ndim != 3 or pixels.shape[2] != 4 or pixels.dtype != np.uint8:
        raise EncodeError(f"expected (H, W, 4) uint8 buffer, got {pixels.shape}")

    buf = io.BytesIO()
    try:
        if kind == JPEG:
            img = Image.fromarray(flatten_on_white(pixels))
            q = max(1, min(100, round(quality * 100)))
            img.save(buf, format=fmt, quality=q)
        else:
            Image.fromarray(pixels).save(buf, format=fmt)
    except (OSError, ValueError) as e:
        raise EncodeError(f"{fmt} encode failed: {type(e).__name__}") from e
    return buf.getvalue()


def scale_to(pixels: np.ndarray, width: int, height: int) -> np.ndarray:
    """Draw a bitmap scaled to width x height. Always returns a new array."""
    if width <= 0 or height <= 0:
        raise ValueError(f"invalid target size {width}x{height}")
    if pixels.shape[:2] == (height, width):
        return pixels.copy()
    img = Image.fromarray(pixels).resize(
        (width, height), resample=Image.Resampling.BILINEAR
    )
    return np.array(img)


async def decode_image_async(data: bytes) -> np.ndarray:
    """decode_image off the event loop."""
    return await asyncio.to_thread(decode_image, data)


async def encode_image_async(
    pixels: np.ndarray, kind: str, quality: float = JPEG_QUALITY
) -> bytes:
    """encode_image off the event loop, against a snapshot of ``pixels``.

    The snapshot is taken before suspending so renders that land while the
    encoder runs cannot tear the encoded frame.
    """
    snapshot = pixels.copy()
    return await asyncio.to_thread(encode_image, snapshot, kind, quality)
