"""
Image Format Normalization
==========================

Immich serves thumbnails in whatever format it generated them in (JPEG or
WebP depending on server settings, occasionally PNG). Vision models behind
Ollama are most reliable with JPEG, so every thumbnail passes through
ensure_jpeg() before inference.

Key Components:
- ensure_jpeg(): Pass JPEG through untouched, re-encode anything else

Dependencies:
- PIL (Pillow): Decoding every registered raster format and JPEG encoding
"""

# ============================================================================
# IMPORTS
# ============================================================================

import io
import logging

from PIL import Image, UnidentifiedImageError

from .exceptions import DecodeError, EncodeError

logger = logging.getLogger(__name__)

# MPO is how Pillow reports multi-picture JPEGs written by many phone cameras.
JPEG_FORMATS = {"JPEG", "MPO"}

# Modes the JPEG encoder accepts as-is
JPEG_SAFE_MODES = {"RGB", "L", "CMYK"}

# ============================================================================
# DECODING
# ============================================================================

def _decode(data: bytes) -> Image.Image:
    """Fully decode a byte stream, raising DecodeError on any codec failure."""
    if not data:
        raise DecodeError("failed to decode image: empty input")
    try:
        img = Image.open(io.BytesIO(data))
        # Image.open() only reads the header; load() forces the full decode so
        # truncated streams fail here rather than during re-encode.
        img.load()
        return img
    except UnidentifiedImageError as e:
        raise DecodeError(f"failed to decode image: unknown format ({e})") from e
    except (OSError, SyntaxError, ValueError, Image.DecompressionBombError) as e:
        raise DecodeError(f"failed to decode image: {e}") from e

# ============================================================================
# NORMALIZATION
# ============================================================================

def ensure_jpeg(data: bytes) -> bytes:
    """
    Return JPEG bytes for an arbitrary supported image.

    If the input is already JPEG it is returned unchanged (no re-encode, no
    quality loss). Anything else is decoded and re-encoded as JPEG with the
    encoder's default quality.

    Args:
        data: Raw image bytes as downloaded.

    Returns:
        JPEG-encoded bytes.

    Raises:
        DecodeError: If the data is not a recognizable image.
        EncodeError: If the decoded image cannot be written as JPEG.

    Example:
        >>> jpeg_bytes = ensure_jpeg(webp_bytes)
    """
    with _decode(data) as img:
        if img.format in JPEG_FORMATS:
            return data

        source_format = img.format
        try:
            if img.mode not in JPEG_SAFE_MODES:
                # Alpha is dropped, palettes and high bit-depth are flattened
                converted = img.convert("RGB")
            else:
                converted = img

            buf = io.BytesIO()
            converted.save(buf, format="JPEG")
        except (OSError, ValueError) as e:
            raise EncodeError(f"failed to encode {source_format} as JPEG: {e}") from e

    logger.debug(f"Converted {source_format} image to JPEG ({len(data)} -> {buf.tell()} bytes)")
    return buf.getvalue()
