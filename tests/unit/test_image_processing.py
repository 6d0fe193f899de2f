"""
Unit tests for JPEG normalization.
"""

import io
import os
import sys
import unittest

from PIL import Image

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', '..')))

from immich_captioner.core.image_processing import ensure_jpeg
from immich_captioner.core.exceptions import DecodeError


def _encode(fmt: str, mode: str = "RGB", size=(48, 32), color=(200, 40, 40)) -> bytes:
    img = Image.new(mode, size, color)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


class TestEnsureJpeg(unittest.TestCase):

    def assertIsJpeg(self, data: bytes):
        self.assertTrue(data.startswith(b"\xff\xd8"), "missing JPEG SOI marker")
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            self.assertEqual(img.format, "JPEG")

    def test_jpeg_is_returned_unchanged(self):
        original = _encode("JPEG")
        result = ensure_jpeg(original)
        self.assertEqual(result, original)

    def test_png_is_reencoded(self):
        result = ensure_jpeg(_encode("PNG"))
        self.assertIsJpeg(result)

    def test_png_with_alpha_is_flattened(self):
        result = ensure_jpeg(_encode("PNG", mode="RGBA", color=(10, 20, 30, 128)))
        self.assertIsJpeg(result)
        with Image.open(io.BytesIO(result)) as img:
            self.assertEqual(img.mode, "RGB")

    def test_webp_is_reencoded(self):
        result = ensure_jpeg(_encode("WEBP"))
        self.assertIsJpeg(result)

    def test_palette_gif_is_reencoded(self):
        result = ensure_jpeg(_encode("GIF", mode="P", color=3))
        self.assertIsJpeg(result)

    def test_grayscale_png_keeps_size(self):
        result = ensure_jpeg(_encode("PNG", mode="L", size=(17, 9), color=128))
        with Image.open(io.BytesIO(result)) as img:
            self.assertEqual(img.size, (17, 9))

    def test_garbage_raises_decode_error(self):
        with self.assertRaises(DecodeError):
            ensure_jpeg(b"definitely not an image")

    def test_empty_input_raises_decode_error(self):
        with self.assertRaises(DecodeError):
            ensure_jpeg(b"")

    def test_truncated_jpeg_raises_decode_error(self):
        data = _encode("JPEG", size=(256, 256))
        with self.assertRaises(DecodeError):
            ensure_jpeg(data[: len(data) // 2])


if __name__ == "__main__":
    unittest.main()
