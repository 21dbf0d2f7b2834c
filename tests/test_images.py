"""Tests for Pillow-backed upload decoding and green-screen compositing."""

from __future__ import annotations

import tempfile
import unittest
from io import BytesIO
from pathlib import Path

from PIL import Image

from xstream.errors import LocalIOError
from xstream.types import ImageFile
from xstream.utils.images import MAX_UPLOAD_DIM, apply_green_screen, load_image_file


class LoadImageFileTest(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_small_png_is_passed_through(self) -> None:
        path = self.tmp / "small.png"
        Image.new("RGB", (10, 6), (1, 2, 3)).save(path, format="PNG")

        image = load_image_file(path)

        self.assertEqual(image.mime_type, "image/png")
        self.assertEqual(image.to_bytes(), path.read_bytes())

    def test_oversized_image_is_downscaled(self) -> None:
        path = self.tmp / "wide.jpg"
        Image.new("RGB", (MAX_UPLOAD_DIM + 500, 20), (9, 9, 9)).save(path, format="JPEG")

        image = load_image_file(path)

        with Image.open(BytesIO(image.to_bytes())) as decoded:
            self.assertLessEqual(max(decoded.size), MAX_UPLOAD_DIM)
        self.assertEqual(image.mime_type, "image/jpeg")

    def test_exif_orientation_is_applied(self) -> None:
        path = self.tmp / "rotated.jpg"
        source = Image.new("RGB", (40, 20), (200, 10, 10))
        exif = source.getexif()
        exif[0x0112] = 6
        source.save(path, format="JPEG", exif=exif.tobytes())

        image = load_image_file(path)

        with Image.open(BytesIO(image.to_bytes())) as decoded:
            self.assertEqual(decoded.size, (20, 40))

    def test_undecodable_file_raises(self) -> None:
        path = self.tmp / "notes.png"
        path.write_text("not an image", encoding="utf-8")
        with self.assertRaises(LocalIOError):
            load_image_file(path)

    def test_missing_file_raises(self) -> None:
        with self.assertRaises(LocalIOError):
            load_image_file(self.tmp / "missing.png")


class GreenScreenTest(unittest.TestCase):
    def test_transparent_pixels_become_green(self) -> None:
        cutout = Image.new("RGBA", (4, 4), (0, 0, 0, 0))
        cutout.putpixel((1, 1), (10, 20, 30, 255))
        output = BytesIO()
        cutout.save(output, format="PNG")

        result = apply_green_screen(ImageFile.from_bytes(output.getvalue(), "image/png"))

        self.assertEqual(result.mime_type, "image/png")
        with Image.open(BytesIO(result.to_bytes())) as decoded:
            rgba = decoded.convert("RGBA")
            self.assertEqual(rgba.getpixel((0, 0)), (0, 255, 0, 255))
            self.assertEqual(rgba.getpixel((1, 1)), (10, 20, 30, 255))

    def test_garbage_payload_raises(self) -> None:
        with self.assertRaises(LocalIOError):
            apply_green_screen(ImageFile(data="bm90IGFuIGltYWdl", mime_type="image/png"))


if __name__ == "__main__":
    unittest.main()
