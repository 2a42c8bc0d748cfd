# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================


import unittest
import os
import shutil
import tempfile
from unittest.mock import patch
from PIL import Image as PIL_Image

from charwiki import images
from charwiki.config import Settings


class ImagesTest(unittest.TestCase):

    def setUp(self):
        self.static_dir = tempfile.mkdtemp()
        self.settings = Settings(
            static_dir=self.static_dir,
            image_max_width=50,
            use_in_memory_backends=True,
        )

    def tearDown(self):
        if os.path.exists(self.static_dir):
            shutil.rmtree(self.static_dir)

    def _write_image(self, name, size=(200, 100), mode="RGB", image_format=None):
        path = os.path.join(self.static_dir, name)
        PIL_Image.new(mode, size, color=0).save(path, format=image_format)
        return path

    def test_target_format(self):
        self.assertEqual(images.target_format("a.png"), "PNG")
        self.assertEqual(images.target_format("a.GIF"), "GIF")
        self.assertEqual(images.target_format("a.tif"), "TIFF")
        self.assertEqual(images.target_format("a.heic"), "HEIF")
        self.assertEqual(images.target_format("a.jpg"), "JPEG")
        self.assertEqual(images.target_format("a.bmp"), "JPEG")
        self.assertEqual(images.target_format("noext"), "JPEG")

    def test_compressed_file_name(self):
        self.assertEqual(images.compressed_file_name("pic.PNG"), "pic_Min.png")
        self.assertEqual(images.compressed_file_name("a.b.jpg"), "a.b_Min.jpg")
        self.assertEqual(
            images.compressed_file_name("%E7%AB%8B%E7%BB%98.png"), "立绘_Min.png"
        )

    def test_compress_png_resizes_and_keeps_aspect_ratio(self):
        path = self._write_image("profile_0_portrait.png", size=(200, 100))

        result = images.compress_image(path, "profile_0_portrait.png", self.settings)

        self.assertEqual(result, "profile_0_portrait_Min.png")
        with PIL_Image.open(os.path.join(self.static_dir, result)) as out:
            self.assertEqual(out.format, "PNG")
            self.assertEqual(out.size, (50, 25))

    def test_tall_image_is_limited_by_height(self):
        path = self._write_image("tall.jpg", size=(100, 500), image_format="JPEG")

        result = images.compress_image(path, "tall.jpg", self.settings)

        with PIL_Image.open(os.path.join(self.static_dir, result)) as out:
            self.assertEqual(out.format, "JPEG")
            self.assertEqual(out.size, (10, 50))

    def test_heic_output_is_written(self):
        path = self._write_image("x.png", size=(200, 100))

        result = images.compress_image(path, "x.heic", self.settings)

        self.assertEqual(result, "x_Min.heic")
        with PIL_Image.open(os.path.join(self.static_dir, result)) as out:
            self.assertEqual(out.format, "HEIF")
            self.assertEqual(out.size, (50, 25))

    def test_small_image_is_not_upscaled(self):
        path = self._write_image("small.png", size=(10, 20))

        result = images.compress_image(path, "small.png", self.settings)

        with PIL_Image.open(os.path.join(self.static_dir, result)) as out:
            self.assertEqual(out.size, (10, 20))

    def test_transparent_image_can_be_written_as_jpeg(self):
        path = self._write_image("alpha.png", size=(80, 80), mode="RGBA")

        result = images.compress_image(path, "alpha.jpg", self.settings)

        self.assertEqual(result, "alpha_Min.jpg")
        with PIL_Image.open(os.path.join(self.static_dir, result)) as out:
            self.assertEqual(out.format, "JPEG")
            self.assertEqual(out.mode, "RGB")

    def test_animated_gif_keeps_all_frames(self):
        path = os.path.join(self.static_dir, "anim.gif")
        colors = [(255, 0, 0), (0, 255, 0), (0, 0, 255)]
        frames = [PIL_Image.new("RGB", (120, 60), color=c) for c in colors]
        frames[0].save(path, save_all=True, append_images=frames[1:], duration=100, loop=0)

        result = images.compress_image(path, "anim.gif", self.settings)

        with PIL_Image.open(os.path.join(self.static_dir, result)) as out:
            self.assertEqual(out.n_frames, 3)
            self.assertEqual(out.size, (50, 25))

    def test_corrupt_image_returns_original_name(self):
        path = os.path.join(self.static_dir, "broken.png")
        with open(path, "wb") as f:
            f.write(b"not an image at all")

        with self.assertLogs("charwiki.images", level="ERROR"):
            result = images.compress_image(path, "broken.png", self.settings)

        self.assertEqual(result, "broken.png")
        self.assertFalse(os.path.exists(os.path.join(self.static_dir, "broken_Min.png")))

    def test_missing_file_returns_original_name(self):
        with self.assertLogs("charwiki.images", level="ERROR"):
            result = images.compress_image(
                os.path.join(self.static_dir, "nope.png"), "nope.png", self.settings
            )
        self.assertEqual(result, "nope.png")

    def test_compress_images_preserves_order_and_dedupes(self):
        first = self._write_image("a.png")
        second = self._write_image("b.png")
        settings = self.settings.model_copy(update={"image_compression_workers": 4})

        with patch.object(
            images, "compress_image", wraps=images.compress_image
        ) as mock_compress:
            results = images.compress_images(
                [(first, "a.png"), (second, "b.png"), (first, "a.png")], settings
            )

        self.assertEqual(results, ["a_Min.png", "b_Min.png", "a_Min.png"])
        self.assertEqual(mock_compress.call_count, 2)

    def test_compress_images_handles_empty_input(self):
        self.assertEqual(images.compress_images([], self.settings), [])


if __name__ == "__main__":
    unittest.main()
