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

from __future__ import annotations

import os
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Dict, List, Sequence, Tuple
import logging
import pillow_heif
from PIL import Image, ImageSequence

from charwiki.config import Settings
from charwiki.filenames import sanitize_filename

logger = logging.getLogger(__name__)

# Lets Pillow read and write .heic/.heif files.
pillow_heif.register_heif_opener()

COMPRESSED_SUFFIX = "_Min"

# Extension -> Pillow format name. Anything missing here is written as JPEG.
FORMAT_BY_EXTENSION = {
    ".png": "PNG",
    ".gif": "GIF",
    ".webp": "WEBP",
    ".tiff": "TIFF",
    ".tif": "TIFF",
    ".avif": "AVIF",
    ".heic": "HEIF",
    ".heif": "HEIF",
}

ANIMATED_FORMATS = {"GIF", "WEBP"}


def target_format(file_name: str) -> str:
    """Returns the Pillow format used to re-encode ``file_name``."""
    return FORMAT_BY_EXTENSION.get(Path(file_name).suffix.lower(), "JPEG")


def compressed_file_name(file_name: str) -> str:
    """
    Derives the name of the compressed copy, e.g. ``a.png`` -> ``a_Min.png``.

    The extension is lower-cased; the stem and then the full name go through
    sanitize_filename so percent-encoded and mojibake names come out readable.
    """
    path = Path(file_name)
    ext = path.suffix.lower()
    safe_stem = sanitize_filename(path.stem)
    return sanitize_filename(f"{safe_stem}{COMPRESSED_SUFFIX}{ext}")


def save_options(image_format: str, settings: Settings) -> Dict[str, Any]:
    """Returns the encoder keyword arguments for ``image_format``."""
    if image_format == "PNG":
        return {"optimize": True, "compress_level": settings.png_compress_level}
    if image_format == "GIF":
        return {"optimize": True}
    if image_format == "WEBP":
        return {"quality": settings.webp_quality, "method": settings.webp_method}
    if image_format == "TIFF":
        return {"compression": settings.tiff_compression}
    if image_format == "AVIF":
        return {"quality": settings.avif_quality, "speed": settings.avif_speed}
    if image_format == "HEIF":
        return {"quality": settings.heif_quality}
    return {
        "quality": settings.jpeg_quality,
        "progressive": settings.jpeg_progressive,
        "optimize": True,
    }


def _fit(image: Image.Image, max_size: int) -> Image.Image:
    # thumbnail() keeps the aspect ratio and never enlarges.
    image.thumbnail((max_size, max_size))
    return image


def _prepare_for_jpeg(image: Image.Image) -> Image.Image:
    if image.mode in ("RGB", "L"):
        return image
    if image.mode in ("RGBA", "LA", "P"):
        rgba = image.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.getchannel("A"))
        return background
    return image.convert("RGB")


def compress_image(file_path: str, file_name: str, settings: Settings) -> str:
    """
    Writes a resized, re-encoded copy of an uploaded image to the static dir.

    Args:
        file_path (str): Where the uploaded original is stored.
        file_name (str): The original filename; its extension picks the codec.
        settings (Settings): Max size, per-format quality and static dir.

    Returns:
        str: The compressed file's name, or ``file_name`` if the image could
        not be processed. Failures are logged and never raised.
    """
    output_name = compressed_file_name(file_name)
    output_path = os.path.join(settings.static_dir, output_name)
    image_format = target_format(file_name)
    options = save_options(image_format, settings)

    try:
        os.makedirs(settings.static_dir, exist_ok=True)
        with Image.open(file_path) as img:
            frame_count = getattr(img, "n_frames", 1)
            if image_format in ANIMATED_FORMATS and frame_count > 1:
                frames = [
                    _fit(frame.copy(), settings.image_max_width)
                    for frame in ImageSequence.Iterator(img)
                ]
                animation = {"save_all": True, "append_images": frames[1:]}
                for key in ("loop", "duration"):
                    if key in img.info:
                        animation[key] = img.info[key]
                frames[0].save(output_path, format=image_format, **animation, **options)
            else:
                img.load()
                resized = _fit(img.copy(), settings.image_max_width)
                if image_format == "JPEG":
                    resized = _prepare_for_jpeg(resized)
                resized.save(output_path, format=image_format, **options)
        return output_name
    except Exception:
        logger.exception("Image compression failed for %s (%s)", file_name, file_path)
        return file_name


def compress_images(
    items: Sequence[Tuple[str, str]], settings: Settings
) -> List[str]:
    """
    Compresses several ``(file_path, file_name)`` uploads.

    Work is spread over at most ``settings.image_compression_workers``
    threads (never more than there are files). Each distinct path is
    compressed once. Results follow the input order.
    """
    unique: Dict[str, str] = {}
    for file_path, file_name in items:
        unique.setdefault(file_path, file_name)

    workers = min(settings.image_compression_workers, len(unique))
    if workers <= 1:
        results = {
            path: compress_image(path, name, settings) for path, name in unique.items()
        }
    else:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = {
                path: pool.submit(compress_image, path, name, settings)
                for path, name in unique.items()
            }
            results = {path: future.result() for path, future in futures.items()}
    return [results[file_path] for file_path, _ in items]
