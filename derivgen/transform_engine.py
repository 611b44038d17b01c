"""
TransformEngine - Produces thumbnail and preview renditions with Pillow.
"""

import logging
import os
import threading
from typing import Optional, Tuple

from PIL import Image, ImageOps

from .decode_cache import DecodeCache
from .errors import TransformError


class TransformEngine:
    """
    Generates the two fixed renditions of a source image.

    One instance is shared by every job in a process: it owns the decode
    cache and the cap on simultaneous transforms.
    """

    THUMBNAIL_SIZE = (300, 200)
    PREVIEW_HEIGHT = 800
    CROP_CANDIDATES = 16

    OUTPUT_FORMATS = {
        'jpg': 'JPEG',
        'jpeg': 'JPEG',
        'tif': 'JPEG',
        'tiff': 'JPEG',
        'bmp': 'JPEG',
        'png': 'PNG',
        'gif': 'GIF',
        'webp': 'WEBP',
    }

    def __init__(
        self,
        quality: int = 85,
        max_concurrent: int = 2,
        cache: Optional[DecodeCache] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize transform engine.

        Args:
            quality: JPEG/WEBP quality for output (default: 85)
            max_concurrent: Transforms allowed to run at once in this process
            cache: Decode cache, a 256 MB cache is created if omitted
            logger: Optional logger instance
        """
        self.quality = quality
        self.max_concurrent = max_concurrent
        self.cache = cache if cache is not None else DecodeCache(logger=logger)
        self.logger = logger or logging.getLogger(__name__)
        self._slots = threading.BoundedSemaphore(max_concurrent)

    def make_thumbnail(self, source: str, dest: str) -> Tuple[int, int]:
        """
        Write a 300x200 thumbnail of `source` to `dest`.

        The image is oriented, scaled to cover the target box, then cropped
        to the window with the highest entropy.

        Returns:
            Size of the written image
        """
        target_w, target_h = self.THUMBNAIL_SIZE
        with self._slots:
            img = self._load(source)
            width, height = img.size
            scale = max(target_w / width, target_h / height)
            resized = img.resize(
                (max(target_w, round(width * scale)), max(target_h, round(height * scale))),
                Image.Resampling.LANCZOS
            )
            left, top = self.entropy_offset(resized, self.THUMBNAIL_SIZE)
            thumb = resized.crop((left, top, left + target_w, top + target_h))
            self._save(thumb, dest)
        self.logger.debug(f"Thumbnail created: {dest}")
        return thumb.size

    def make_preview(self, source: str, dest: str) -> Tuple[int, int]:
        """
        Write an 800px-high preview of `source` to `dest`, keeping aspect ratio.

        Returns:
            Size of the written image
        """
        with self._slots:
            img = self._load(source)
            width, height = img.size
            new_width = max(1, round(width * self.PREVIEW_HEIGHT / height))
            preview = img.resize((new_width, self.PREVIEW_HEIGHT), Image.Resampling.LANCZOS)
            self._save(preview, dest)
        self.logger.debug(f"Preview created: {dest}")
        return preview.size

    @classmethod
    def entropy_offset(cls, img: Image.Image, size: Tuple[int, int]) -> Tuple[int, int]:
        """
        Find the crop window of `size` inside `img` with the most information.

        Only one axis is expected to have excess after a cover resize; windows
        are tried at evenly spaced offsets along it, lowest offset wins ties.
        """
        crop_w, crop_h = size
        excess_x = img.width - crop_w
        excess_y = img.height - crop_h
        if excess_x <= 0 and excess_y <= 0:
            return 0, 0

        horizontal = excess_x >= excess_y
        excess = excess_x if horizontal else excess_y
        steps = min(cls.CROP_CANDIDATES, excess)
        offsets = sorted({round(i * excess / steps) for i in range(steps + 1)})

        def window(offset: int) -> Tuple[int, int, int, int]:
            if horizontal:
                return offset, 0, offset + crop_w, crop_h
            return 0, offset, crop_w, offset + crop_h

        best = max(offsets, key=lambda o: (img.crop(window(o)).entropy(), -o))
        return (best, 0) if horizontal else (0, best)

    def output_format(self, path: str) -> str:
        """Determine output format from the destination extension."""
        ext = os.path.splitext(path)[1].lstrip('.').lower()
        return self.OUTPUT_FORMATS.get(ext, 'JPEG')

    def _load(self, source: str) -> Image.Image:
        try:
            return self.cache.get_or_load(source, self._decode)
        except TransformError:
            raise
        except (OSError, ValueError, Image.DecompressionBombError) as e:
            self.logger.error(f"Error reading {source}: {e}")
            raise TransformError(f"Cannot read {source}: {e}") from e

    @staticmethod
    def _decode(source: str) -> Image.Image:
        """Decode and orient a source image; orientation runs before any resize."""
        with Image.open(source) as opened:
            img = ImageOps.exif_transpose(opened)
            img.load()
        if img.mode not in ('RGB', 'RGBA', 'L', 'LA'):
            has_alpha = 'transparency' in img.info or img.mode.endswith('A')
            img = img.convert('RGBA' if has_alpha else 'RGB')
        return img

    def _save(self, img: Image.Image, dest: str) -> None:
        output_format = self.output_format(dest)
        try:
            if output_format == 'JPEG':
                self._convert_color_mode(img).save(dest, format='JPEG', quality=self.quality, optimize=True)
            elif output_format == 'PNG':
                img.save(dest, format='PNG', optimize=True)
            elif output_format == 'WEBP':
                img.save(dest, format='WEBP', quality=self.quality)
            else:
                img.save(dest, format=output_format)
        except (OSError, ValueError) as e:
            self.logger.error(f"Error writing {dest}: {e}")
            raise TransformError(f"Cannot write {dest}: {e}") from e

    @staticmethod
    def _convert_color_mode(img: Image.Image) -> Image.Image:
        """Flatten alpha onto white for formats without transparency."""
        if img.mode in ('RGBA', 'LA'):
            background = Image.new('RGB', img.size, (255, 255, 255))
            if img.mode == 'LA':
                img = img.convert('RGBA')
            background.paste(img, mask=img.split()[-1])
            return background
        elif img.mode != 'RGB':
            return img.convert('RGB')
        return img
