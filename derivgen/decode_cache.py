"""
DecodeCache - Bounded in-memory cache of decoded source images.
"""

import logging
import os
import threading
from collections import OrderedDict
from concurrent.futures import Future
from typing import Callable, Dict, Optional, Tuple

from PIL import Image


CacheKey = Tuple[str, int, int]


class DecodeCache:
    """
    LRU cache of decoded images with a fixed byte budget.

    Shared by every transform in the process; keyed by path, modification
    time and file size so a replaced source is decoded again.
    """

    def __init__(self, max_bytes: int = 256 * 1024 * 1024, logger: Optional[logging.Logger] = None):
        """
        Initialize cache.

        Args:
            max_bytes: Budget for decoded pixel data (0 disables caching)
            logger: Optional logger instance
        """
        self.max_bytes = max_bytes
        self.logger = logger or logging.getLogger(__name__)
        self._entries: 'OrderedDict[CacheKey, Tuple[Image.Image, int]]' = OrderedDict()
        self._pending: Dict[CacheKey, Future] = {}
        self._lock = threading.Lock()
        self.current_bytes = 0
        self.hits = 0
        self.misses = 0

    @staticmethod
    def key_for(path: str) -> CacheKey:
        """Cache key for a file on disk; raises OSError if it cannot be stat'ed."""
        st = os.stat(path)
        return os.path.abspath(path), st.st_mtime_ns, st.st_size

    @staticmethod
    def image_bytes(img: Image.Image) -> int:
        """Approximate memory used by a decoded image."""
        width, height = img.size
        return width * height * len(img.getbands())

    def get_or_load(self, path: str, loader: Callable[[str], Image.Image]) -> Image.Image:
        """
        Return the decoded image for `path`, decoding it with `loader` on a miss.

        A caller asking for a key that is already being decoded waits for
        that decode instead of starting its own. The returned image is
        shared; callers must not modify it in place.
        """
        key = self.key_for(path)
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                self._entries.move_to_end(key)
                self.hits += 1
                return entry[0]
            pending = self._pending.get(key)
            if pending is not None:
                self.hits += 1
                owner = False
            else:
                pending = self._pending[key] = Future()
                self.misses += 1
                owner = True

        if not owner:
            return pending.result()

        try:
            img = loader(path)
        except Exception as e:
            with self._lock:
                del self._pending[key]
            pending.set_exception(e)
            raise

        self.put(key, img)
        with self._lock:
            del self._pending[key]
        pending.set_result(img)
        return img

    def put(self, key: CacheKey, img: Image.Image) -> None:
        size = self.image_bytes(img)
        if size > self.max_bytes:
            self.logger.debug(f"Not caching {key[0]}: {size} bytes exceeds budget")
            return

        with self._lock:
            if key in self._entries:
                return
            self._entries[key] = (img, size)
            self.current_bytes += size
            while self.current_bytes > self.max_bytes:
                evicted_key, (_, evicted_size) = self._entries.popitem(last=False)
                self.current_bytes -= evicted_size
                self.logger.debug(f"Evicted {evicted_key[0]} from decode cache")

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.current_bytes = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, path: str) -> bool:
        try:
            key = self.key_for(path)
        except OSError:
            return False
        return key in self._entries
