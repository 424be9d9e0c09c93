"""Cover image cache shared across gallery cards.

Bounded FIFO map from cache key to rendered cover bitmap. The cache is an
explicit object injected into whoever renders covers; there is no module-level
instance.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections import OrderedDict
from typing import Awaitable, Callable, Dict, Optional, Union

from ..models.bitmap import Bitmap

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 32


def cover_cache_key(magazine_id: Optional[str] = None, source_url: Optional[str] = None) -> str:
    """Build a cache key, preferring the magazine id over the source URL.

    The ``id:`` and ``url:`` prefixes keep the two namespaces apart, so an id
    that happens to equal some URL can never collide with it.
    """
    if magazine_id:
        return f"id:{magazine_id}"
    if source_url:
        return f"url:{source_url}"
    raise ValueError("Either magazine_id or source_url is required")


class CoverCache:
    """Bounded FIFO cache of cover bitmaps.

    Re-putting an existing key replaces the value but keeps its insertion
    position. When the capacity is exceeded the oldest entry is evicted.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self._entries: "OrderedDict[str, Bitmap]" = OrderedDict()
        self._lock = threading.Lock()
        self._inflight: Dict[str, asyncio.Future] = {}
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Optional[Bitmap]:
        with self._lock:
            bitmap = self._entries.get(key)
            if bitmap is None:
                self.misses += 1
            else:
                self.hits += 1
            return bitmap

    def put(self, key: str, bitmap: Bitmap) -> None:
        with self._lock:
            self._entries[key] = bitmap
            while len(self._entries) > self.capacity:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Evicted cover {evicted}")

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0

    def keys(self):
        with self._lock:
            return list(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    async def get_or_render(
        self, key: str, render: Callable[[], Awaitable[Union[Bitmap, object]]]
    ):
        """Return the cached cover for ``key``, rendering it at most once.

        Concurrent callers for the same key share one in-flight render. Only
        Bitmap results are stored; a cancellation outcome is passed through
        to every waiter without being cached. If the caller doing the render is
        cancelled, the next waiter renders instead.

        Args:
            key: Cache key from cover_cache_key()
            render: Zero-argument coroutine function producing the cover

        Returns:
            Bitmap, or whatever non-bitmap outcome ``render`` produced
        """
        while True:
            pending = self._inflight.get(key)
            if pending is None:
                break
            try:
                return await asyncio.shield(pending)
            except asyncio.CancelledError:
                if not pending.cancelled():
                    raise
                # the rendering caller was cancelled; take over
                logger.debug(f"Cover render for {key} cancelled by its owner, retrying")

        cached = self.get(key)
        if cached is not None:
            return cached

        future = asyncio.get_running_loop().create_future()
        self._inflight[key] = future
        try:
            result = await render()
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            future.set_exception(e)
            # mark retrieved; waiters still receive it
            future.exception()
            raise
        else:
            if isinstance(result, Bitmap):
                self.put(key, result)
            future.set_result(result)
            return result
        finally:
            self._inflight.pop(key, None)
