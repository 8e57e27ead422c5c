"""
Short-lived read cache of a hospital's queue.

Stores ``(count, items)`` per hospital in the ``queues`` alias of Django's
cache framework.  The cache is advisory only: admission never reads it
when computing a position, and a failing backend degrades to a miss on
read and a no-op on write.  Each hospital also has a generation counter;
``invalidate`` deletes the entry and bumps the generation, so a reader
that loaded the queue before a write committed cannot store its stale
copy afterwards.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional

from django.conf import settings
from django.core.cache import caches
from django.db import transaction

logger = logging.getLogger(__name__)

CACHE_ALIAS = 'queues'


class QueueCache:
    def __init__(self, backend=None, ttl: Optional[int] = None,
                 clock: Callable[[], float] = time.time, prefix: str = 'queue:hospital'):
        self.backend = backend if backend is not None else caches[CACHE_ALIAS]
        self.ttl = ttl if ttl is not None else settings.TRIAGE['QUEUE_CACHE_TTL']
        self.clock = clock
        self.prefix = prefix

    def _key(self, hospital_id: str) -> str:
        return f'{self.prefix}:{hospital_id}'

    def _gen_key(self, hospital_id: str) -> str:
        return f'{self.prefix}:{hospital_id}:gen'

    def generation(self, hospital_id: str) -> Optional[int]:
        """Current generation, or ``None`` when the backend is unreachable."""
        try:
            return self.backend.get(self._gen_key(hospital_id), 0)
        except Exception:
            logger.warning('Queue cache unavailable reading generation of %s', hospital_id, exc_info=True)
            return None

    def get(self, hospital_id: str) -> Optional[tuple[int, list[dict[str, Any]]]]:
        try:
            cached = self.backend.get(self._key(hospital_id))
            if not cached:
                return None
            if self.clock() - cached['storedAt'] >= self.ttl:
                self.backend.delete(self._key(hospital_id))
                return None
            if cached['gen'] != self.backend.get(self._gen_key(hospital_id), 0):
                return None
        except Exception:
            logger.warning('Queue cache unavailable, reading hospital %s from the store', hospital_id, exc_info=True)
            return None
        return cached['count'], cached['items']

    def set(self, hospital_id: str, count: int, items: list[dict[str, Any]],
            generation: Optional[int] = None) -> None:
        """Store a snapshot read at ``generation`` (defaults to current)."""
        try:
            gen = self.backend.get(self._gen_key(hospital_id), 0) if generation is None else generation
            self.backend.set(
                self._key(hospital_id),
                {'storedAt': self.clock(), 'gen': gen, 'count': count, 'items': items},
                self.ttl,
            )
        except Exception:
            logger.warning('Queue cache unavailable, snapshot of %s not stored', hospital_id, exc_info=True)

    def invalidate(self, hospital_id: str) -> bool:
        """Drop the snapshot and bump the generation; ``False`` if the backend failed."""
        gen_key = self._gen_key(hospital_id)
        try:
            # add() is a no-op when the counter exists; incr() is atomic on redis/locmem.
            self.backend.add(gen_key, 0, None)
            try:
                self.backend.incr(gen_key)
            except ValueError:
                # Counter evicted between add() and incr().
                self.backend.set(gen_key, 1, None)
            self.backend.delete(self._key(hospital_id))
        except Exception:
            logger.exception('Could not invalidate cached queue of hospital %s; it may be stale for up to %ss',
                             hospital_id, self.ttl)
            return False
        logger.debug('Invalidated queue cache for hospital %s', hospital_id)
        return True

    def clear(self) -> None:
        """Drop every key under this cache's prefix and nothing else."""
        delete_pattern = getattr(self.backend, 'delete_pattern', None)
        if delete_pattern is not None:
            delete_pattern(f'{self.prefix}:*')
        else:
            # locmem cannot list keys; the queues alias holds nothing but snapshots.
            self.backend.clear()


_queue_cache: Optional[QueueCache] = None


def get_queue_cache() -> QueueCache:
    global _queue_cache
    if _queue_cache is None:
        _queue_cache = QueueCache()
    return _queue_cache


def reset_queue_cache() -> None:
    """Drop the process-wide cache instance and its snapshots (test teardown)."""
    global _queue_cache
    if _queue_cache is not None:
        _queue_cache.clear()
    _queue_cache = None


def invalidate_after_write(hospital_id: str) -> None:
    """Drop a hospital's cached queue after a successful mutation.

    Runs immediately and again when an enclosing transaction commits, so
    no reader can cache the pre-write queue once the caller has returned.
    Never raises: the write it follows is already committed.
    """
    queue_cache = get_queue_cache()
    queue_cache.invalidate(hospital_id)
    transaction.on_commit(lambda: queue_cache.invalidate(hospital_id))
