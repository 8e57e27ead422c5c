import logging

from django.core.cache import caches
from django.db import DatabaseError, connections
from django.http import JsonResponse

from ..services.queue_cache import CACHE_ALIAS

logger = logging.getLogger(__name__)


def _database_ok() -> bool:
    with connections['default'].cursor() as c:
        c.execute('SELECT 1')
        row = c.fetchone()
    return bool(row and row[0] == 1)


def _cache_ok() -> bool:
    try:
        cache = caches[CACHE_ALIAS]
        cache.set('healthz:probe', 1, 5)
        return cache.get('healthz:probe') == 1
    except Exception:
        logger.warning('Health check: cache unavailable', exc_info=True)
        return False


def healthz(request):
    """Liveness of the database and of the cache serving queue snapshots."""
    try:
        db = _database_ok()
    except DatabaseError as e:
        logger.error('Health check: database unavailable: %s', e)
        return JsonResponse({'ok': False, 'error': str(e)}, status=500)
    cache_ok = _cache_ok()
    # A dead cache only costs latency; queue reads fall through to the DB.
    return JsonResponse({'ok': db, 'db': db, 'cache': cache_ok}, status=200 if db else 500)
