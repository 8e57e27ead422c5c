import logging
from typing import Optional

from triage import metrics
from triage.exceptions import NotFound
from triage.models import Hospital, QueueEntry, User
from triage.services import queue_store
from triage.services.queue_cache import invalidate_after_write

logger = logging.getLogger(__name__)


def complete(entry_id: str, *, operator: Optional[User] = None, reason: str = 'completed') -> QueueEntry:
    """Mark a queued entry done and move everyone behind it up one place.

    Raises ``NotFound`` if the entry does not exist or is not ``QUEUED``.
    """
    hospital_id = (
        QueueEntry.objects.filter(id=entry_id, status=QueueEntry.STATUS_QUEUED)
        .values_list('hospital_id', flat=True)
        .first()
    )
    if hospital_id is None:
        raise NotFound(f'queued entry {entry_id} not found')

    def _remove(hospital: Hospital) -> QueueEntry:
        return queue_store.remove_and_compact(entry_id, hospital.id, operator=operator, reason=reason)

    entry = queue_store.run_serialized(hospital_id, 'completion', _remove)
    invalidate_after_write(hospital_id)
    metrics.completions_total.inc()
    logger.info('Completed entry %s at hospital %s', entry_id, hospital_id)
    return entry
