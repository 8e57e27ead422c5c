"""
Durable per-hospital ordering of queued entries.

Positions among ``QUEUED`` entries of one hospital are always the dense
sequence ``1..N`` ordered by ``(severity desc, created_at asc)``.  Every
mutation here runs in a single ``transaction.atomic()`` block and checks
that invariant before committing, so a failure anywhere rolls the whole
shift back.

Callers must hold :func:`hospital_lock` across "list → compute position →
insert" so two admissions never compute against the same snapshot.
"""
from __future__ import annotations

import logging
import threading
import time
import weakref
from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Iterator, Optional, Sequence, TypeVar

from django.conf import settings
from django.db import OperationalError, transaction
from django.db.models import F
from django.utils import timezone

from triage import metrics
from triage.exceptions import ConcurrentUpdateConflict, InvariantViolation, NotFound
from triage.models import Hospital, QueueEntry, QueueEntryTransition, User

logger = logging.getLogger(__name__)

T = TypeVar('T')

QUEUE_ORDERING = ('-severity', 'created_at', 'id')

# Entries live only while some thread holds or waits on the lock.
_locks: "weakref.WeakValueDictionary[str, threading.Lock]" = weakref.WeakValueDictionary()
_locks_guard = threading.Lock()


def _lock_for(hospital_id: str) -> threading.Lock:
    with _locks_guard:
        lock = _locks.get(hospital_id)
        if lock is None:
            lock = _locks[hospital_id] = threading.Lock()
        return lock


def reset_locks() -> None:
    """Forget per-hospital locks (test teardown / worker shutdown)."""
    with _locks_guard:
        _locks.clear()


@contextmanager
def hospital_lock(hospital_id: str) -> Iterator[Hospital]:
    """Serialize queue writers of one hospital and open the write transaction.

    The thread lock covers writers inside this process; the row lock on the
    hospital covers other processes.  Hospitals never block each other.
    """
    with _lock_for(hospital_id):
        with transaction.atomic():
            hospital = Hospital.objects.select_for_update().filter(id=hospital_id).first()
            if hospital is None:
                raise NotFound(f'hospital {hospital_id} not found')
            yield hospital


def run_serialized(hospital_id: str, operation: str, fn: Callable[[Hospital], T]) -> T:
    """Run ``fn`` under :func:`hospital_lock`, retrying lost races.

    Deadlocks, serialization failures and lock timeouts surface as
    ``OperationalError``; the whole unit is retried from scratch.
    """
    attempts = max(1, settings.TRIAGE['ADMISSION_MAX_RETRIES'])
    backoff = settings.TRIAGE['RETRY_BACKOFF_SECONDS']
    for attempt in range(1, attempts + 1):
        try:
            with hospital_lock(hospital_id) as hospital:
                return fn(hospital)
        except OperationalError as exc:
            if attempt == attempts:
                logger.error('%s for hospital %s failed after %d attempts: %s',
                             operation, hospital_id, attempts, exc)
                raise ConcurrentUpdateConflict(
                    f'{operation} for hospital {hospital_id} lost {attempts} races'
                ) from exc
            metrics.conflict_retries_total.labels(operation=operation).inc()
            logger.warning('%s for hospital %s conflicted (attempt %d/%d): %s',
                           operation, hospital_id, attempt, attempts, exc)
            time.sleep(backoff * attempt)
    raise AssertionError('unreachable')


def list_queued(hospital_id: str) -> list[QueueEntry]:
    return list(
        QueueEntry.objects.filter(hospital_id=hospital_id, status=QueueEntry.STATUS_QUEUED)
        .select_related('subject', 'assigned_staff')
        .order_by(*QUEUE_ORDERING)
    )


def _sort_key(severity: int, created_at: datetime, entry_id: str) -> tuple:
    return (-severity, created_at, entry_id)


def compute_insert_position(queued: Sequence[QueueEntry], severity: int,
                            created_at: datetime, entry_id: str) -> int:
    """Return the 1-based position a new entry takes in ``queued``.

    ``queued`` is in position order.  The new entry goes in front of the
    first entry it outranks; equal severities keep admission order.
    """
    key = _sort_key(severity, created_at, entry_id)
    for i, existing in enumerate(queued):
        if key < _sort_key(existing.severity or 0, existing.created_at, existing.id):
            return i + 1
    return len(queued) + 1


def check_invariants(hospital_id: str) -> int:
    """Verify the dense-position and ordering invariants; return N.

    Raises :class:`InvariantViolation` instead of repairing anything.
    """
    rows = list(
        QueueEntry.objects.filter(hospital_id=hospital_id, status=QueueEntry.STATUS_QUEUED)
        .order_by('queue_position', 'created_at')
        .values_list('id', 'queue_position', 'severity', 'created_at')
    )
    positions = [r[1] for r in rows]
    expected = list(range(1, len(rows) + 1))
    if positions != expected:
        logger.critical('Queue positions of hospital %s are not dense: %s', hospital_id, positions)
        raise InvariantViolation(f'positions of hospital {hospital_id} are not 1..{len(rows)}')
    keys = [_sort_key(r[2] or 0, r[3], r[0]) for r in rows]
    if keys != sorted(keys):
        logger.critical('Queue of hospital %s is out of severity order: %s', hospital_id,
                        [(r[1], r[2]) for r in rows])
        raise InvariantViolation(f'queue of hospital {hospital_id} is out of severity order')
    return len(rows)


@transaction.atomic
def insert_at(entry: QueueEntry, position: int, hospital_id: str, *, severity: int,
              analysis: str = '', analysis_is_fallback: bool = False, specialty: str = '',
              assigned_staff_id: Optional[int] = None,
              operator: Optional[User] = None) -> QueueEntry:
    """Shift positions ``>= position`` down by one and queue ``entry`` there.

    Both steps commit together.  Only ``PENDING`` entries can be queued,
    which also keeps severity write-once.
    """
    locked = QueueEntry.objects.select_for_update().filter(id=entry.id, hospital_id=hospital_id).first()
    if locked is None:
        raise NotFound(f'entry {entry.id} not found in hospital {hospital_id}')
    if locked.status != QueueEntry.STATUS_PENDING:
        raise InvariantViolation(f'entry {entry.id} is {locked.status}, expected PENDING')
    count = QueueEntry.objects.filter(hospital_id=hospital_id, status=QueueEntry.STATUS_QUEUED).count()
    if not 1 <= position <= count + 1:
        raise InvariantViolation(f'position {position} outside 1..{count + 1}')

    QueueEntry.objects.filter(
        hospital_id=hospital_id,
        status=QueueEntry.STATUS_QUEUED,
        queue_position__gte=position,
    ).update(queue_position=F('queue_position') + 1)

    locked.severity = severity
    locked.analysis = analysis
    locked.analysis_is_fallback = analysis_is_fallback
    locked.specialty = specialty
    locked.assigned_staff_id = assigned_staff_id
    locked.queue_position = position
    locked.status = QueueEntry.STATUS_QUEUED
    locked.processed_at = timezone.now()
    locked.save(update_fields=[
        'severity', 'analysis', 'analysis_is_fallback', 'specialty', 'assigned_staff',
        'queue_position', 'status', 'processed_at',
    ])
    QueueEntryTransition.objects.create(
        entry=locked,
        from_status=QueueEntry.STATUS_PENDING,
        to_status=QueueEntry.STATUS_QUEUED,
        operator=operator,
        reason=f'admitted at position {position} with severity {severity}',
    )
    check_invariants(hospital_id)
    return locked


@transaction.atomic
def remove_and_compact(entry_id: str, hospital_id: str, *, operator: Optional[User] = None,
                       reason: str = 'completed') -> QueueEntry:
    """Complete a queued entry and close the gap it leaves."""
    locked = (
        QueueEntry.objects.select_for_update()
        .filter(id=entry_id, hospital_id=hospital_id, status=QueueEntry.STATUS_QUEUED)
        .first()
    )
    if locked is None:
        raise NotFound(f'queued entry {entry_id} not found')
    removed_position = locked.queue_position

    locked.status = QueueEntry.STATUS_COMPLETED
    locked.queue_position = None
    locked.completed_at = timezone.now()
    locked.save(update_fields=['status', 'queue_position', 'completed_at'])

    QueueEntry.objects.filter(
        hospital_id=hospital_id,
        status=QueueEntry.STATUS_QUEUED,
        queue_position__gt=removed_position,
    ).update(queue_position=F('queue_position') - 1)

    QueueEntryTransition.objects.create(
        entry=locked,
        from_status=QueueEntry.STATUS_QUEUED,
        to_status=QueueEntry.STATUS_COMPLETED,
        operator=operator,
        reason=reason,
    )
    check_invariants(hospital_id)
    return locked
