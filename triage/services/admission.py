"""
Admission of new intake records into a hospital queue.

``admit`` creates a ``PENDING`` entry, scores it, and queues it at the
position its severity earns.  Scoring failures never cost the patient a
place in line: a labelled fallback analysis with a neutral severity is
used instead.  ``get_queue`` is the cache-aware read used by dashboards.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from django.conf import settings

from triage import metrics
from triage.exceptions import NotFound, ScoringUnavailable
from triage.models import Hospital, QueueEntry, User
from triage.services import queue_store
from triage.services.queue_cache import get_queue_cache, invalidate_after_write
from triage.services.scoring import fallback_analysis, get_scorer
from triage.services.severity import extract_severity
from triage.services.specialty import get_specialty_resolver
from triage.services.staff import match_staff

logger = logging.getLogger(__name__)

DOCUMENT_REF_CHARS = 20


def _score(scorer, entry: QueueEntry, document: Optional[str], symptoms: Optional[str]) -> tuple[str, bool]:
    try:
        return scorer.analyze(document=document, symptoms=symptoms), False
    except ScoringUnavailable as exc:
        metrics.scoring_fallbacks_total.inc()
        logger.warning('Scoring unavailable for entry %s, using fallback analysis: %s', entry.id, exc)
        return fallback_analysis(str(exc), settings.TRIAGE['FALLBACK_SEVERITY']), True


def admit(hospital_id: str, subject_id: int, *, document: Optional[str] = None,
          symptoms: Optional[str] = None, scorer=None, operator: Optional[User] = None) -> QueueEntry:
    """Admit a patient's document or symptoms into ``hospital_id``'s queue.

    Returns the entry in status ``QUEUED``.  Raises ``NotFound`` for an
    unknown hospital or subject and ``ConcurrentUpdateConflict`` when the
    queue write kept losing races.  If the final write fails the entry
    stays ``PENDING`` and the error propagates.
    """
    if not document and not symptoms:
        raise ValueError('either document or symptoms is required')
    if not Hospital.objects.filter(id=hospital_id).exists():
        raise NotFound(f'hospital {hospital_id} not found')
    subject = User.objects.filter(id=subject_id).first()
    if subject is None:
        raise NotFound(f'subject {subject_id} not found')

    entry = QueueEntry.objects.create(
        hospital_id=hospital_id,
        subject=subject,
        source=QueueEntry.SOURCE_DOCUMENT if document else QueueEntry.SOURCE_SYMPTOMS,
        document_ref=(document[:DOCUMENT_REF_CHARS] + '...') if document else '',
        symptoms=symptoms or '',
    )
    logger.info('Created pending entry %s for subject %s at hospital %s', entry.id, subject_id, hospital_id)

    analysis, is_fallback = _score(scorer or get_scorer(), entry, document, symptoms)
    if is_fallback:
        severity = settings.TRIAGE['FALLBACK_SEVERITY']
    else:
        severity = extract_severity(analysis)
    specialty = get_specialty_resolver()(analysis)
    doctor = match_staff(hospital_id, specialty)

    def _queue(hospital: Hospital) -> QueueEntry:
        queued = queue_store.list_queued(hospital.id)
        position = queue_store.compute_insert_position(queued, severity, entry.created_at, entry.id)
        return queue_store.insert_at(
            entry, position, hospital.id,
            severity=severity,
            analysis=analysis,
            analysis_is_fallback=is_fallback,
            specialty=specialty,
            assigned_staff_id=doctor.id if doctor else None,
            operator=operator,
        )

    try:
        queued_entry = queue_store.run_serialized(hospital_id, 'admission', _queue)
    except Exception:
        metrics.admissions_total.labels(outcome='failed').inc()
        logger.exception('Entry %s left PENDING: queue write failed', entry.id)
        raise
    invalidate_after_write(hospital_id)

    metrics.admissions_total.labels(outcome='fallback' if is_fallback else 'scored').inc()
    logger.info('Queued entry %s at hospital %s position %s (severity %s, %s)',
                queued_entry.id, hospital_id, queued_entry.queue_position, severity, specialty)
    return queued_entry


def serialize_entry(entry: QueueEntry) -> dict[str, Any]:
    doctor = entry.assigned_staff
    return {
        'id': entry.id,
        'hospitalId': entry.hospital_id,
        'subjectId': entry.subject_id,
        'subjectName': entry.subject.get_full_name() or entry.subject.username,
        'source': entry.source,
        'severity': entry.severity,
        'status': entry.status,
        'queuePosition': entry.queue_position,
        'specialty': entry.specialty,
        'analysis': entry.analysis,
        'analysisIsFallback': entry.analysis_is_fallback,
        'doctor': {'id': doctor.id, 'name': doctor.name, 'specialty': doctor.specialty} if doctor else None,
        'createdAt': entry.created_at.isoformat(),
        'processedAt': entry.processed_at.isoformat() if entry.processed_at else None,
    }


def get_queue(hospital_id: str) -> tuple[int, list[dict[str, Any]]]:
    """Return ``(count, items)`` for the hospital's active queue, position order."""
    queue_cache = get_queue_cache()
    cached = queue_cache.get(hospital_id)
    if cached is not None:
        return cached
    if not Hospital.objects.filter(id=hospital_id).exists():
        raise NotFound(f'hospital {hospital_id} not found')
    generation = queue_cache.generation(hospital_id)
    items = [serialize_entry(e) for e in queue_store.list_queued(hospital_id)]
    if generation is not None:
        queue_cache.set(hospital_id, len(items), items, generation=generation)
    return len(items), items
