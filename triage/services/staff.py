from typing import Optional
import logging

from django.db import DatabaseError

from triage.models import Doctor

logger = logging.getLogger(__name__)


def list_available_doctors(hospital_id: str, *, specialty: Optional[str] = None) -> list[dict]:
    qs = Doctor.objects.filter(hospital_id=hospital_id, available=True).only('id', 'name', 'specialty')
    if specialty:
        qs = qs.filter(specialty=specialty)
    return [{'id': d.id, 'name': d.name, 'specialty': d.specialty} for d in qs.order_by('id')]


def match_staff(hospital_id: str, specialty: str) -> Optional[Doctor]:
    """Pick an available doctor of ``specialty``, else any available doctor.

    Best effort: no match or a failing lookup just leaves the entry
    unassigned.
    """
    try:
        doctor = Doctor.objects.filter(hospital_id=hospital_id, specialty=specialty, available=True).order_by('id').first()
        if doctor is None:
            doctor = Doctor.objects.filter(hospital_id=hospital_id, available=True).order_by('id').first()
    except DatabaseError:
        logger.warning('Staff lookup failed for hospital %s', hospital_id, exc_info=True)
        return None
    if doctor is None:
        logger.info('No available doctors in hospital %s for %s', hospital_id, specialty)
    return doctor
