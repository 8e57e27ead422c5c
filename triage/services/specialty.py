"""
Map analysis text to a care specialty.

This is a keyword classifier, good enough to pick a doctor for
best-effort assignment.  Swap it through ``TRIAGE['SPECIALTY_RESOLVER']``.
"""
import re
from typing import Callable, Optional

from django.conf import settings
from django.utils.module_loading import import_string

GENERAL_MEDICINE = 'General Medicine'

SPECIALTIES = (
    'Cardiology',
    'Neurology',
    'Orthopedics',
    'Pediatrics',
    'Dermatology',
    'Ophthalmology',
    'Psychiatry',
    'Emergency Medicine',
    GENERAL_MEDICINE,
)

# Priority order matters: the first specialty with a matching keyword wins.
_KEYWORDS = (
    ('Cardiology', ('heart', 'chest pain', 'cardiac')),
    ('Neurology', ('brain', 'headache', 'neural', 'seizure', 'stroke')),
    ('Orthopedics', ('bone', 'fracture', 'joint', 'sprain')),
    ('Pediatrics', ('child', 'infant', 'pediatric')),
    ('Dermatology', ('skin', 'rash', 'acne')),
    ('Ophthalmology', ('eye', 'vision', 'sight')),
    ('Psychiatry', ('mental', 'anxiety', 'depression')),
    ('Emergency Medicine', ('emergency', 'urgent', 'critical')),
)

_RECOMMENDATION = re.compile(r'specialist recommendation:?\s*([a-z ]+)', re.IGNORECASE)
_BY_LOWER = {s.lower(): s for s in SPECIALTIES}


def resolve_specialty(analysis: Optional[str]) -> str:
    """Return one of :data:`SPECIALTIES` for ``analysis``."""
    if not analysis:
        return GENERAL_MEDICINE
    match = _RECOMMENDATION.search(analysis)
    if match:
        named = _BY_LOWER.get(match.group(1).strip().lower())
        if named:
            return named
    lowered = analysis.lower()
    for specialty, keywords in _KEYWORDS:
        if any(k in lowered for k in keywords):
            return specialty
    return GENERAL_MEDICINE


def get_specialty_resolver() -> Callable[[Optional[str]], str]:
    path = settings.TRIAGE.get('SPECIALTY_RESOLVER') or 'triage.services.specialty.resolve_specialty'
    return import_string(path)
