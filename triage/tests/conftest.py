import time

import pytest
from django.core.cache import caches

from triage.models import Doctor, Hospital, User
from triage.services.queue_cache import reset_queue_cache
from triage.services.queue_store import reset_locks


class StaticScorer:
    """Scorer double that always answers with the same analysis."""

    def __init__(self, analysis: str, delay: float = 0.0):
        self.analysis = analysis
        self.delay = delay
        self.calls = []

    def analyze(self, *, document=None, symptoms=None):
        self.calls.append((document, symptoms))
        if self.delay:
            time.sleep(self.delay)
        return self.analysis


class FailingScorer:
    def __init__(self, exc):
        self.exc = exc

    def analyze(self, *, document=None, symptoms=None):
        raise self.exc


def scored(severity: int, extra: str = '', delay: float = 0.0) -> StaticScorer:
    return StaticScorer(f"Patient Condition: test case {extra}\nSeverity: {severity}/10", delay=delay)


@pytest.fixture(autouse=True)
def _fresh_queue_state():
    reset_queue_cache()
    reset_locks()
    # throttle counters
    caches['default'].clear()
    yield
    reset_queue_cache()
    reset_locks()


@pytest.fixture
def hospital(db):
    return Hospital.objects.create(id='h1', name='City General')


@pytest.fixture
def other_hospital(db):
    return Hospital.objects.create(id='h2', name='Riverside Clinic')


@pytest.fixture
def make_patient(db):
    counter = {'n': 0}

    def _make(**kwargs):
        counter['n'] += 1
        kwargs.setdefault('username', f"patient{counter['n']}")
        kwargs.setdefault('role', 'patient')
        return User.objects.create(**kwargs)

    return _make


@pytest.fixture
def patient(make_patient):
    return make_patient(first_name='Asha')


@pytest.fixture
def cardiologist(hospital):
    return Doctor.objects.create(hospital=hospital, name='Dr. Heart', specialty='Cardiology')
