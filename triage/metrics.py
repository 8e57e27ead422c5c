"""Prometheus counters for queue admission, served by django-prometheus at /metrics."""
from prometheus_client import Counter

admissions_total = Counter(
    'triage_admissions_total',
    'Queue admissions by outcome',
    ['outcome'],
)
scoring_fallbacks_total = Counter(
    'triage_scoring_fallbacks_total',
    'Admissions that used the fallback analysis because scoring was unavailable',
)
conflict_retries_total = Counter(
    'triage_conflict_retries_total',
    'Queue write transactions retried after losing a race',
    ['operation'],
)
completions_total = Counter(
    'triage_completions_total',
    'Queue entries completed',
)
