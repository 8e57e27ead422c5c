"""Turn free-text analysis into a 0-10 severity score."""
import re
from typing import Optional

MIN_SEVERITY = 0
MAX_SEVERITY = 10
DEFAULT_SEVERITY = 1

# Tried in order; the "/10" forms win over a bare "Severity: N".
_EXPLICIT_PATTERNS = (
    re.compile(r'Severity(?: Rating)?:?\s*(\d+)\/10', re.IGNORECASE),
    re.compile(r'Severity:?\s*(\d+)', re.IGNORECASE),
)

_KEYWORD_SCORES = (
    (('urgent', 'emergency', 'critical'), 10),
    (('high priority',), 7),
    (('medium priority',), 5),
    (('low priority',), 2),
)


def clamp_severity(value: int) -> int:
    return max(MIN_SEVERITY, min(MAX_SEVERITY, value))


def extract_severity(analysis: Optional[str]) -> int:
    """Return the severity stated in ``analysis``, falling back to keywords.

    Explicit ratings are clamped to ``[0, 10]``.  Never raises.
    """
    if not analysis:
        return DEFAULT_SEVERITY
    for pattern in _EXPLICIT_PATTERNS:
        match = pattern.search(analysis)
        if match:
            return clamp_severity(int(match.group(1)))
    lowered = analysis.lower()
    for keywords, score in _KEYWORD_SCORES:
        if any(k in lowered for k in keywords):
            return score
    return DEFAULT_SEVERITY


def severity_label(severity: int) -> str:
    if severity >= 8:
        return 'High Priority'
    if severity >= 4:
        return 'Medium Priority'
    return 'Low Priority'
