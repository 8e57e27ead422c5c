"""
Scoring collaborators.

A scorer turns an uploaded document (base64 image) or a symptom
description into free-text analysis that ideally states
``Severity: N/10``.  Every failure mode is reported as
:class:`ScoringUnavailable` so admission can fall back.
"""
import json
import logging
import time
from typing import Callable, Optional

import requests
from django.conf import settings

from triage.exceptions import ScoringUnavailable
from triage.services.severity import severity_label

logger = logging.getLogger(__name__)

DOCUMENT_PROMPT = """You are a medical AI assistant analyzing a medical receipt or report.

Please provide a detailed analysis of the patient's condition with the following structure:
1. Patient Condition: Provide a clear summary of the medical condition or diagnosis
2. Severity Rating: Rate the condition on a scale of 1-10, where 1 is minor and 10 is critical/life-threatening
3. Priority Level: Suggest a priority level (Low, Medium, High, Urgent) for hospital queue placement
4. Recommended Actions: Suggest immediate medical steps needed
5. Waiting Time Impact: Explain how waiting might affect the patient's condition
6. Specialist Recommendation: Name the single most relevant specialty

Format your response clearly with these headings, ensuring the severity rating is explicitly stated as "Severity: X/10" so it can be easily parsed.

If no medical information is visible in the image, respond with:
"No clear medical information detected. Severity: 1/10. Priority Level: Low. Please upload a clearer medical document or consult with the hospital directly."
"""

SYMPTOMS_PROMPT = """You are a medical triage assistant. Analyze the symptoms below and answer with:
1. Initial Assessment
2. Severity: X/10
3. Priority Level (Low, Medium, High, Urgent)
4. Possible Conditions
5. Recommendation
6. Specialist Recommendation

Symptoms: {symptoms}
"""


class GeminiScorer:
    """Calls the hosted Gemini ``generateContent`` endpoint."""

    def __init__(self, *, api_key: Optional[str] = None, model: Optional[str] = None,
                 endpoint: Optional[str] = None, timeout: Optional[float] = None,
                 clock: Callable[[], float] = time.monotonic):
        conf = settings.TRIAGE
        self.api_key = api_key if api_key is not None else conf['GEMINI_API_KEY']
        self.model = model or conf['GEMINI_MODEL']
        self.endpoint = (endpoint or conf['GEMINI_ENDPOINT']).rstrip('/')
        self.timeout = timeout if timeout is not None else conf['SCORING_TIMEOUT']
        self.clock = clock

    def _payload(self, document: Optional[str], symptoms: Optional[str]) -> dict:
        if document:
            parts = [
                {'text': DOCUMENT_PROMPT},
                {'inline_data': {'mime_type': 'image/jpeg', 'data': document}},
            ]
        else:
            parts = [{'text': SYMPTOMS_PROMPT.format(symptoms=symptoms or '')}]
        return {
            'contents': [{'parts': parts}],
            'generationConfig': {'temperature': 0.2, 'topP': 0.8, 'topK': 40, 'maxOutputTokens': 1024},
        }

    def _read_body(self, r, started: float) -> bytes:
        # timeout= bounds each socket wait; this bounds the whole call.
        chunks = []
        for chunk in r.iter_content(chunk_size=1024):
            if self.clock() - started > self.timeout:
                raise requests.Timeout(f'response still streaming after {self.timeout}s')
            chunks.append(chunk)
        return b''.join(chunks)

    def analyze(self, *, document: Optional[str] = None, symptoms: Optional[str] = None) -> str:
        if not self.api_key:
            raise ScoringUnavailable('Gemini API key is not configured')
        url = f"{self.endpoint}/{self.model}:generateContent"
        started = self.clock()
        try:
            with requests.post(
                url,
                params={'key': self.api_key},
                json=self._payload(document, symptoms),
                timeout=self.timeout,
                stream=True,
            ) as r:
                r.raise_for_status()
                data = json.loads(self._read_body(r, started))
        except requests.Timeout as exc:
            raise ScoringUnavailable(f'Gemini timed out after {self.timeout}s') from exc
        except (requests.RequestException, ValueError) as exc:
            raise ScoringUnavailable(f'Gemini request failed: {exc}') from exc
        try:
            text = data['candidates'][0]['content']['parts'][0]['text']
        except (KeyError, IndexError, TypeError) as exc:
            raise ScoringUnavailable('Invalid response from Gemini: missing candidate text') from exc
        if not isinstance(text, str) or not text.strip():
            raise ScoringUnavailable('Invalid response from Gemini: empty analysis')
        return text


class HeuristicScorer:
    """Deterministic keyword triage for development and offline use.

    Documents cannot be read locally, so they get a neutral
    "needs review" analysis.
    """

    EMERGENCY_TERMS = (
        'chest pain', 'heart attack', 'stroke', 'breathing', 'unconscious',
        'severe bleeding', 'head trauma', 'seizure', 'allergic reaction',
        'anaphylaxis', 'vomiting blood', 'paralysis', 'suicide', 'overdose',
    )
    URGENT_TERMS = (
        'fever', 'fracture', 'broken', 'infection', 'pain', 'vomiting',
        'diarrhea', 'dehydration', 'dizziness', 'cut', 'wound', 'headache',
        'migraine', 'burn',
    )
    ROUTINE_TERMS = (
        'cold', 'flu', 'cough', 'sore throat', 'rash', 'itch', 'stomach ache',
        'routine', 'check-up', 'follow-up', 'prescription', 'refill',
    )

    def score(self, symptoms: str) -> int:
        text = symptoms.lower()
        if any(t in text for t in self.EMERGENCY_TERMS):
            return 9
        if any(t in text for t in self.URGENT_TERMS):
            return 6
        if any(t in text for t in self.ROUTINE_TERMS):
            return 2
        return 3

    def analyze(self, *, document: Optional[str] = None, symptoms: Optional[str] = None) -> str:
        if not symptoms:
            return (
                "Patient Condition: Uploaded document requires staff review\n"
                "Severity: 3/10\n"
                "Priority Level: Medium\n"
                "Recommended Actions: Hospital staff to review the document."
            )
        severity = self.score(symptoms)
        if severity >= 8:
            assessment = 'Symptoms suggest a potentially serious condition requiring immediate medical attention.'
            advice = 'Immediate medical attention recommended.'
        elif severity >= 4:
            assessment = 'Symptoms indicate a condition that requires timely medical care.'
            advice = 'Prompt medical evaluation recommended within 24-48 hours.'
        else:
            assessment = 'Symptoms suggest a non-urgent medical condition.'
            advice = 'Schedule a routine appointment for proper evaluation.'
        return (
            f"1. Initial Assessment: {assessment}\n"
            f"2. Reported Symptoms: {symptoms}\n"
            f"3. Severity: {severity}/10 ({severity_label(severity)})\n"
            f"4. Recommendations: {advice}"
        )


def get_scorer():
    backend = settings.TRIAGE.get('SCORING_BACKEND', 'heuristic')
    if backend == 'gemini':
        return GeminiScorer()
    if backend == 'heuristic':
        return HeuristicScorer()
    raise ValueError(f"unknown SCORING_BACKEND {backend!r}")


def fallback_analysis(reason: str, severity: int) -> str:
    """Clearly labelled stand-in used when the scorer is unavailable."""
    return (
        "[FALLBACK ANALYSIS] Automated scoring was unavailable; "
        "this entry was queued with a neutral default severity.\n"
        f"Reason: {reason}\n"
        "Patient Condition: Unable to determine (analysis error)\n"
        f"Severity: {severity}/10\n"
        "Priority Level: Medium\n"
        "Recommended Actions: Please consult with medical staff for proper assessment."
    )
