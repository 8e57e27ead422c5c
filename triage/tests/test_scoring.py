import json

import pytest
import requests

from triage.exceptions import ScoringUnavailable
from triage.services.scoring import GeminiScorer, HeuristicScorer, fallback_analysis, get_scorer
from triage.services.severity import extract_severity


class FakeResponse:
    def __init__(self, payload=None, status_code=200, bad_json=False, chunks=None):
        self.payload = payload
        self.status_code = status_code
        self.bad_json = bad_json
        self.chunks = chunks

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f'{self.status_code} error')

    def iter_content(self, chunk_size=1):
        if self.chunks is not None:
            yield from self.chunks
        elif self.bad_json:
            yield b'not json'
        else:
            yield json.dumps(self.payload).encode()


def _gemini_text(text):
    return {'candidates': [{'content': {'parts': [{'text': text}]}}]}


@pytest.fixture
def scorer():
    return GeminiScorer(api_key='secret', model='gemini-test', endpoint='https://example.test/models/', timeout=2)


def test_gemini_returns_candidate_text(scorer, monkeypatch):
    seen = {}

    def fake_post(url, params=None, json=None, timeout=None, stream=False):
        seen.update(url=url, params=params, json=json, timeout=timeout, stream=stream)
        return FakeResponse(_gemini_text('Severity: 8/10'))

    monkeypatch.setattr(requests, 'post', fake_post)
    assert scorer.analyze(symptoms='chest pain') == 'Severity: 8/10'
    assert seen['url'] == 'https://example.test/models/gemini-test:generateContent'
    assert seen['params'] == {'key': 'secret'}
    assert seen['timeout'] == 2
    assert 'chest pain' in seen['json']['contents'][0]['parts'][0]['text']


def test_gemini_sends_document_inline(scorer, monkeypatch):
    seen = {}

    def fake_post(url, params=None, json=None, timeout=None, stream=False):
        seen['parts'] = json['contents'][0]['parts']
        return FakeResponse(_gemini_text('Severity: 2/10'))

    monkeypatch.setattr(requests, 'post', fake_post)
    scorer.analyze(document='aGVsbG8=')
    assert seen['parts'][1] == {'inline_data': {'mime_type': 'image/jpeg', 'data': 'aGVsbG8='}}


@pytest.mark.parametrize('response', [
    FakeResponse(status_code=503),
    FakeResponse(bad_json=True),
    FakeResponse({'candidates': []}),
    FakeResponse({'unexpected': True}),
    FakeResponse(_gemini_text('   ')),
])
def test_gemini_bad_responses_are_unavailable(scorer, monkeypatch, response):
    monkeypatch.setattr(requests, 'post', lambda *a, **kw: response)
    with pytest.raises(ScoringUnavailable):
        scorer.analyze(symptoms='x')


@pytest.mark.parametrize('exc', [requests.Timeout('slow'), requests.ConnectionError('down')])
def test_gemini_transport_errors_are_unavailable(scorer, monkeypatch, exc):
    def fake_post(*args, **kwargs):
        raise exc

    monkeypatch.setattr(requests, 'post', fake_post)
    with pytest.raises(ScoringUnavailable):
        scorer.analyze(symptoms='x')


def test_gemini_enforces_total_deadline_on_trickling_body(monkeypatch):
    now = [100.0]

    def trickle():
        for piece in (b'{"candidates": ', b'[{"content": ', b'{"parts": []}}]}'):
            now[0] += 1.5
            yield piece

    monkeypatch.setattr(requests, 'post', lambda *a, **kw: FakeResponse(chunks=trickle()))
    slow = GeminiScorer(api_key='secret', timeout=2, clock=lambda: now[0])
    with pytest.raises(ScoringUnavailable, match='timed out'):
        slow.analyze(symptoms='x')


def test_gemini_streams_body(scorer, monkeypatch):
    seen = {}

    def fake_post(*args, **kwargs):
        seen.update(kwargs)
        return FakeResponse(chunks=[b'{"candidates": [{"content": ', b'{"parts": [{"text": "Severity: 4/10"}]}}]}'])

    monkeypatch.setattr(requests, 'post', fake_post)
    assert scorer.analyze(symptoms='x') == 'Severity: 4/10'
    assert seen['stream'] is True


def test_gemini_without_key_never_calls_out(monkeypatch):
    def fake_post(*args, **kwargs):
        raise AssertionError('should not be called')

    monkeypatch.setattr(requests, 'post', fake_post)
    with pytest.raises(ScoringUnavailable):
        GeminiScorer(api_key='').analyze(symptoms='x')


@pytest.mark.parametrize('symptoms, expected', [
    ('crushing chest pain', 9),
    ('high fever since yesterday', 6),
    ('need a prescription refill', 2),
    ('feeling off', 3),
])
def test_heuristic_severity(symptoms, expected):
    assert extract_severity(HeuristicScorer().analyze(symptoms=symptoms)) == expected


def test_heuristic_document_needs_review():
    assert extract_severity(HeuristicScorer().analyze(document='abc')) == 3


def test_get_scorer_backends(settings):
    settings.TRIAGE = {**settings.TRIAGE, 'SCORING_BACKEND': 'heuristic'}
    assert isinstance(get_scorer(), HeuristicScorer)
    settings.TRIAGE = {**settings.TRIAGE, 'SCORING_BACKEND': 'gemini'}
    assert isinstance(get_scorer(), GeminiScorer)
    settings.TRIAGE = {**settings.TRIAGE, 'SCORING_BACKEND': 'oracle'}
    with pytest.raises(ValueError):
        get_scorer()


def test_fallback_analysis_is_labelled():
    text = fallback_analysis('timed out', 5)
    assert text.startswith('[FALLBACK ANALYSIS]')
    assert extract_severity(text) == 5
