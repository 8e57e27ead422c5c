import pytest
from django.urls import reverse
from rest_framework.authtoken.models import Token
from rest_framework.test import APIClient

from triage.models import QueueEntry, User

pytestmark = pytest.mark.django_db


def test_token_header_authenticates(hospital):
    staff = User.objects.create(username='s1', role='staff', hospital=hospital)
    token = Token.objects.create(user=staff)
    client = APIClient()
    client.credentials(HTTP_AUTHORIZATION=f'Token {token.key}')
    r = client.get(reverse('hospital_queue'))
    assert r.status_code == 200
    assert r.data['hospitalId'] == hospital.id


def test_bad_token_is_rejected(hospital):
    client = APIClient()
    client.credentials(HTTP_AUTHORIZATION='Token not-a-real-token')
    r = client.get(reverse('hospital_queue'))
    assert r.status_code == 401
    assert r.data['ok'] is False


def test_role_in_payload_cannot_escalate(hospital, patient):
    client = APIClient()
    client.force_authenticate(user=patient)
    r = client.post(reverse('symptoms_submit'),
                    {'hospitalId': hospital.id, 'symptoms': 'mild cough', 'role': 'admin'}, format='json')
    assert r.status_code == 201
    patient.refresh_from_db()
    assert patient.role == 'patient'
    r = client.get(reverse('hospital_queue'))
    assert r.status_code == 403


def test_staff_without_hospital_gets_404(hospital):
    staff = User.objects.create(username='s2', role='staff')
    client = APIClient()
    client.force_authenticate(user=staff)
    r = client.get(reverse('hospital_queue'))
    assert r.status_code == 404
    assert r.data['error']['code'] == 'not_found'


def test_patient_cannot_complete_entries(hospital, patient):
    client = APIClient()
    client.force_authenticate(user=patient)
    r = client.post(reverse('symptoms_submit'), {'hospitalId': hospital.id, 'symptoms': 'mild cough'}, format='json')
    r = client.post(reverse('entry_complete', args=[r.data['id']]), {}, format='json')
    assert r.status_code == 403
    assert QueueEntry.objects.get().status == QueueEntry.STATUS_QUEUED


def test_bearer_keyword_is_accepted(hospital):
    staff = User.objects.create(username='s3', role='staff', hospital=hospital)
    token = Token.objects.create(user=staff)
    client = APIClient()
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {token.key}')
    assert client.get(reverse('hospital_queue')).status_code == 200


def test_malformed_token_header_is_rejected(hospital):
    client = APIClient()
    client.credentials(HTTP_AUTHORIZATION='Token two parts')
    r = client.get(reverse('hospital_queue'))
    assert r.status_code == 401
    assert r['WWW-Authenticate'] == 'Token'


def test_account_without_known_role_is_rejected(hospital):
    odd = User.objects.create(username='legacy', role='core', hospital=hospital)
    token = Token.objects.create(user=odd)
    client = APIClient()
    client.credentials(HTTP_AUTHORIZATION=f'Token {token.key}')
    r = client.get(reverse('hospital_queue'))
    assert r.status_code == 401
    assert r.data['error']['code'] == 'authentication_failed'
