"""
Integration tests for the intake API.

These exercise the HTTP surface end to end: patient intake, staff
queue reads, completion with hospital isolation, and the error
envelope.  Scoring uses the offline heuristic backend.
"""

from django.conf import settings
from django.test import override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from ..models import Doctor, Hospital, QueueEntry, User

IMAGE = 'iVBORw0KGgo' + 'A' * 200


class IntakeAPITests(APITestCase):
    def setUp(self) -> None:
        override = override_settings(TRIAGE={**settings.TRIAGE, 'SCORING_BACKEND': 'heuristic'})
        override.enable()
        self.addCleanup(override.disable)

        self.hospital1 = Hospital.objects.create(id='h1', name='City General')
        self.hospital2 = Hospital.objects.create(id='h2', name='Riverside Clinic')
        self.cardiologist = Doctor.objects.create(hospital=self.hospital1, name='Dr. Heart', specialty='Cardiology')

        self.staff1 = User.objects.create(username='staff1', role='staff', hospital=self.hospital1)
        self.staff2 = User.objects.create(username='staff2', role='staff', hospital=self.hospital2)
        self.admin = User.objects.create(username='admin', role='admin')
        self.patient1 = User.objects.create(username='patient1', role='patient', first_name='Asha')
        self.patient2 = User.objects.create(username='patient2', role='patient')

        self.client = APIClient()

    def _submit(self, patient, symptoms, hospital_id='h1'):
        self.client.force_authenticate(user=patient)
        return self.client.post(reverse('symptoms_submit'), {'hospitalId': hospital_id, 'symptoms': symptoms}, format='json')

    def test_symptoms_submit_returns_queue_position(self):
        resp = self._submit(self.patient1, 'crushing chest pain since morning')
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        self.assertEqual(resp.data['status'], 'QUEUED')
        self.assertEqual(resp.data['queuePosition'], 1)
        self.assertEqual(resp.data['severity'], 9)
        self.assertEqual(resp.data['specialty'], 'Cardiology')
        self.assertEqual(resp.data['doctor']['id'], self.cardiologist.id)
        self.assertEqual(resp.data['hospitalName'], 'City General')
        self.assertFalse(resp.data['analysisIsFallback'])

    def test_symptoms_are_sanitized(self):
        resp = self._submit(self.patient1, '<script>alert(1)</script>bad cough')
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        entry = QueueEntry.objects.get(id=resp.data['id'])
        self.assertNotIn('<script>', entry.symptoms)

    def test_report_upload(self):
        self.client.force_authenticate(user=self.patient1)
        resp = self.client.post(reverse('report_upload'), {'hospitalId': 'h1', 'image': IMAGE}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        self.assertEqual(resp.data['source'], 'document')
        self.assertEqual(resp.data['severity'], 3)
        self.assertEqual(resp.data['queuePosition'], 1)

    def test_report_upload_rejects_short_image(self):
        self.client.force_authenticate(user=self.patient1)
        resp = self.client.post(reverse('report_upload'), {'hospitalId': 'h1', 'image': 'abc'}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(resp.data['ok'])
        self.assertFalse(QueueEntry.objects.exists())

    def test_unknown_hospital_is_404_envelope(self):
        resp = self._submit(self.patient1, 'mild cough', hospital_id='nope')
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(resp.data['error']['code'], 'not_found')

    def test_staff_cannot_submit_intake(self):
        resp = self._submit(self.staff1, 'mild cough')
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

    def test_unauthenticated_is_rejected(self):
        resp = self.client.get(reverse('hospital_queue'))
        self.assertIn(resp.status_code, (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN))

    def test_staff_queue_is_severity_ordered(self):
        low = self._submit(self.patient1, 'need a prescription refill').data
        high = self._submit(self.patient2, 'sudden seizure').data
        self.client.force_authenticate(user=self.staff1)
        resp = self.client.get(reverse('hospital_queue'))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data['count'], 2)
        self.assertEqual([i['id'] for i in resp.data['data']], [high['id'], low['id']])
        self.assertEqual([i['queuePosition'] for i in resp.data['data']], [1, 2])

    def test_staff_queue_is_hospital_scoped(self):
        self._submit(self.patient1, 'mild cough')
        self.client.force_authenticate(user=self.staff2)
        resp = self.client.get(reverse('hospital_queue'))
        self.assertEqual(resp.data['count'], 0)

    def test_admin_can_pick_hospital(self):
        self._submit(self.patient1, 'mild cough')
        self.client.force_authenticate(user=self.admin)
        resp = self.client.get(reverse('hospital_queue'), {'hospitalId': 'h1'})
        self.assertEqual(resp.data['count'], 1)

    def test_patient_cannot_read_hospital_queue(self):
        self.client.force_authenticate(user=self.patient1)
        resp = self.client.get(reverse('hospital_queue'))
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

    def test_complete_compacts_queue(self):
        first = self._submit(self.patient1, 'sudden seizure').data
        second = self._submit(self.patient2, 'mild cough').data
        self.client.force_authenticate(user=self.staff1)
        resp = self.client.post(reverse('entry_complete', args=[first['id']]), {'reason': 'seen'}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data, {'ok': True, 'status': 'COMPLETED'})

        queue = self.client.get(reverse('hospital_queue')).data
        self.assertEqual(queue['count'], 1)
        self.assertEqual(queue['data'][0]['id'], second['id'])
        self.assertEqual(queue['data'][0]['queuePosition'], 1)

    def test_complete_other_hospital_forbidden(self):
        entry = self._submit(self.patient1, 'mild cough').data
        self.client.force_authenticate(user=self.staff2)
        resp = self.client.post(reverse('entry_complete', args=[entry['id']]), {}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(QueueEntry.objects.get(id=entry['id']).status, 'QUEUED')

    def test_complete_unknown_and_repeated(self):
        entry = self._submit(self.patient1, 'mild cough').data
        self.client.force_authenticate(user=self.staff1)
        resp = self.client.post(reverse('entry_complete', args=['missing']), {}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(resp.data['error']['code'], 'not_found')

        url = reverse('entry_complete', args=[entry['id']])
        self.assertEqual(self.client.post(url, {}, format='json').status_code, status.HTTP_200_OK)
        self.assertEqual(self.client.post(url, {}, format='json').status_code, status.HTTP_404_NOT_FOUND)

    def test_patient_sees_own_entry_with_history(self):
        entry = self._submit(self.patient1, 'mild cough').data
        resp = self.client.get(reverse('my_entry'), {'id': entry['id']})
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data['subjectName'], 'Asha')
        self.assertEqual([(t['from'], t['to']) for t in resp.data['transitionHistory']], [('PENDING', 'QUEUED')])

        self.client.force_authenticate(user=self.patient2)
        resp = self.client.get(reverse('my_entry'), {'id': entry['id']})
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

    def test_doctors_listing(self):
        Doctor.objects.create(hospital=self.hospital1, name='Dr. Skin', specialty='Dermatology')
        self.client.force_authenticate(user=self.staff1)
        resp = self.client.get(reverse('hospital_doctors'), {'specialty': 'Cardiology'})
        self.assertEqual([d['name'] for d in resp.data['data']], ['Dr. Heart'])

    def test_healthz(self):
        resp = self.client.get('/healthz')
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertTrue(resp.json()['ok'])
        self.assertTrue(resp.json()['cache'])

    def test_metrics_exposes_admission_counters(self):
        self._submit(self.patient1, 'mild cough')
        self.client.force_authenticate(user=None)
        resp = self.client.get('/metrics')
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertIn(b'triage_admissions_total', resp.content)
