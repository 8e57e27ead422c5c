"""
Database models for the patient intake service.

These models capture hospitals, their users and staff, and the queue
entries created when a patient uploads a report or describes symptoms.
A queue entry moves ``PENDING`` → ``QUEUED`` → ``COMPLETED``; only
``QUEUED`` entries hold a ``queue_position`` and the positions of one
hospital always form the dense sequence ``1..N``.
"""
from __future__ import annotations

import uuid
from django.contrib.auth.models import AbstractUser
from django.db import models


def _entry_id() -> str:
    return uuid.uuid4().hex


class Hospital(models.Model):
    """A hospital owns exactly one active patient queue."""
    id = models.CharField(
        max_length=50,
        primary_key=True,
        help_text="Unique identifier for the hospital (e.g. 'h1')",
    )
    name = models.CharField(max_length=255)
    address = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"{self.name} ({self.id})"


class User(AbstractUser):
    """Custom user model with a role and optional hospital binding.

    Patients submit reports and symptoms.  Staff and admins are bound to
    a hospital and work through its queue.
    """
    ROLE_PATIENT = 'patient'
    ROLE_STAFF = 'staff'
    ROLE_ADMIN = 'admin'
    ROLE_CHOICES = [
        (ROLE_PATIENT, 'Patient'),
        (ROLE_STAFF, 'Hospital staff'),
        (ROLE_ADMIN, 'Administrator'),
    ]
    role = models.CharField(max_length=10, choices=ROLE_CHOICES, default=ROLE_PATIENT)
    hospital = models.ForeignKey(
        Hospital, null=True, blank=True, on_delete=models.SET_NULL, related_name='users', db_index=True
    )

    def __str__(self) -> str:
        return f"{self.username} ({self.role})"


class Doctor(models.Model):
    """A doctor that may be auto-assigned to entries of their specialty."""
    hospital = models.ForeignKey(Hospital, on_delete=models.CASCADE, related_name='doctors')
    name = models.CharField(max_length=255)
    specialty = models.CharField(max_length=64, db_index=True)
    available = models.BooleanField(default=True, db_index=True)

    class Meta:
        indexes = [
            models.Index(fields=['hospital', 'specialty', 'available'], name='triage_doct_hospita_6d1f2e_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.specialty})"


class QueueEntry(models.Model):
    STATUS_PENDING = 'PENDING'
    STATUS_QUEUED = 'QUEUED'
    STATUS_COMPLETED = 'COMPLETED'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_QUEUED, 'Queued'),
        (STATUS_COMPLETED, 'Completed'),
    ]
    SOURCE_DOCUMENT = 'document'
    SOURCE_SYMPTOMS = 'symptoms'
    SOURCE_CHOICES = [
        (SOURCE_DOCUMENT, 'Document'),
        (SOURCE_SYMPTOMS, 'Symptoms'),
    ]

    id = models.CharField(max_length=32, primary_key=True, default=_entry_id, editable=False)
    hospital = models.ForeignKey(Hospital, on_delete=models.CASCADE, related_name='queue_entries')
    subject = models.ForeignKey(User, on_delete=models.CASCADE, related_name='queue_entries')
    source = models.CharField(max_length=10, choices=SOURCE_CHOICES, default=SOURCE_DOCUMENT)
    document_ref = models.CharField(max_length=64, blank=True)
    symptoms = models.TextField(blank=True)
    # Severity is written once, together with the PENDING → QUEUED transition.
    severity = models.PositiveSmallIntegerField(null=True, blank=True)
    analysis = models.TextField(blank=True)
    analysis_is_fallback = models.BooleanField(default=False)
    specialty = models.CharField(max_length=64, blank=True)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    queue_position = models.PositiveIntegerField(null=True, blank=True)
    assigned_staff = models.ForeignKey(
        Doctor, null=True, blank=True, on_delete=models.SET_NULL, related_name='queue_entries'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    processed_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        indexes = [
            models.Index(fields=['hospital', 'status', 'queue_position'], name='triage_queu_hospita_8c2a41_idx'),
            models.Index(fields=['subject', 'created_at'], name='triage_queu_subject_3b7e90_idx'),
        ]

    def __str__(self) -> str:
        return f"Entry {self.id} ({self.status}) @ {self.hospital_id}#{self.queue_position}"


class QueueEntryTransition(models.Model):
    """Records a status transition for a queue entry."""
    entry = models.ForeignKey(QueueEntry, related_name='transitions', on_delete=models.CASCADE)
    from_status = models.CharField(max_length=10, null=True, blank=True)
    to_status = models.CharField(max_length=10)
    operator = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='queue_transitions')
    timestamp = models.DateTimeField(auto_now_add=True)
    reason = models.CharField(max_length=255, blank=True)

    def __str__(self) -> str:
        return f"{self.entry_id}: {self.from_status} → {self.to_status}"
