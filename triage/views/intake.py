"""
Patient intake endpoints.

Patients upload a medical report image or describe their symptoms; the
entry is scored and placed in the hospital queue before the response is
returned, so the reply always carries a queue position.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import UserRateThrottle

from ..models import QueueEntry, User
from ..permissions import IsPatientRole
from ..serializers.intake import ReportUploadSerializer, SymptomsSubmitSerializer
from ..services.admission import admit, serialize_entry


class IntakeUploadThrottle(UserRateThrottle):
    scope = 'intake_upload'


def _admission_response(entry: QueueEntry) -> Response:
    data = serialize_entry(entry)
    data['hospitalName'] = entry.hospital.name
    return Response(data, status=201)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPatientRole])
@throttle_classes([IntakeUploadThrottle])
def report_upload(request):
    """Admit an uploaded medical report (base64 image) into a hospital queue."""
    s = ReportUploadSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    user: User = request.user  # type: ignore[assignment]
    entry = admit(
        s.validated_data['hospitalId'],
        user.id,
        document=s.validated_data['image'],
        operator=user,
    )
    return _admission_response(entry)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPatientRole])
@throttle_classes([IntakeUploadThrottle])
def symptoms_submit(request):
    """Admit a free-text symptom description into a hospital queue."""
    s = SymptomsSubmitSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    user: User = request.user  # type: ignore[assignment]
    entry = admit(
        s.validated_data['hospitalId'],
        user.id,
        symptoms=s.validated_data['symptoms'],
        operator=user,
    )
    return _admission_response(entry)
