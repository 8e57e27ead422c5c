"""
Queue endpoints for hospital staff and patients.

Staff read their hospital's queue (served from the short-lived cache)
and complete entries, which closes the gap behind them.  Patients can
look up their own entry.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework import status

from ..exceptions import NotFound
from ..models import QueueEntry, User
from ..permissions import IsPatientRole, IsStaffRole, can_manage_hospital
from ..serializers.intake import CompleteSerializer
from ..services.admission import get_queue, serialize_entry
from ..services.completion import complete
from ..services.staff import list_available_doctors


def _staff_hospital_id(request) -> str:
    user: User = request.user  # type: ignore[assignment]
    hospital_id = user.hospital_id
    if user.role == 'admin':
        hospital_id = request.query_params.get('hospitalId') or hospital_id
    if not hospital_id:
        raise NotFound('Hospital ID not found for this account')
    return hospital_id


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffRole])
def hospital_queue(request):
    """Return the active queue of the staff member's hospital in position order."""
    hospital_id = _staff_hospital_id(request)
    count, items = get_queue(hospital_id)
    return Response({'ok': True, 'hospitalId': hospital_id, 'count': count, 'data': items})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffRole])
def hospital_doctors(request):
    """List available doctors, optionally filtered by ``specialty``."""
    hospital_id = _staff_hospital_id(request)
    specialty = (request.query_params.get('specialty') or '').strip() or None
    return Response({'ok': True, 'data': list_available_doctors(hospital_id, specialty=specialty)})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsStaffRole])
def entry_complete(request, entry_id: str):
    """Staff mark a queued entry as seen."""
    s = CompleteSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    hospital_id = (
        QueueEntry.objects.filter(id=entry_id).values_list('hospital_id', flat=True).first()
    )
    if hospital_id is None:
        raise NotFound('Report not found')
    if not can_manage_hospital(request.user, hospital_id):
        raise PermissionDenied("This report doesn't belong to your hospital")
    complete(entry_id, operator=request.user, reason=s.validated_data.get('reason') or 'completed')
    return Response({'ok': True, 'status': QueueEntry.STATUS_COMPLETED}, status=status.HTTP_200_OK)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPatientRole])
def my_entry(request):
    """Return one of the patient's own entries with its transition history."""
    entry_id = request.query_params.get('id')
    entry = (
        QueueEntry.objects.select_related('hospital', 'subject', 'assigned_staff')
        .filter(id=entry_id).first()
    )
    if not entry:
        raise NotFound('not found')
    if entry.subject_id != request.user.id:
        raise PermissionDenied('forbidden')
    data = serialize_entry(entry)
    data['hospitalName'] = entry.hospital.name
    data['transitionHistory'] = [
        {
            'from': t.from_status,
            'to': t.to_status,
            'timestamp': t.timestamp.isoformat(),
            'reason': t.reason,
        }
        for t in entry.transitions.all().order_by('timestamp', 'id')
    ]
    return Response(data)
