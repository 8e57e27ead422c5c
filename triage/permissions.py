"""
Role based access control for the queue endpoints.
"""
from rest_framework.permissions import BasePermission

STAFF_ROLES = {"staff", "admin"}


class IsStaffRole(BasePermission):
    """Allow access only to hospital staff and administrators."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        user = getattr(request, "user", None)
        return bool(user and user.is_authenticated and getattr(user, "role", None) in STAFF_ROLES)


class IsPatientRole(BasePermission):
    """Allow access only to users with the patient role."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        user = getattr(request, "user", None)
        return bool(user and user.is_authenticated and getattr(user, "role", None) == "patient")


def can_manage_hospital(user, hospital_id: str) -> bool:
    """Admins manage every hospital; staff only the one they are bound to."""
    if getattr(user, "role", None) == "admin":
        return True
    return bool(getattr(user, "hospital_id", None)) and user.hospital_id == hospital_id
