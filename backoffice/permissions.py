"""
Role based permission classes for the back-office API.
"""
from rest_framework.permissions import BasePermission

ADMIN_ROLES = {"admin"}
PHARMACY_ROLES = {"admin", "pharmacist"}
SCHEDULING_ROLES = {"admin", "receptionist"}


def has_role(user, roles) -> bool:
    return bool(user and user.is_authenticated and getattr(user, "role", None) in roles)


class IsAdminRole(BasePermission):
    """Allow access only to administrators."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return has_role(getattr(request, "user", None), ADMIN_ROLES)


class IsPharmacyStaff(BasePermission):
    """Administrators and pharmacists: billing, inventory and purchasing."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return has_role(getattr(request, "user", None), PHARMACY_ROLES)


class IsSchedulingStaff(BasePermission):
    """Administrators and receptionists: staff schedules."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return has_role(getattr(request, "user", None), SCHEDULING_ROLES)
