"""
School-aware permissions для DRF.
"""
from rest_framework.permissions import BasePermission


class IsSchoolAdmin(BasePermission):
    """Пользователь должен быть администратором своей школы."""

    message = 'School administrator role required.'

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        return request.user.role == 'admin' and request.user.school_id is not None
