"""
Role-Based Access Control для DRF.

Каждый view объявляет модуль и (опционально) уровни для своих actions:

    class StudentViewSet(SchoolScopedViewMixin, viewsets.ModelViewSet):
        permission_classes = [HasModulePermission]
        permission_module = 'students'
        permission_levels = {'import_records': 'write'}
"""
import logging

from rest_framework.permissions import BasePermission

from .roles import has_permission

logger = logging.getLogger(__name__)

ACTION_LEVELS = {
    'list': 'read',
    'retrieve': 'read',
    'create': 'write',
    'update': 'write',
    'partial_update': 'write',
    'destroy': 'delete',
}

METHOD_LEVELS = {
    'GET': 'read',
    'HEAD': 'read',
    'OPTIONS': 'read',
    'POST': 'write',
    'PUT': 'write',
    'PATCH': 'write',
    'DELETE': 'delete',
}


class HasModulePermission(BasePermission):
    """Доступ по таблице ролей: `<permission_module>:<level>`."""

    message = 'Forbidden - insufficient permissions'

    @staticmethod
    def required_level(request, view):
        levels = getattr(view, 'permission_levels', {})
        action = getattr(view, 'action', None)
        if action and action in levels:
            return levels[action]
        if request.method in levels:
            return levels[request.method]
        if action and action in ACTION_LEVELS:
            return ACTION_LEVELS[action]
        return METHOD_LEVELS.get(request.method, 'write')

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        module = getattr(view, 'permission_module', None)
        if module is None:
            logger.error(f'{view.__class__.__name__} has no permission_module')
            return False
        level = self.required_level(request, view)
        allowed = has_permission(request.user, module, level)
        if not allowed:
            logger.info(f'Denied {module}:{level} for user {request.user.pk} ({request.user.role})')
        return allowed

