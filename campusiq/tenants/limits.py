"""
School resource limit enforcement.
"""
from django.apps import apps
from rest_framework.exceptions import PermissionDenied

from .models import SchoolResourceLimits


class SchoolLimitError(PermissionDenied):
    """Превышен лимит ресурсов школы."""
    pass


def _count_current(school, resource_name):
    if resource_name == 'max_students':
        Student = apps.get_model('students', 'Student')
        return Student.objects.filter(school=school, status='active').count()
    if resource_name == 'max_teachers':
        User = apps.get_model('accounts', 'User')
        return User.objects.filter(school=school, role='teacher', is_active=True).count()
    return None


def check_school_limit(school, resource_name, current_count=None):
    """
    Проверить, не достигнут ли лимит ресурса школы.

    Args:
        school: School instance
        resource_name: поле SchoolResourceLimits ('max_students', 'max_teachers')
        current_count: текущее количество (если None - считаем из БД)

    Raises:
        SchoolLimitError если лимит достигнут
    """
    if school is None:
        return

    try:
        limits = school.resource_limits
    except SchoolResourceLimits.DoesNotExist:
        return

    max_value = getattr(limits, resource_name, None)
    if max_value is None:
        return

    if current_count is None:
        current_count = _count_current(school, resource_name)
        if current_count is None:
            return

    if current_count >= max_value:
        resource_label = resource_name.replace('max_', '').replace('_', ' ')
        raise SchoolLimitError(
            f'Plan limit reached for {resource_label}: {current_count}/{max_value}. '
            f'Upgrade the plan to add more.'
        )
