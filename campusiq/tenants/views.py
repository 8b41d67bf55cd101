"""
API views для школы.

SchoolConfigView - публичный endpoint, отдаёт конфиг школы для frontend.
SchoolView - детали и настройки школы для администратора.
"""
import logging

from django.conf import settings as django_settings
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from audit.services import audit_request, build_changes

from .mixins import SchoolScopedViewMixin
from .permissions import IsSchoolAdmin
from .serializers import SchoolSerializer

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ['name', 'school_type', 'board', 'address', 'phone', 'email', 'logo_url', 'timezone', 'metadata']


class SchoolConfigView(APIView):
    """
    GET /api/school/config/

    Публичный конфиг текущей школы: название, цвета, логотип, фичи.
    Школа определяется SchoolMiddleware по hostname, иначе по JWT пользователя.
    """
    permission_classes = [AllowAny]
    # Без throttle - endpoint дёргается при каждой загрузке страницы
    throttle_classes = []

    def get(self, request):
        school = getattr(request, 'school', None)
        if school is None and request.user and request.user.is_authenticated:
            school = request.user.school

        if school:
            return Response(school.to_frontend_config())

        return Response({
            'id': None,
            'slug': None,
            'name': 'CampusIQ',
            'logo_url': '',
            'primary_color': '#2563eb',
            'secondary_color': '#f5f5f5',
            'currency': django_settings.DEFAULT_CURRENCY,
            'features': {},
        })


class SchoolView(SchoolScopedViewMixin, APIView):
    """
    GET   /api/school/  - детали школы, счётчики, лимиты
    PATCH /api/school/  - обновление профиля школы
    """
    permission_classes = [IsSchoolAdmin]

    def _stats(self, school):
        from accounts.models import User
        from students.models import Student

        users = User.objects.filter(school=school, is_active=True)
        return {
            'students_count': Student.objects.filter(school=school, status='active').count(),
            'teachers_count': users.filter(role='teacher').count(),
            'users_count': users.count(),
        }

    def get(self, request):
        school = self.require_school()
        data = SchoolSerializer(school).data
        data['stats'] = self._stats(school)
        data['is_trial_expired'] = school.is_trial_expired
        return Response(data)

    def patch(self, request):
        school = self.require_school()
        old = {field: getattr(school, field) for field in EDITABLE_FIELDS}
        serializer = SchoolSerializer(school, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()

        changes = build_changes(old, serializer.data, EDITABLE_FIELDS)
        audit_request(request, 'update', 'school', school.pk, changes=changes)
        logger.info(f'School {school.slug} updated by user {request.user.pk}')

        data = serializer.data
        data['stats'] = self._stats(school)
        return Response(data)
