"""
School mixins - переиспользуемые компоненты для tenant-scoped моделей и views.
"""
import logging

from django.db import models
from rest_framework.exceptions import PermissionDenied

from campusiq.sentry_config import set_user_context

from .context import set_current_school

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════
# MODEL MIXINS
# ═══════════════════════════════════════════════════════════════

class SchoolQuerySet(models.QuerySet):

    def for_school(self, school):
        """Явно отфильтровать по школе. Без школы - пустой queryset."""
        if school is None:
            return self.none()
        return self.filter(school=school)


class SchoolOwnedModel(models.Model):
    """
    Абстрактный mixin - добавляет обязательный FK school и timestamps.

    Использование:
        class Student(SchoolOwnedModel):
            name = models.CharField(...)
    """
    school = models.ForeignKey(
        'tenants.School',
        on_delete=models.CASCADE,
        related_name='%(app_label)s_%(class)ss',
        db_index=True,
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = SchoolQuerySet.as_manager()

    class Meta:
        abstract = True


# ═══════════════════════════════════════════════════════════════
# VIEW MIXINS
# ═══════════════════════════════════════════════════════════════

class SchoolScopedViewMixin:
    """
    Mixin для DRF APIView/ViewSet.

    После JWT-аутентификации эффективная школа = request.user.school.
    Если middleware определил другую школу по hostname - 403.
    Queryset фильтруется по школе, создание проставляет школу.

    Использование:
        class StudentViewSet(SchoolScopedViewMixin, viewsets.ModelViewSet):
            queryset = Student.objects.all()
    """

    school_field = 'school'
    school_required = True

    def initial(self, request, *args, **kwargs):
        super().initial(request, *args, **kwargs)
        user = request.user
        school = getattr(user, 'school', None) if user and user.is_authenticated else None

        host_school = getattr(request._request, 'school', None)
        if host_school is not None and school is not None and host_school.pk != school.pk:
            logger.warning(
                f'School mismatch: user {user.pk} ({school.slug}) on host of {host_school.slug}'
            )
            raise PermissionDenied('This account does not belong to this school.')

        request.school = school
        set_current_school(school)
        set_user_context(user)

        if request.method not in ('GET', 'HEAD', 'OPTIONS') and school is not None:
            logger.info(f'{request.method} {request.path} user={user.pk} school={school.slug}')

    def get_school(self):
        return getattr(self.request, 'school', None)

    def get_queryset(self):
        qs = super().get_queryset()
        school = self.get_school()
        if school is None:
            return qs.none()
        return qs.filter(**{self.school_field: school})

    def require_school(self):
        school = self.get_school()
        if self.school_required and school is None:
            raise PermissionDenied('School is not defined for this account.')
        return school

    def perform_create(self, serializer):
        serializer.save(school=self.require_school())

    def perform_update(self, serializer):
        # Школу при обновлении не меняем
        serializer.save()
