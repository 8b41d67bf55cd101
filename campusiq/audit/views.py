from datetime import datetime, time

from django.utils import timezone
from rest_framework import viewsets
from rest_framework.exceptions import ValidationError

from campusiq.query import query_date
from tenants.mixins import SchoolScopedViewMixin
from tenants.permissions import IsSchoolAdmin

from .models import AuditLog
from .serializers import AuditLogSerializer


class AuditLogViewSet(SchoolScopedViewMixin, viewsets.ReadOnlyModelViewSet):
    """
    GET /api/audit-logs/?entity=&action=&user_id=&date_from=&date_to=

    Только администратор школы.
    """
    queryset = AuditLog.objects.select_related('user')
    serializer_class = AuditLogSerializer
    permission_classes = [IsSchoolAdmin]

    def get_queryset(self):
        qs = super().get_queryset()
        params = self.request.query_params

        if params.get('entity'):
            qs = qs.filter(entity=params['entity'])
        if params.get('action'):
            qs = qs.filter(action=params['action'])
        if params.get('user_id'):
            if not params['user_id'].isdigit():
                raise ValidationError({'user_id': 'Expected a numeric user id.'})
            qs = qs.filter(user_id=int(params['user_id']))
        if params.get('entity_id'):
            qs = qs.filter(entity_id=params['entity_id'])

        tz = timezone.get_current_timezone()
        if params.get('date_from'):
            start = query_date(params, 'date_from')
            qs = qs.filter(created_at__gte=timezone.make_aware(datetime.combine(start, time.min), tz))
        if params.get('date_to'):
            end = query_date(params, 'date_to')
            qs = qs.filter(created_at__lte=timezone.make_aware(datetime.combine(end, time.max), tz))

        return qs.order_by('-created_at')
