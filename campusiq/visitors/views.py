import logging

from django.db.models import Q
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from accounts.models import User
from accounts.permissions import HasModulePermission
from audit.services import audit_request
from campusiq.query import query_date
from notifications.services import emit_activity, notify_visitor_arrival
from tenants.mixins import SchoolScopedViewMixin

from .models import Visitor
from .serializers import VisitorSerializer
from .services import VisitorError, VisitorService

logger = logging.getLogger(__name__)


class VisitorViewSet(SchoolScopedViewMixin,
                     mixins.ListModelMixin,
                     mixins.RetrieveModelMixin,
                     mixins.CreateModelMixin,
                     viewsets.GenericViewSet):
    """
    /api/visitors/ - журнал посетителей.

    POST {pre_register: true} - предварительная регистрация без check-in.
    POST {id}/check_in/, {id}/check_out/, {id}/cancel/ - смена статуса.
    """
    queryset = Visitor.objects.select_related('student')
    serializer_class = VisitorSerializer
    permission_classes = [HasModulePermission]
    permission_module = 'visitors'
    permission_levels = {
        'check_in': 'write',
        'check_out': 'write',
        'cancel': 'write',
    }

    def get_serializer_context(self):
        context = super().get_serializer_context()
        context['school'] = getattr(self.request, 'school', None)
        return context

    def get_queryset(self):
        qs = super().get_queryset()
        if self.action != 'list':
            return qs
        params = self.request.query_params
        if params.get('status'):
            qs = qs.filter(status=params['status'])
        day = query_date(params, 'date')
        if day:
            qs = qs.filter(created_at__date=day)
        search = params.get('search', '').strip()
        if search:
            qs = qs.filter(
                Q(visitor_name__icontains=search) | Q(visitor_phone__icontains=search)
                | Q(host_name__icontains=search) | Q(badge_number__iexact=search)
            )
        return qs.order_by('-created_at')

    def list(self, request, *args, **kwargs):
        response = super().list(request, *args, **kwargs)
        stats = VisitorService.today_stats(self.require_school())
        if isinstance(response.data, dict):
            response.data['stats'] = stats
        else:
            response.data = {'results': response.data, 'stats': stats}
        return response

    def create(self, request, *args, **kwargs):
        school = self.require_school()
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        pre_register = data.pop('pre_register', False)

        visitor = VisitorService.register(school, data, request.user, pre_register=pre_register)

        audit_request(request, 'create', 'visitor', visitor.pk, metadata={
            'visitor_name': visitor.visitor_name, 'badge_number': visitor.badge_number, 'status': visitor.status,
        })
        self._announce(request, visitor, pre_register=pre_register)
        return Response(self.get_serializer(visitor).data, status=status.HTTP_201_CREATED)

    def _announce(self, request, visitor, pre_register=False):
        verb = 'been pre-registered' if pre_register else 'arrived'
        meeting = f' (Meeting: {visitor.host_name})' if visitor.host_name else ''
        for role in ('admin', 'teacher'):
            emit_activity(
                visitor.school,
                title='Visitor arrival' if not pre_register else 'Visitor pre-registered',
                message=f'{visitor.visitor_name} has {verb} - Purpose: {visitor.purpose}{meeting}',
                module='visitors', entity_id=visitor.pk, action_url='/visitors',
                actor=request.user, type='info', target_role=role,
            )
        if pre_register:
            return

        if visitor.student_id and visitor.student.parent_phone:
            notify_visitor_arrival(visitor.student.parent_phone, visitor.visitor_name, visitor.purpose)
        if visitor.host_name:
            host = (
                User.objects
                .filter(school=visitor.school, is_active=True, name__iexact=visitor.host_name)
                .exclude(phone='')
                .first()
            )
            if host is not None:
                notify_visitor_arrival(host.phone, visitor.visitor_name, visitor.purpose)

    def _transition(self, request, action_name):
        visitor = self.get_object()
        old_status = visitor.status
        try:
            visitor = VisitorService.transition(visitor, action_name)
        except VisitorError as e:
            return Response({'detail': str(e)}, status=status.HTTP_409_CONFLICT)

        audit_request(request, 'update', 'visitor', visitor.pk,
                      changes={'status': {'old': old_status, 'new': visitor.status}})
        if action_name == 'check_in':
            self._announce(request, visitor)
        return Response(self.get_serializer(visitor).data)

    @action(detail=True, methods=['post'])
    def check_in(self, request, pk=None):
        return self._transition(request, 'check_in')

    @action(detail=True, methods=['post'])
    def check_out(self, request, pk=None):
        return self._transition(request, 'check_out')

    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        return self._transition(request, 'cancel')
