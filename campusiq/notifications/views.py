import json
import logging
import time

from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.db.models import Q
from django.http import StreamingHttpResponse
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.renderers import BaseRenderer, JSONRenderer
from rest_framework.response import Response

from accounts.permissions import HasModulePermission
from audit.services import audit_request
from tenants.mixins import SchoolScopedViewMixin

from .models import Notification
from .serializers import NotificationCreateSerializer, NotificationSerializer
from .services import notify_role

logger = logging.getLogger(__name__)


class EventStreamRenderer(BaseRenderer):
    media_type = 'text/event-stream'
    format = 'event-stream'
    charset = 'utf-8'

    def render(self, data, accepted_media_type=None, renderer_context=None):
        # Ошибки (401/403) до открытия потока отдаём как JSON
        if isinstance(data, (str, bytes)):
            return data
        return json.dumps(data, cls=DjangoJSONEncoder).encode(self.charset)


class NotificationViewSet(SchoolScopedViewMixin,
                          mixins.ListModelMixin,
                          mixins.CreateModelMixin,
                          viewsets.GenericViewSet):
    """
    GET  /api/notifications/                   - лента текущего пользователя (+ unread_count)
    POST /api/notifications/                   - broadcast (notifications:write)
    POST /api/notifications/{id}/read/         - отметить прочитанным
    POST /api/notifications/mark-all-read/     - отметить все
    GET  /api/notifications/stream/            - Server-Sent Events
    """
    queryset = Notification.objects.all()
    permission_classes = [HasModulePermission]
    permission_module = 'notifications'
    permission_levels = {
        'mark_read': 'read',
        'mark_all_read': 'read',
        'stream': 'read',
    }

    def get_serializer_class(self):
        if self.action == 'create':
            return NotificationCreateSerializer
        return NotificationSerializer

    def get_serializer_context(self):
        context = super().get_serializer_context()
        context['user_id'] = self.request.user.pk
        return context

    def get_queryset(self):
        qs = super().get_queryset()
        user = self.request.user
        qs = qs.filter(Q(target_role=Notification.Target.ALL) | Q(target_role=user.role))
        if self.action == 'list':
            if self.request.query_params.get('unread') in ('1', 'true'):
                qs = qs.exclude(read_by=user)
            if self.request.query_params.get('module'):
                qs = qs.filter(module=self.request.query_params['module'])
        return qs.prefetch_related('read_by').order_by('-created_at')

    def list(self, request, *args, **kwargs):
        response = super().list(request, *args, **kwargs)
        unread_count = self.get_queryset().exclude(read_by=request.user).count()
        if isinstance(response.data, dict):
            response.data['unread_count'] = unread_count
        else:
            response.data = {'results': response.data, 'unread_count': unread_count}
        return response

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        send_sms = serializer.validated_data.pop('send_sms', False)
        send_email = serializer.validated_data.pop('send_email', False)

        user = request.user
        notification = serializer.save(
            school=self.require_school(),
            created_by=user,
            actor_name=user.get_full_name(),
            actor_role=user.role,
        )
        fanout = notify_role(
            notification.school, notification.target_role,
            notification.title, notification.message,
            sms=send_sms, email=send_email,
        )
        audit_request(request, 'create', 'notification', notification.pk,
                      metadata={'target_role': notification.target_role, 'fanout': fanout})

        data = NotificationSerializer(notification, context=self.get_serializer_context()).data
        data['fanout'] = fanout
        return Response(data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'], url_path='read')
    def mark_read(self, request, pk=None):
        notification = self.get_object()
        notification.read_by.add(request.user)
        return Response({'id': notification.pk, 'is_read': True})

    @action(detail=False, methods=['post'], url_path='mark-all-read')
    def mark_all_read(self, request):
        unread_ids = list(self.get_queryset().exclude(read_by=request.user).values_list('id', flat=True))
        Through = Notification.read_by.through
        Through.objects.bulk_create(
            [Through(notification_id=pk, user_id=request.user.pk) for pk in unread_ids],
            ignore_conflicts=True,
        )
        return Response({'marked': len(unread_ids)})

    @action(detail=False, methods=['get'], renderer_classes=[EventStreamRenderer, JSONRenderer])
    def stream(self, request):
        """
        SSE-лента новых уведомлений.

        Клиент передаёт Last-Event-ID (или ?last_id=) чтобы получить пропущенное;
        без него поток начинается с текущего момента.
        """
        qs = self.get_queryset()
        last_id = request.META.get('HTTP_LAST_EVENT_ID') or request.query_params.get('last_id')
        try:
            last_id = int(last_id)
        except (TypeError, ValueError):
            latest = qs.order_by('-id').values_list('id', flat=True).first()
            last_id = latest or 0

        context = self.get_serializer_context()
        response = StreamingHttpResponse(
            self._event_stream(qs, last_id, context),
            content_type='text/event-stream',
        )
        response['Cache-Control'] = 'no-cache'
        response['X-Accel-Buffering'] = 'no'
        return response

    def _event_stream(self, qs, last_id, context):
        poll = getattr(settings, 'NOTIFICATION_STREAM_POLL_SECONDS', 5)
        deadline = time.monotonic() + getattr(settings, 'NOTIFICATION_STREAM_MAX_SECONDS', 300)

        yield 'retry: 5000\n\n'
        while True:
            for notification in qs.filter(id__gt=last_id).order_by('id')[:50]:
                payload = json.dumps(NotificationSerializer(notification, context=context).data, cls=DjangoJSONEncoder)
                yield f'id: {notification.pk}\nevent: notification\ndata: {payload}\n\n'
                last_id = notification.pk
            if time.monotonic() >= deadline:
                break
            yield ': heartbeat\n\n'
            time.sleep(poll)
