import logging

from django.db.models import Prefetch
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from accounts.models import User
from accounts.permissions import HasModulePermission
from notifications.services import emit_activity
from tenants.mixins import SchoolScopedViewMixin

from .models import Conversation, ConversationParticipant
from .serializers import (
    ConversationSerializer,
    MessageSerializer,
    SendMessageSerializer,
    StartConversationSerializer,
)
from .services import MessagingError, MessagingService

logger = logging.getLogger(__name__)


class ConversationViewSet(SchoolScopedViewMixin,
                          mixins.ListModelMixin,
                          mixins.RetrieveModelMixin,
                          mixins.CreateModelMixin,
                          viewsets.GenericViewSet):
    """
    /api/conversations/ - диалоги текущего пользователя.

    GET  {id}/messages/ - история (отмечает прочитанным),
    POST {id}/messages/ - отправить сообщение.
    """
    queryset = Conversation.objects.all()
    serializer_class = ConversationSerializer
    permission_classes = [HasModulePermission]
    permission_module = 'messaging'

    def get_queryset(self):
        return (
            super().get_queryset()
            .filter(participants=self.request.user)
            .select_related('last_message_sender')
            .prefetch_related('participants', Prefetch('memberships', queryset=ConversationParticipant.objects.all()))
            .order_by('-updated_at')
            .distinct()
        )

    def get_serializer_context(self):
        context = super().get_serializer_context()
        context['user'] = self.request.user
        return context

    def create(self, request, *args, **kwargs):
        school = self.require_school()
        serializer = StartConversationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        ids = set(data['participants']) - {request.user.pk}
        if not ids:
            return Response({'detail': 'At least one other participant is required'},
                            status=status.HTTP_400_BAD_REQUEST)
        others = list(User.objects.filter(school=school, is_active=True, pk__in=ids))
        if len(others) != len(ids):
            return Response({'detail': 'All participants must belong to your school'},
                            status=status.HTTP_400_BAD_REQUEST)

        try:
            conversation, created = MessagingService.start_conversation(
                school, request.user, others, name=data['name'], conversation_type=data.get('type'),
            )
        except MessagingError as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        conversation = self.get_queryset().get(pk=conversation.pk)
        payload = ConversationSerializer(conversation, context=self.get_serializer_context()).data
        if not created:
            return Response(payload)

        emit_activity(
            school,
            title='New conversation',
            message=f'{conversation.name or "Direct message"} conversation created',
            module='messaging', entity_id=conversation.pk, action_url='/messages',
            actor=request.user, type='info',
        )
        return Response(payload, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['get', 'post'])
    def messages(self, request, pk=None):
        conversation = self.get_object()
        context = self.get_serializer_context()

        if request.method == 'GET':
            MessagingService.mark_read(conversation, request.user)
            qs = conversation.messages.select_related('sender').prefetch_related('read_by').order_by('created_at')
            page = self.paginate_queryset(qs)
            if page is not None:
                return self.get_paginated_response(MessageSerializer(page, many=True, context=context).data)
            return Response(MessageSerializer(qs, many=True, context=context).data)

        serializer = SendMessageSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            message = MessagingService.send_message(
                conversation, request.user, data['content'], data['type'], data['attachments'],
            )
        except MessagingError as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)

        emit_activity(
            conversation.school,
            title='New message',
            message=f'{request.user.get_full_name()} sent a message'
                    + (f' in {conversation.name}' if conversation.name else ''),
            module='messaging', entity_id=conversation.pk, action_url=f'/messages/{conversation.pk}',
            actor=request.user, type='info',
        )
        return Response(MessageSerializer(message, context=context).data, status=status.HTTP_201_CREATED)
