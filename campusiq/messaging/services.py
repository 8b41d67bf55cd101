import logging

from django.db import transaction
from django.db.models import Count, F
from django.utils import timezone

from .models import Conversation, ConversationParticipant, Message

logger = logging.getLogger(__name__)


class MessagingError(Exception):
    """Base exception for messaging errors."""
    pass


class EmptyMessageError(MessagingError):
    pass


class InvalidConversationError(MessagingError):
    """Direct-диалог возможен только между двумя участниками."""
    pass


def find_direct_conversation(school, user_a, user_b):
    return (
        Conversation.objects
        .filter(school=school, type=Conversation.Type.DIRECT, participants=user_a)
        .filter(participants=user_b)
        .annotate(member_count=Count('memberships', distinct=True))
        .filter(member_count=2)
        .first()
    )


class MessagingService:

    @staticmethod
    @transaction.atomic
    def start_conversation(school, creator, others, name='', conversation_type=None):
        """
        Начать диалог. Для двух участников существующий direct-диалог
        переиспользуется.

        Returns:
            (Conversation, created: bool)

        Raises:
            InvalidConversationError: type=direct при числе участников != 2
        """
        members = [creator] + [u for u in others if u.pk != creator.pk]
        if conversation_type is None:
            conversation_type = Conversation.Type.GROUP if len(members) > 2 else Conversation.Type.DIRECT
        elif conversation_type == Conversation.Type.DIRECT and len(members) != 2:
            raise InvalidConversationError('A direct conversation must have exactly two participants')

        if conversation_type == Conversation.Type.DIRECT:
            existing = find_direct_conversation(school, members[0], members[1])
            if existing is not None:
                return existing, False

        conversation = Conversation.objects.create(
            school=school, type=conversation_type, name=name, created_by=creator,
        )
        ConversationParticipant.objects.bulk_create([
            ConversationParticipant(conversation=conversation, user=user) for user in members
        ])
        logger.info(f'Conversation {conversation.pk} ({conversation_type}) created by {creator.pk}')
        return conversation, True

    @staticmethod
    @transaction.atomic
    def send_message(conversation, sender, content='', message_type=Message.Type.TEXT, attachments=None):
        if not content.strip() and not attachments:
            raise EmptyMessageError('Message content is required')

        message = Message.objects.create(
            school=conversation.school,
            conversation=conversation,
            sender=sender,
            content=content,
            type=message_type,
            attachments=attachments or [],
        )
        message.read_by.add(sender)

        conversation.last_message_content = content[:500] or f'[{message_type}]'
        conversation.last_message_sender = sender
        conversation.last_message_at = message.created_at
        conversation.save(update_fields=[
            'last_message_content', 'last_message_sender', 'last_message_at', 'updated_at',
        ])

        ConversationParticipant.objects.filter(conversation=conversation).exclude(user=sender).update(
            unread_count=F('unread_count') + 1,
        )
        return message

    @staticmethod
    def mark_read(conversation, user):
        """Отметить сообщения прочитанными и сбросить счётчик непрочитанных."""
        unread_ids = list(
            conversation.messages.exclude(sender=user).exclude(read_by=user).values_list('pk', flat=True)
        )
        if unread_ids:
            through = Message.read_by.through
            through.objects.bulk_create(
                [through(message_id=pk, user_id=user.pk) for pk in unread_ids],
                ignore_conflicts=True,
            )
        ConversationParticipant.objects.filter(conversation=conversation, user=user).update(
            unread_count=0, last_read_at=timezone.now(),
        )
        return len(unread_ids)
