from django.conf import settings
from django.db import models

from tenants.mixins import SchoolOwnedModel


class Conversation(SchoolOwnedModel):
    """Диалог (direct - ровно два участника) или группа внутри одной школы."""

    class Type(models.TextChoices):
        DIRECT = 'direct', 'Direct'
        GROUP = 'group', 'Group'

    type = models.CharField(max_length=10, choices=Type.choices, default=Type.DIRECT)
    name = models.CharField(max_length=150, blank=True, default='')
    participants = models.ManyToManyField(
        settings.AUTH_USER_MODEL, through='ConversationParticipant', related_name='conversations',
    )
    last_message_content = models.TextField(blank=True, default='')
    last_message_sender = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL,
        null=True, blank=True, related_name='+',
    )
    last_message_at = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL,
        null=True, blank=True, related_name='created_conversations',
    )

    class Meta:
        ordering = ['-updated_at']

    def __str__(self):
        return self.name or f'{self.get_type_display()} #{self.pk}'


class ConversationParticipant(models.Model):
    conversation = models.ForeignKey(Conversation, on_delete=models.CASCADE, related_name='memberships')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='conversation_memberships')
    unread_count = models.PositiveIntegerField(default=0)
    last_read_at = models.DateTimeField(null=True, blank=True)
    joined_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['conversation', 'user'], name='conversation_unique_participant'),
        ]

    def __str__(self):
        return f'{self.user_id} in {self.conversation_id} ({self.unread_count} unread)'


class Message(SchoolOwnedModel):

    class Type(models.TextChoices):
        TEXT = 'text', 'Text'
        IMAGE = 'image', 'Image'
        FILE = 'file', 'File'

    conversation = models.ForeignKey(Conversation, on_delete=models.CASCADE, related_name='messages')
    sender = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='sent_messages')
    content = models.TextField(blank=True, default='')
    type = models.CharField(max_length=10, choices=Type.choices, default=Type.TEXT)
    # [{name, url, type}]
    attachments = models.JSONField(default=list, blank=True)
    read_by = models.ManyToManyField(settings.AUTH_USER_MODEL, related_name='read_messages', blank=True)

    class Meta:
        ordering = ['created_at']
        indexes = [
            models.Index(fields=['conversation', 'created_at'], name='message_conversation_idx'),
        ]

    def __str__(self):
        return f'{self.sender_id}: {self.content[:40]}'
