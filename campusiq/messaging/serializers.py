from rest_framework import serializers

from .models import Conversation, Message


class ParticipantSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    name = serializers.CharField()
    email = serializers.EmailField()
    role = serializers.CharField()


class ConversationSerializer(serializers.ModelSerializer):
    participants = ParticipantSerializer(many=True, read_only=True)
    last_message = serializers.SerializerMethodField()
    unread_count = serializers.SerializerMethodField()

    class Meta:
        model = Conversation
        fields = [
            'id', 'type', 'name', 'participants', 'last_message', 'unread_count',
            'created_by', 'created_at', 'updated_at',
        ]
        read_only_fields = fields

    def get_last_message(self, obj):
        if obj.last_message_at is None:
            return None
        sender = obj.last_message_sender
        return {
            'content': obj.last_message_content,
            'sender_id': sender.pk if sender else None,
            'sender_name': sender.get_full_name() if sender else '',
            'created_at': obj.last_message_at,
        }

    def get_unread_count(self, obj):
        user = self.context.get('user')
        if user is None:
            return 0
        for membership in obj.memberships.all():
            if membership.user_id == user.pk:
                return membership.unread_count
        return 0


class StartConversationSerializer(serializers.Serializer):
    participants = serializers.ListField(child=serializers.IntegerField(min_value=1), allow_empty=False)
    name = serializers.CharField(max_length=150, required=False, allow_blank=True, default='')
    type = serializers.ChoiceField(choices=Conversation.Type.choices, required=False)


class AttachmentSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    url = serializers.URLField()
    type = serializers.CharField(max_length=50, required=False, allow_blank=True, default='')


class MessageSerializer(serializers.ModelSerializer):
    sender_name = serializers.SerializerMethodField()
    is_read = serializers.SerializerMethodField()

    class Meta:
        model = Message
        fields = ['id', 'conversation', 'sender', 'sender_name', 'content', 'type', 'attachments', 'is_read', 'created_at']
        read_only_fields = fields

    def get_sender_name(self, obj):
        return obj.sender.get_full_name()

    def get_is_read(self, obj):
        user = self.context.get('user')
        if user is None:
            return False
        return obj.sender_id == user.pk or any(u.pk == user.pk for u in obj.read_by.all())


class SendMessageSerializer(serializers.Serializer):
    content = serializers.CharField(required=False, allow_blank=True, default='', max_length=5000)
    type = serializers.ChoiceField(choices=Message.Type.choices, required=False, default=Message.Type.TEXT)
    attachments = AttachmentSerializer(many=True, required=False, default=list)

    def validate(self, attrs):
        if not attrs['content'].strip() and not attrs['attachments']:
            raise serializers.ValidationError({'content': 'Message content is required.'})
        return attrs
