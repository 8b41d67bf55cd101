from rest_framework import serializers

from .models import Notification


class NotificationSerializer(serializers.ModelSerializer):
    is_read = serializers.SerializerMethodField()

    class Meta:
        model = Notification
        fields = [
            'id', 'type', 'title', 'message', 'target_role',
            'module', 'entity_id', 'action_url',
            'actor_name', 'actor_role', 'is_read',
            'created_at',
        ]
        read_only_fields = fields

    def get_is_read(self, obj):
        user_id = self.context.get('user_id')
        if user_id is None:
            return False
        # read_by prefetched во view
        return any(u.pk == user_id for u in obj.read_by.all())


class NotificationCreateSerializer(serializers.ModelSerializer):
    send_sms = serializers.BooleanField(default=False, write_only=True)
    send_email = serializers.BooleanField(default=False, write_only=True)

    class Meta:
        model = Notification
        fields = ['type', 'title', 'message', 'target_role', 'module', 'action_url', 'send_sms', 'send_email']

    def validate_title(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Title is required.')
        return value
