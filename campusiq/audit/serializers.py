from rest_framework import serializers

from .models import AuditLog


class AuditLogSerializer(serializers.ModelSerializer):
    class Meta:
        model = AuditLog
        fields = [
            'id', 'action', 'entity', 'entity_id',
            'user', 'user_name', 'user_role',
            'changes', 'metadata', 'ip_address', 'user_agent',
            'created_at',
        ]
        read_only_fields = fields
