from rest_framework import serializers

from .models import School, SchoolResourceLimits


class SchoolResourceLimitsSerializer(serializers.ModelSerializer):
    class Meta:
        model = SchoolResourceLimits
        fields = ['max_students', 'max_teachers', 'updated_at']
        read_only_fields = fields


class SchoolSerializer(serializers.ModelSerializer):
    limits = SchoolResourceLimitsSerializer(source='resource_limits', read_only=True)

    class Meta:
        model = School
        fields = [
            'id', 'slug', 'name', 'school_type', 'board',
            'address', 'phone', 'email', 'logo_url',
            'plan', 'subscription_status', 'trial_ends_at', 'status',
            'timezone', 'metadata', 'limits',
            'created_at', 'updated_at',
        ]
        read_only_fields = [
            'id', 'slug', 'plan', 'subscription_status', 'trial_ends_at', 'status',
            'created_at', 'updated_at',
        ]

    def validate_metadata(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError('metadata must be an object')
        return value
