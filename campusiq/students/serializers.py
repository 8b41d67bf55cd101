from django.contrib.auth import get_user_model
from rest_framework import serializers

from .models import Student

User = get_user_model()


class StudentSerializer(serializers.ModelSerializer):
    """
    school берётся из context['school'] (SchoolScopedViewMixin), не из тела запроса.
    """
    parent_user = serializers.PrimaryKeyRelatedField(
        queryset=User.objects.filter(role='parent'), required=False, allow_null=True,
    )
    user = serializers.PrimaryKeyRelatedField(
        queryset=User.objects.filter(role='student'), required=False, allow_null=True,
    )

    class Meta:
        model = Student
        fields = [
            'id', 'name', 'class_name', 'roll_number',
            'parent_name', 'parent_phone', 'parent_email', 'parent_user',
            'email', 'address', 'admission_date', 'status', 'user',
            'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Name is required.')
        return value

    def validate_class_name(self, value):
        return value.strip()

    def validate_roll_number(self, value):
        return str(value).strip()

    def _validate_same_school(self, user, field):
        school = self.context.get('school')
        if user is not None and school is not None and user.school_id != school.pk:
            raise serializers.ValidationError({field: 'User belongs to another school.'})

    def validate(self, attrs):
        school = self.context.get('school')
        self._validate_same_school(attrs.get('parent_user'), 'parent_user')
        self._validate_same_school(attrs.get('user'), 'user')

        class_name = attrs.get('class_name', getattr(self.instance, 'class_name', None))
        roll_number = attrs.get('roll_number', getattr(self.instance, 'roll_number', None))
        if school is not None and class_name and roll_number:
            qs = Student.objects.filter(school=school, class_name=class_name, roll_number=roll_number)
            if self.instance is not None:
                qs = qs.exclude(pk=self.instance.pk)
            if qs.exists():
                raise serializers.ValidationError(
                    {'roll_number': f'Roll number {roll_number} already exists in class {class_name}.'}
                )
        return attrs


class StudentImportSerializer(serializers.Serializer):
    records = serializers.ListField(child=serializers.DictField(), allow_empty=False, max_length=2000)
