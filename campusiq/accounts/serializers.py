from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from django.db import transaction
from django.utils.text import slugify
from rest_framework import exceptions, serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

from tenants.models import School

from .roles import ROLE_PERMISSIONS
from .security import (
    is_locked_message,
    register_failure,
    register_unknown_failure,
    reset_failures,
    unknown_locked_message,
)

User = get_user_model()

MODULE_CHOICES = sorted({module for table in ROLE_PERMISSIONS.values() if isinstance(table, dict) for module in table} | {'users', 'teachers', 'reports', 'audit'})


class CampusTokenObtainPairSerializer(TokenObtainPairSerializer):
    """JWT по email (без учёта регистра) с блокировкой после неудачных попыток."""

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        # Роль берём только из БД
        token['role'] = user.role
        token['email'] = user.email
        token['school_id'] = str(user.school_id) if user.school_id else None
        return token

    @staticmethod
    def failure_message(remaining):
        return f'Invalid email or password. {remaining} attempt(s) remaining'

    def validate(self, attrs):
        raw_email = (attrs.get(self.username_field) or '').strip()
        password = attrs.get('password') or ''
        if not raw_email or not password:
            raise exceptions.AuthenticationFailed('Invalid credentials')

        user = User.objects.select_related('school').filter(email__iexact=raw_email).first()
        if user is None:
            # Ответ не должен отличаться от неверного пароля существующего аккаунта
            locked = unknown_locked_message(raw_email)
            if locked:
                raise exceptions.AuthenticationFailed(locked)
            remaining = register_unknown_failure(raw_email)
            raise exceptions.AuthenticationFailed(
                unknown_locked_message(raw_email) if remaining == 0 else self.failure_message(remaining)
            )

        locked = is_locked_message(user)
        if locked:
            raise exceptions.AuthenticationFailed(locked)

        if not user.check_password(password):
            remaining = register_failure(user)
            if remaining == 0:
                raise exceptions.AuthenticationFailed(is_locked_message(user))
            raise exceptions.AuthenticationFailed(self.failure_message(remaining))

        if not user.is_active:
            raise exceptions.AuthenticationFailed('Account is deactivated')
        if user.school is not None and not user.school.is_active:
            raise exceptions.AuthenticationFailed('School is inactive')

        reset_failures(user)
        self.user = user
        refresh = self.get_token(user)
        return {
            'refresh': str(refresh),
            'access': str(refresh.access_token),
        }


class UserSerializer(serializers.ModelSerializer):
    school_name = serializers.CharField(source='school.name', read_only=True, default=None)

    class Meta:
        model = User
        fields = [
            'id', 'email', 'name', 'role', 'phone', 'status', 'is_active', 'email_verified',
            'school', 'school_name',
            'subject', 'classes', 'salary_per_day', 'joining_date',
            'allowed_modules', 'last_login_at', 'date_joined',
        ]
        read_only_fields = fields


class RegisterSerializer(serializers.Serializer):
    """Регистрация школы + её первого администратора."""
    school_name = serializers.CharField(max_length=200)
    school_type = serializers.ChoiceField(choices=School.SchoolType.choices, default=School.SchoolType.SCHOOL)
    board = serializers.CharField(max_length=50, required=False, allow_blank=True, default='')
    name = serializers.CharField(max_length=150)
    email = serializers.EmailField()
    phone = serializers.CharField(max_length=20, required=False, allow_blank=True, default='')
    password = serializers.CharField(write_only=True)

    def validate_email(self, value):
        value = value.strip().lower()
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError('A user with this email already exists.')
        return value

    def validate_password(self, value):
        validate_password(value)
        return value

    @staticmethod
    def _unique_slug(name):
        base = slugify(name)[:50] or 'school'
        slug, n = base, 1
        while School.objects.filter(slug=slug).exists():
            n += 1
            slug = f'{base}-{n}'
        return slug

    @transaction.atomic
    def create(self, validated_data):
        school = School(
            name=validated_data['school_name'],
            slug=self._unique_slug(validated_data['school_name']),
            school_type=validated_data['school_type'],
            board=validated_data['board'],
            email=validated_data['email'],
            phone=validated_data['phone'],
        )
        school.start_trial()
        school.save()
        return User.objects.create_user(
            email=validated_data['email'],
            password=validated_data['password'],
            name=validated_data['name'],
            phone=validated_data['phone'],
            role=User.Role.ADMIN,
            school=school,
        )


class MeUpdateSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ['name', 'phone']


class ChangePasswordSerializer(serializers.Serializer):
    old_password = serializers.CharField(write_only=True)
    new_password = serializers.CharField(write_only=True)

    def validate_old_password(self, value):
        if not self.context['request'].user.check_password(value):
            raise serializers.ValidationError('Current password is incorrect.')
        return value

    def validate(self, attrs):
        if attrs['old_password'] == attrs['new_password']:
            raise serializers.ValidationError({'new_password': 'New password must differ from the current one.'})
        validate_password(attrs['new_password'], self.context['request'].user)
        return attrs


class UserWriteSerializer(serializers.ModelSerializer):
    """Создание / изменение пользователя администратором школы."""
    password = serializers.CharField(write_only=True, required=False, allow_blank=True)
    allowed_modules = serializers.ListField(
        child=serializers.ChoiceField(choices=MODULE_CHOICES), required=False,
    )

    class Meta:
        model = User
        fields = ['id', 'email', 'name', 'role', 'phone', 'status', 'is_active', 'allowed_modules', 'password']
        read_only_fields = ['id']

    def validate_email(self, value):
        value = value.strip().lower()
        qs = User.objects.filter(email__iexact=value)
        if self.instance is not None:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise serializers.ValidationError('A user with this email already exists.')
        return value

    def validate_password(self, value):
        if value:
            validate_password(value)
        return value

    def create(self, validated_data):
        password = validated_data.pop('password', '') or None
        return User.objects.create_user(password=password, **validated_data)

    def update(self, instance, validated_data):
        password = validated_data.pop('password', '')
        instance = super().update(instance, validated_data)
        if password:
            instance.set_password(password)
            instance.save(update_fields=['password'])
        return instance


class TeacherSerializer(UserWriteSerializer):
    classes = serializers.ListField(child=serializers.CharField(max_length=50), required=False)

    class Meta(UserWriteSerializer.Meta):
        fields = [
            'id', 'email', 'name', 'phone', 'status', 'is_active',
            'subject', 'classes', 'salary_per_day', 'joining_date',
            'allowed_modules', 'password', 'date_joined',
        ]
        read_only_fields = ['id', 'date_joined']

    def validate_salary_per_day(self, value):
        if value is not None and value < 0:
            raise serializers.ValidationError('Salary cannot be negative.')
        return value


class EmailSerializer(serializers.Serializer):
    email = serializers.EmailField()

    def validate_email(self, value):
        return value.strip().lower()


class LinkSerializer(serializers.Serializer):
    """uid + token из ссылки в письме."""
    uid = serializers.CharField()
    token = serializers.CharField()


class LinkPasswordSerializer(LinkSerializer):
    password = serializers.CharField(write_only=True)

    def validate_password(self, value):
        validate_password(value)
        return value
