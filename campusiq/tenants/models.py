"""
School models - ядро мультитенантной архитектуры.

Подход: shared-database, shared-schema с FK school на каждой tenant-owned модели.
School = школа / колледж / учебный центр.
"""

import uuid
from datetime import timedelta

from django.conf import settings
from django.db import models
from django.utils import timezone


class School(models.Model):
    """
    Учебное заведение (tenant).
    Все данные в системе привязаны к школе через FK `school`.
    """

    class SchoolType(models.TextChoices):
        SCHOOL = 'school', 'School'
        COLLEGE = 'college', 'College'
        COACHING = 'coaching', 'Coaching Institute'
        UNIVERSITY = 'university', 'University'

    class Plan(models.TextChoices):
        STARTER = 'starter', 'Starter'
        BASIC = 'basic', 'Basic'
        PRO = 'pro', 'Pro'
        ENTERPRISE = 'enterprise', 'Enterprise'

    class SubscriptionStatus(models.TextChoices):
        TRIAL = 'trial', 'Trial'
        ACTIVE = 'active', 'Active'
        EXPIRED = 'expired', 'Expired'
        CANCELLED = 'cancelled', 'Cancelled'

    class Status(models.TextChoices):
        ACTIVE = 'active', 'Active'
        INACTIVE = 'inactive', 'Inactive'

    # === Идентификация ===
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    slug = models.SlugField(
        max_length=60, unique=True, db_index=True,
        help_text='Уникальный идентификатор (для субдомена)'
    )
    name = models.CharField(max_length=200)
    school_type = models.CharField(max_length=20, choices=SchoolType.choices, default=SchoolType.SCHOOL)
    board = models.CharField(max_length=50, blank=True, help_text='CBSE, ICSE, State board...')

    # === Контакты ===
    address = models.TextField(blank=True)
    phone = models.CharField(max_length=30, blank=True)
    email = models.EmailField(blank=True)
    logo_url = models.URLField(blank=True)

    # === Подписка ===
    plan = models.CharField(max_length=20, choices=Plan.choices, default=Plan.STARTER)
    subscription_status = models.CharField(
        max_length=20, choices=SubscriptionStatus.choices, default=SubscriptionStatus.TRIAL
    )
    trial_ends_at = models.DateTimeField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.ACTIVE)

    timezone = models.CharField(max_length=50, default='Asia/Kolkata')
    metadata = models.JSONField(default=dict, blank=True, help_text='theme, features и прочее')

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']
        verbose_name = 'School'
        verbose_name_plural = 'Schools'

    def __str__(self):
        return f'{self.name} ({self.slug})'

    @property
    def is_active(self):
        return self.status == self.Status.ACTIVE

    @property
    def is_trial_expired(self):
        return (
            self.subscription_status == self.SubscriptionStatus.TRIAL
            and self.trial_ends_at is not None
            and self.trial_ends_at < timezone.now()
        )

    def start_trial(self):
        self.subscription_status = self.SubscriptionStatus.TRIAL
        self.trial_ends_at = timezone.now() + timedelta(days=getattr(settings, 'TRIAL_DAYS', 14))

    def to_frontend_config(self):
        """Публичный конфиг школы для фронтенда (без секретов)."""
        theme = (self.metadata or {}).get('theme', {})
        features_meta = (self.metadata or {}).get('features', {})
        return {
            'id': str(self.id),
            'slug': self.slug,
            'name': self.name,
            'school_type': self.school_type,
            'board': self.board,
            'logo_url': self.logo_url or '',
            'primary_color': theme.get('primary_color', '#2563eb'),
            'secondary_color': theme.get('secondary_color', '#f5f5f5'),
            'plan': self.plan,
            'subscription_status': self.subscription_status,
            'currency': (self.metadata or {}).get('currency', settings.DEFAULT_CURRENCY),
            'features': {
                'sms': features_meta.get('sms', settings.FEATURE_SMS_NOTIFICATIONS),
                'email': features_meta.get('email', settings.FEATURE_EMAIL_NOTIFICATIONS),
                'messaging': features_meta.get('messaging', True),
                'visitors': features_meta.get('visitors', True),
            },
        }


class SchoolResourceLimits(models.Model):
    """
    Лимиты ресурсов школы. Одна School → один SchoolResourceLimits.
    Значения по умолчанию берутся из settings.PLAN_LIMITS по плану.
    """
    school = models.OneToOneField(
        School, on_delete=models.CASCADE,
        related_name='resource_limits',
    )
    max_students = models.PositiveIntegerField(default=100)
    max_teachers = models.PositiveIntegerField(default=10)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Resource limits'
        verbose_name_plural = 'Resource limits'

    def __str__(self):
        return f'Limits: {self.school}'

    @classmethod
    def defaults_for_plan(cls, plan):
        plan_limits = getattr(settings, 'PLAN_LIMITS', {})
        return dict(plan_limits.get(plan) or plan_limits.get(School.Plan.STARTER) or {})

    def apply_plan(self, plan):
        for field, value in self.defaults_for_plan(plan).items():
            setattr(self, field, value)
