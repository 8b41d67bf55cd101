from django.contrib.auth.models import AbstractUser, BaseUserManager
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class UserManager(BaseUserManager):
    """Менеджер пользователей, где email - уникальный идентификатор для входа."""

    use_in_migrations = True

    def get_by_natural_key(self, email):
        return self.get(email__iexact=email)

    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError(_('Email is required'))
        email = self.normalize_email(email).lower()
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('is_active', True)
        extra_fields.setdefault('role', User.Role.ADMIN)

        if extra_fields.get('is_staff') is not True:
            raise ValueError(_('Superuser must have is_staff=True'))
        if extra_fields.get('is_superuser') is not True:
            raise ValueError(_('Superuser must have is_superuser=True'))

        return self.create_user(email, password, **extra_fields)


class User(AbstractUser):
    """
    Пользователь CampusIQ.
    Вход по email (username отключен). Каждый пользователь, кроме
    платформенного superuser, принадлежит ровно одной школе.
    """

    class Role(models.TextChoices):
        ADMIN = 'admin', _('Administrator')
        TEACHER = 'teacher', _('Teacher')
        STUDENT = 'student', _('Student')
        PARENT = 'parent', _('Parent')

    class Status(models.TextChoices):
        PENDING = 'pending', _('Pending')
        ACTIVE = 'active', _('Active')
        INACTIVE = 'inactive', _('Inactive')

    username = None
    email = models.EmailField(_('email address'), unique=True)
    name = models.CharField(_('name'), max_length=150)
    role = models.CharField(_('role'), max_length=20, choices=Role.choices, default=Role.STUDENT)
    school = models.ForeignKey(
        'tenants.School',
        on_delete=models.CASCADE,
        related_name='users',
        null=True,
        blank=True,
        help_text=_('Empty only for platform superusers'),
    )
    phone = models.CharField(_('phone'), max_length=20, blank=True, default='')
    status = models.CharField(_('status'), max_length=20, choices=Status.choices, default=Status.ACTIVE)
    email_verified = models.BooleanField(_('email verified'), default=False)

    # === Профиль учителя ===
    subject = models.CharField(_('subject'), max_length=100, blank=True, default='')
    classes = models.JSONField(_('classes'), default=list, blank=True, help_text=_('Classes the teacher takes'))
    salary_per_day = models.DecimalField(_('salary per day'), max_digits=10, decimal_places=2, null=True, blank=True)
    joining_date = models.DateField(_('joining date'), null=True, blank=True)

    # Пустой список = все модули, разрешённые ролью
    allowed_modules = models.JSONField(_('allowed modules'), default=list, blank=True)

    # === Lockout ===
    failed_login_attempts = models.PositiveSmallIntegerField(default=0)
    locked_until = models.DateTimeField(null=True, blank=True)
    last_login_at = models.DateTimeField(null=True, blank=True)

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        verbose_name = _('user')
        verbose_name_plural = _('users')
        ordering = ['name', 'email']
        indexes = [
            models.Index(fields=['school', 'role'], name='user_school_role_idx'),
        ]

    def __str__(self):
        return f'{self.name or self.email} ({self.role})'

    def get_full_name(self):
        return self.name or self.email

    def get_short_name(self):
        return self.name.split(' ')[0] if self.name else self.email

    @property
    def is_locked(self):
        return self.locked_until is not None and self.locked_until > timezone.now()

    def deactivate(self):
        self.is_active = False
        self.status = self.Status.INACTIVE
        self.save(update_fields=['is_active', 'status'])
