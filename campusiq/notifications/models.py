from django.conf import settings
from django.db import models

from tenants.mixins import SchoolOwnedModel


class Notification(SchoolOwnedModel):
    """
    Уведомление в ленте школы (колокольчик + SSE stream).

    target_role='all' - видят все пользователи школы, иначе только указанная роль.
    Прочитанность хранится per-user в read_by.
    """

    class Type(models.TextChoices):
        INFO = 'info', 'Info'
        SUCCESS = 'success', 'Success'
        WARNING = 'warning', 'Warning'
        ALERT = 'alert', 'Alert'
        ANNOUNCEMENT = 'announcement', 'Announcement'
        ACTIVITY = 'activity', 'Activity'

    class Target(models.TextChoices):
        ALL = 'all', 'Everyone'
        ADMIN = 'admin', 'Administrators'
        TEACHER = 'teacher', 'Teachers'
        STUDENT = 'student', 'Students'
        PARENT = 'parent', 'Parents'

    type = models.CharField(max_length=20, choices=Type.choices, default=Type.INFO)
    title = models.CharField(max_length=200)
    message = models.TextField()
    target_role = models.CharField(max_length=20, choices=Target.choices, default=Target.ALL)

    # Ссылка на сущность, вызвавшую уведомление
    module = models.CharField(max_length=50, blank=True, default='')
    entity_id = models.CharField(max_length=64, blank=True, default='')
    action_url = models.CharField(max_length=300, blank=True, default='')

    actor_name = models.CharField(max_length=150, blank=True, default='')
    actor_role = models.CharField(max_length=20, blank=True, default='')
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL,
        null=True, blank=True, related_name='created_notifications',
    )
    read_by = models.ManyToManyField(
        settings.AUTH_USER_MODEL, blank=True, related_name='read_notifications',
    )

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['school', 'target_role', 'created_at'], name='notif_school_target_idx'),
        ]

    def __str__(self):
        return f'[{self.type}] {self.title}'
