from django.conf import settings
from django.db import models

from tenants.mixins import SchoolQuerySet


class AuditLog(models.Model):
    """
    Кто, что и когда изменил в школе.
    Пишется после основной операции; запись лога никогда не ломает запрос.
    """

    class Action(models.TextChoices):
        CREATE = 'create', 'Create'
        UPDATE = 'update', 'Update'
        DELETE = 'delete', 'Delete'
        LOGIN = 'login', 'Login'
        LOGOUT = 'logout', 'Logout'
        EXPORT = 'export', 'Export'
        IMPORT = 'import', 'Import'

    school = models.ForeignKey('tenants.School', on_delete=models.CASCADE, related_name='audit_logs')
    action = models.CharField(max_length=20, choices=Action.choices)
    entity = models.CharField(max_length=50, help_text='student, fee_payment, exam...')
    entity_id = models.CharField(max_length=64, blank=True, default='')

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL,
        null=True, blank=True, related_name='audit_logs',
    )
    user_name = models.CharField(max_length=150, blank=True, default='')
    user_role = models.CharField(max_length=20, blank=True, default='')

    changes = models.JSONField(null=True, blank=True, help_text='{field: {old, new}}')
    metadata = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.CharField(max_length=500, blank=True, default='')

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    objects = SchoolQuerySet.as_manager()

    class Meta:
        ordering = ['-created_at']
        verbose_name = 'Audit log entry'
        verbose_name_plural = 'Audit log'
        indexes = [
            models.Index(fields=['school', 'entity', 'entity_id'], name='audit_entity_idx'),
            models.Index(fields=['school', 'action'], name='audit_action_idx'),
        ]

    def __str__(self):
        return f'{self.action} {self.entity}#{self.entity_id} by {self.user_name or "system"}'
