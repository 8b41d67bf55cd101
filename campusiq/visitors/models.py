from django.conf import settings
from django.db import models

from tenants.mixins import SchoolOwnedModel


class Visitor(SchoolOwnedModel):
    """Журнал посетителей: pre_registered → checked_in → checked_out (или cancelled)."""

    class Status(models.TextChoices):
        PRE_REGISTERED = 'pre_registered', 'Pre-registered'
        CHECKED_IN = 'checked_in', 'Checked in'
        CHECKED_OUT = 'checked_out', 'Checked out'
        CANCELLED = 'cancelled', 'Cancelled'

    class HostType(models.TextChoices):
        STAFF = 'staff', 'Staff'
        TEACHER = 'teacher', 'Teacher'
        STUDENT = 'student', 'Student'
        ADMIN = 'admin', 'Administration'
        OTHER = 'other', 'Other'

    visitor_name = models.CharField(max_length=150)
    visitor_phone = models.CharField(max_length=20, blank=True, default='')
    visitor_email = models.EmailField(blank=True, default='')
    purpose = models.CharField(max_length=300)
    host_name = models.CharField(max_length=150, blank=True, default='')
    host_type = models.CharField(max_length=20, choices=HostType.choices, default=HostType.STAFF)
    student = models.ForeignKey(
        'students.Student', on_delete=models.SET_NULL,
        null=True, blank=True, related_name='visitors',
    )
    id_proof = models.CharField(max_length=100, blank=True, default='')
    check_in = models.DateTimeField(null=True, blank=True)
    check_out = models.DateTimeField(null=True, blank=True)
    badge_number = models.CharField(max_length=10, blank=True, default='')
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.CHECKED_IN)
    notes = models.TextField(blank=True, default='')
    registered_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL,
        null=True, blank=True, related_name='registered_visitors',
    )

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['school', 'status'], name='visitor_status_idx'),
        ]

    def __str__(self):
        return f'{self.visitor_name} ({self.badge_number or self.status})'
