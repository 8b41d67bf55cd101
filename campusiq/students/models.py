from django.conf import settings
from django.db import models

from tenants.mixins import SchoolOwnedModel


class Student(SchoolOwnedModel):
    """
    Академическая запись ученика.

    `user` - необязательная учётная запись ученика (role=student) для входа.
    `parent_user` - учётная запись родителя (role=parent); родитель видит
    только своих детей.
    """

    class Status(models.TextChoices):
        ACTIVE = 'active', 'Active'
        INACTIVE = 'inactive', 'Inactive'

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL,
        null=True, blank=True, related_name='student_profiles',
    )
    parent_user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL,
        null=True, blank=True, related_name='children',
    )
    class_name = models.CharField(max_length=50)
    roll_number = models.CharField(max_length=30)
    name = models.CharField(max_length=150)

    parent_name = models.CharField(max_length=150, blank=True, default='')
    parent_phone = models.CharField(max_length=20, blank=True, default='')
    parent_email = models.EmailField(blank=True, default='')

    email = models.EmailField(blank=True, default='')
    address = models.TextField(blank=True, default='')
    admission_date = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.ACTIVE)

    class Meta:
        ordering = ['class_name', 'roll_number']
        constraints = [
            models.UniqueConstraint(
                fields=['school', 'class_name', 'roll_number'],
                name='student_unique_roll_per_class',
            ),
        ]
        indexes = [
            models.Index(fields=['school', 'class_name', 'status'], name='student_class_status_idx'),
        ]

    def __str__(self):
        return f'{self.name} ({self.class_name} #{self.roll_number})'

    @property
    def is_active(self):
        return self.status == self.Status.ACTIVE
