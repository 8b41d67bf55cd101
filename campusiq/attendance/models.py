from django.conf import settings
from django.db import models

from tenants.mixins import SchoolOwnedModel


class AttendanceStatus(models.TextChoices):
    PRESENT = 'present', 'Present'
    ABSENT = 'absent', 'Absent'
    LATE = 'late', 'Late'
    LEAVE = 'leave', 'Leave'


class Attendance(SchoolOwnedModel):
    """Отметка посещаемости ученика за день. Одна запись на (школа, ученик, дата)."""

    student = models.ForeignKey('students.Student', on_delete=models.CASCADE, related_name='attendance_records')
    class_name = models.CharField(max_length=50)
    date = models.DateField(db_index=True)
    status = models.CharField(max_length=10, choices=AttendanceStatus.choices)
    marked_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL,
        null=True, blank=True, related_name='marked_attendance',
    )
    marked_at = models.DateTimeField(null=True, blank=True)
    notes = models.CharField(max_length=300, blank=True, default='')

    class Meta:
        ordering = ['-date', 'class_name']
        constraints = [
            models.UniqueConstraint(fields=['school', 'student', 'date'], name='attendance_unique_per_day'),
        ]
        indexes = [
            models.Index(fields=['school', 'date', 'class_name'], name='attendance_day_class_idx'),
        ]

    def __str__(self):
        return f'{self.student_id} {self.date}: {self.status}'


class Holiday(SchoolOwnedModel):
    """Выходной/праздник школы: в этот день посещаемость не отмечается."""

    class Type(models.TextChoices):
        NATIONAL = 'national', 'National'
        RELIGIOUS = 'religious', 'Religious'
        SCHOOL = 'school', 'School'
        OTHER = 'other', 'Other'

    date = models.DateField()
    name = models.CharField(max_length=150)
    type = models.CharField(max_length=20, choices=Type.choices, default=Type.SCHOOL)
    description = models.TextField(blank=True, default='')

    class Meta:
        ordering = ['date']
        constraints = [
            models.UniqueConstraint(fields=['school', 'date'], name='holiday_unique_per_day'),
        ]

    def __str__(self):
        return f'{self.date}: {self.name}'
