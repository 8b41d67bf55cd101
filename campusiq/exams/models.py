from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings
from django.db import models

from tenants.mixins import SchoolOwnedModel

GRADE_THRESHOLDS = [
    (90, 'A+'),
    (80, 'A'),
    (70, 'B+'),
    (60, 'B'),
    (50, 'C'),
    (40, 'D'),
]


def letter_grade(percentage) -> str:
    for threshold, letter in GRADE_THRESHOLDS:
        if percentage >= threshold:
            return letter
    return 'F'


def compute_percentage(marks, total) -> Decimal:
    if not total:
        return Decimal('0.00')
    return (Decimal(marks) / Decimal(total) * 100).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)


class Exam(SchoolOwnedModel):

    class Type(models.TextChoices):
        UNIT_TEST = 'unit-test', 'Unit test'
        MID_TERM = 'mid-term', 'Mid-term'
        FINAL = 'final', 'Final'
        PRACTICAL = 'practical', 'Practical'
        ASSIGNMENT = 'assignment', 'Assignment'
        QUIZ = 'quiz', 'Quiz'

    class Status(models.TextChoices):
        SCHEDULED = 'scheduled', 'Scheduled'
        ONGOING = 'ongoing', 'Ongoing'
        COMPLETED = 'completed', 'Completed'
        CANCELLED = 'cancelled', 'Cancelled'

    name = models.CharField(max_length=150)
    type = models.CharField(max_length=20, choices=Type.choices, default=Type.UNIT_TEST)
    class_name = models.CharField(max_length=50)
    subject = models.CharField(max_length=100)
    subject_code = models.CharField(max_length=30, blank=True, default='')
    date = models.DateField()
    start_time = models.TimeField(null=True, blank=True)
    end_time = models.TimeField(null=True, blank=True)
    total_marks = models.PositiveIntegerField()
    passing_marks = models.PositiveIntegerField(default=0)
    room = models.CharField(max_length=50, blank=True, default='')
    invigilator = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL,
        null=True, blank=True, related_name='invigilated_exams',
    )
    invigilator_name = models.CharField(max_length=150, blank=True, default='')
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.SCHEDULED)

    class Meta:
        ordering = ['-date', 'class_name']
        indexes = [
            models.Index(fields=['school', 'class_name', 'date'], name='exam_class_date_idx'),
        ]

    def __str__(self):
        return f'{self.name}: {self.subject} ({self.class_name})'


class Grade(SchoolOwnedModel):
    """Оценка ученика за экзамен. percentage и grade пересчитываются при сохранении."""

    exam = models.ForeignKey(Exam, on_delete=models.CASCADE, related_name='grades')
    student = models.ForeignKey('students.Student', on_delete=models.CASCADE, related_name='grades')
    student_name = models.CharField(max_length=150)
    class_name = models.CharField(max_length=50)
    subject = models.CharField(max_length=100)
    marks_obtained = models.DecimalField(max_digits=7, decimal_places=2)
    total_marks = models.PositiveIntegerField()
    percentage = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('0.00'))
    grade = models.CharField(max_length=2, blank=True, default='')
    rank = models.PositiveIntegerField(null=True, blank=True)
    remarks = models.CharField(max_length=300, blank=True, default='')
    entered_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL,
        null=True, blank=True, related_name='entered_grades',
    )

    class Meta:
        ordering = ['exam', 'rank', 'student_name']
        constraints = [
            models.UniqueConstraint(fields=['exam', 'student'], name='grade_unique_per_exam'),
        ]

    def __str__(self):
        return f'{self.student_name}: {self.marks_obtained}/{self.total_marks} ({self.grade})'

    def save(self, *args, **kwargs):
        self.percentage = compute_percentage(self.marks_obtained, self.total_marks)
        self.grade = letter_grade(self.percentage)
        super().save(*args, **kwargs)

    @property
    def passed(self):
        return self.marks_obtained >= self.exam.passing_marks
