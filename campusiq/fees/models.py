from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models

from tenants.mixins import SchoolOwnedModel


class FeeStructure(SchoolOwnedModel):
    """Начисление для класса: сумма, срок оплаты и пеня за каждый день просрочки."""

    class Category(models.TextChoices):
        TUITION = 'tuition', 'Tuition'
        EXAM = 'exam', 'Exam'
        LAB = 'lab', 'Lab'
        LIBRARY = 'library', 'Library'
        TRANSPORT = 'transport', 'Transport'
        HOSTEL = 'hostel', 'Hostel'
        OTHER = 'other', 'Other'

    class Frequency(models.TextChoices):
        MONTHLY = 'monthly', 'Monthly'
        QUARTERLY = 'quarterly', 'Quarterly'
        SEMI_ANNUAL = 'semi-annual', 'Semi-annual'
        ANNUAL = 'annual', 'Annual'
        ONE_TIME = 'one-time', 'One-time'

    class Status(models.TextChoices):
        ACTIVE = 'active', 'Active'
        INACTIVE = 'inactive', 'Inactive'

    name = models.CharField(max_length=150)
    class_name = models.CharField(max_length=50)
    academic_year = models.CharField(max_length=20)
    amount = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(Decimal('0'))])
    due_date = models.DateField()
    category = models.CharField(max_length=20, choices=Category.choices, default=Category.TUITION)
    description = models.TextField(blank=True, default='')
    is_recurring = models.BooleanField(default=False)
    frequency = models.CharField(max_length=20, choices=Frequency.choices, default=Frequency.ONE_TIME)
    late_fee_per_day = models.DecimalField(
        max_digits=10, decimal_places=2, default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0'))],
    )
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.ACTIVE)

    class Meta:
        ordering = ['due_date']
        indexes = [
            models.Index(fields=['school', 'class_name', 'status'], name='fee_structure_class_idx'),
        ]

    def __str__(self):
        return f'{self.name} ({self.class_name}, {self.academic_year})'

    @property
    def is_active(self):
        return self.status == self.Status.ACTIVE


class FeePayment(SchoolOwnedModel):
    """
    Платёж ученика по начислению.

    amount - сумма начисления на момент оплаты, total_paid - внесено этим платежом,
    balance_due - остаток после всех платежей по начислению.
    """

    class Status(models.TextChoices):
        PAID = 'paid', 'Paid'
        PARTIAL = 'partial', 'Partial'
        PENDING = 'pending', 'Pending'
        OVERDUE = 'overdue', 'Overdue'
        REFUNDED = 'refunded', 'Refunded'

    class Method(models.TextChoices):
        CASH = 'cash', 'Cash'
        UPI = 'upi', 'UPI'
        BANK_TRANSFER = 'bank_transfer', 'Bank transfer'
        CHEQUE = 'cheque', 'Cheque'
        ONLINE = 'online', 'Online'
        OTHER = 'other', 'Other'

    student = models.ForeignKey('students.Student', on_delete=models.PROTECT, related_name='fee_payments')
    student_name = models.CharField(max_length=150)
    class_name = models.CharField(max_length=50)
    fee_structure = models.ForeignKey(FeeStructure, on_delete=models.PROTECT, related_name='payments')
    fee_name = models.CharField(max_length=150)

    amount = models.DecimalField(max_digits=12, decimal_places=2)
    late_fee = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    discount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    total_paid = models.DecimalField(max_digits=12, decimal_places=2)
    balance_due = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))

    payment_date = models.DateTimeField()
    payment_method = models.CharField(max_length=20, choices=Method.choices, default=Method.CASH)
    transaction_id = models.CharField(max_length=100, blank=True, default='')
    receipt_number = models.CharField(max_length=50)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)

    paid_by = models.CharField(max_length=150, blank=True, default='')
    collected_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL,
        null=True, blank=True, related_name='collected_payments',
    )
    notes = models.TextField(blank=True, default='')

    class Meta:
        ordering = ['-payment_date']
        constraints = [
            models.UniqueConstraint(fields=['school', 'receipt_number'], name='fee_payment_unique_receipt'),
        ]
        indexes = [
            models.Index(fields=['school', 'student', 'fee_structure'], name='fee_payment_student_idx'),
            models.Index(fields=['school', 'status'], name='fee_payment_status_idx'),
        ]

    def __str__(self):
        return f'{self.receipt_number}: {self.student_name} {self.total_paid}'
