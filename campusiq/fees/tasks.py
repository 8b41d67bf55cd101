import logging

from celery import shared_task
from django.utils import timezone

from notifications.services import notify_fee_reminder
from tenants.models import School

from .models import FeePayment
from .services import FeeService, current_payments

logger = logging.getLogger(__name__)


@shared_task
def mark_overdue_payments():
    """Ежедневно: платежи с остатком после срока оплаты → overdue."""
    updated = FeeService.mark_overdue()
    logger.info(f'mark_overdue_payments: {updated} updated')
    return updated


@shared_task
def send_fee_reminders(today=None):
    """
    Ежедневно: напоминание родителям по текущим платежам с остатком.

    Сначала просроченные pending / partial переводятся в overdue, затем каждому
    текущему pending / overdue платежу активной школы уходит SMS / email с остатком.
    """
    today = today or timezone.localdate()
    marked = FeeService.mark_overdue(today=today)

    payments = (
        current_payments(FeePayment.objects.filter(school__status=School.Status.ACTIVE))
        .filter(status__in=[FeePayment.Status.PENDING, FeePayment.Status.OVERDUE], balance_due__gt=0)
        .select_related('student', 'fee_structure')
    )
    reminded = 0
    for payment in payments:
        student = payment.student
        notify_fee_reminder(
            student.parent_phone, student.parent_email or student.email,
            payment.student_name, payment.fee_name, payment.balance_due, payment.fee_structure.due_date,
            overdue=payment.status == FeePayment.Status.OVERDUE,
        )
        reminded += 1
    logger.info(f'send_fee_reminders: {reminded} reminder(s), {marked} marked overdue')
    return {'reminded': reminded, 'marked_overdue': marked}
