"""
Fee business logic service.

Запись платежа (пеня, скидка, накопленный остаток, статус), возврат и
пометка просроченных платежей. Все суммы - Decimal с двумя знаками.
"""
import logging
import math
from datetime import datetime, time, timedelta
from decimal import ROUND_HALF_UP, Decimal

from django.db import transaction
from django.db.models import Count, Max, Sum
from django.utils import timezone

from tenants.models import School

from .models import FeePayment, FeeStructure

logger = logging.getLogger(__name__)

CENTS = Decimal('0.01')


def money(value) -> Decimal:
    return Decimal(value or 0).quantize(CENTS, rounding=ROUND_HALF_UP)


class FeeServiceError(Exception):
    """Base exception for fee service errors."""
    pass


class InactiveFeeStructureError(FeeServiceError):
    """Raised when paying against a deactivated fee structure."""
    pass


class InvalidPaymentError(FeeServiceError):
    """Raised when amount or discount is out of range."""
    pass


class AlreadyRefundedError(FeeServiceError):
    """Raised when refunding a payment twice."""
    pass


def days_late(due_date, now=None) -> int:
    """Полных (с округлением вверх) суток после полуночи дня оплаты."""
    now = now or timezone.now()
    due_at = timezone.make_aware(datetime.combine(due_date, time.min), timezone.get_current_timezone())
    if now <= due_at:
        return 0
    return math.ceil((now - due_at) / timedelta(days=1))


def previously_paid(school, student, structure) -> Decimal:
    total = (
        FeePayment.objects
        .filter(school=school, student=student, fee_structure=structure)
        .exclude(status=FeePayment.Status.REFUNDED)
        .aggregate(total=Sum('total_paid'))['total']
    )
    return money(total)


def current_payments(queryset):
    """
    Последний не возвращённый платёж по каждой паре (ученик, начисление).

    balance_due - снимок на момент платежа, поэтому актуален только у последнего;
    более ранние частичные платежи уже перекрыты следующими.
    """
    latest = (
        queryset
        .exclude(status=FeePayment.Status.REFUNDED)
        .order_by()
        .values('student_id', 'fee_structure_id')
        .annotate(latest_id=Max('id'))
        .values('latest_id')
    )
    return queryset.filter(pk__in=latest)


class FeeService:

    @staticmethod
    @transaction.atomic
    def record_payment(
        school,
        student,
        structure: FeeStructure,
        amount,
        payment_method=FeePayment.Method.CASH,
        discount=Decimal('0'),
        paid_by='',
        notes='',
        transaction_id='',
        collected_by=None,
        now=None,
    ) -> FeePayment:
        """
        Записать платёж ученика по начислению.

        Returns:
            FeePayment: Созданный платёж

        Raises:
            InvalidPaymentError: amount <= 0 или discount < 0
            InactiveFeeStructureError: начисление деактивировано
        """
        amount, discount = money(amount), money(discount)
        if amount <= 0:
            raise InvalidPaymentError('Payment amount must be greater than zero')
        if discount < 0:
            raise InvalidPaymentError('Discount cannot be negative')

        # Блокируем школу: последовательная нумерация квитанций
        School.objects.select_for_update().get(pk=school.pk)
        structure = FeeStructure.objects.select_for_update().get(pk=structure.pk)
        if not structure.is_active:
            raise InactiveFeeStructureError(f'Fee structure "{structure.name}" is inactive')

        now = now or timezone.now()
        late_fee = money(days_late(structure.due_date, now) * structure.late_fee_per_day)
        paid_before = previously_paid(school, student, structure)
        total_due = structure.amount + late_fee - discount
        balance = total_due - (paid_before + amount)

        seq = FeePayment.objects.filter(school=school).count() + 1
        receipt_number = f'RCP-{timezone.localtime(now):%Y%m%d%H%M%S}-{seq}'

        payment = FeePayment.objects.create(
            school=school,
            student=student,
            student_name=student.name,
            class_name=student.class_name,
            fee_structure=structure,
            fee_name=structure.name,
            amount=structure.amount,
            late_fee=late_fee,
            discount=discount,
            total_paid=amount,
            balance_due=max(Decimal('0.00'), money(balance)),
            payment_date=now,
            payment_method=payment_method,
            transaction_id=transaction_id,
            receipt_number=receipt_number,
            status=FeePayment.Status.PAID if balance <= 0 else FeePayment.Status.PARTIAL,
            paid_by=paid_by,
            collected_by=collected_by,
            notes=notes,
        )

        logger.info(
            f'Fee payment: school={school.slug}, student={student.pk}, structure={structure.pk}, '
            f'amount={amount}, late_fee={late_fee}, balance={payment.balance_due}, receipt={receipt_number}'
        )
        return payment

    @staticmethod
    @transaction.atomic
    def refund_payment(payment: FeePayment, reason='') -> FeePayment:
        """
        Пометить платёж возвращённым. Возвращённые платежи не учитываются
        в previously_paid следующих платежей.

        Raises:
            AlreadyRefundedError
        """
        payment = FeePayment.objects.select_for_update().get(pk=payment.pk)
        if payment.status == FeePayment.Status.REFUNDED:
            raise AlreadyRefundedError(f'Payment {payment.receipt_number} is already refunded')

        payment.status = FeePayment.Status.REFUNDED
        if reason:
            payment.notes = f'{payment.notes}\nRefund: {reason}'.strip()
        payment.save(update_fields=['status', 'notes', 'updated_at'])

        logger.info(f'Fee payment refunded: {payment.receipt_number} amount={payment.total_paid}')
        return payment

    @staticmethod
    def mark_overdue(today=None) -> int:
        """
        Текущие платежи с остатком > 0 после срока оплаты -> overdue.
        Перекрытые более поздними платежами строки не трогаем. Возвращает число обновлённых.
        """
        today = today or timezone.localdate()
        updated = (
            current_payments(FeePayment.objects.all())
            .filter(
                status__in=[FeePayment.Status.PARTIAL, FeePayment.Status.PENDING],
                balance_due__gt=0,
                fee_structure__due_date__lt=today,
            )
            .update(status=FeePayment.Status.OVERDUE, updated_at=timezone.now())
        )
        if updated:
            logger.info(f'Marked {updated} fee payment(s) overdue')
        return updated

    @staticmethod
    def summary(queryset):
        """
        Сводка по платежам (queryset уже ограничен школой / классом).

        collected - всё внесённое, кроме возвратов; pending - остатки текущих
        платежей (pending / partial / overdue).
        """
        collected = (
            queryset.exclude(status=FeePayment.Status.REFUNDED)
            .aggregate(total=Sum('total_paid'))['total']
        )
        pending = (
            current_payments(queryset)
            .filter(status__in=[
                FeePayment.Status.PENDING, FeePayment.Status.PARTIAL, FeePayment.Status.OVERDUE,
            ])
            .aggregate(total=Sum('balance_due'))['total']
        )
        by_status = [
            {'status': row['status'], 'count': row['count'], 'total': str(money(row['total']))}
            for row in queryset.order_by().values('status')
            .annotate(count=Count('id'), total=Sum('total_paid')).order_by('status')
        ]
        return {
            'total_collected': str(money(collected)),
            'total_pending': str(money(pending)),
            'by_status': by_status,
        }

    @staticmethod
    def student_status(school, student, today=None):
        """Остатки по каждому активному начислению класса ученика."""
        today = today or timezone.localdate()
        structures = FeeStructure.objects.filter(
            school=school, class_name=student.class_name, status=FeeStructure.Status.ACTIVE,
        ).order_by('due_date')

        rows = []
        totals = {'total_due': Decimal('0.00'), 'total_paid': Decimal('0.00'), 'total_balance': Decimal('0.00')}
        for structure in structures:
            payments = (
                FeePayment.objects
                .filter(school=school, student=student, fee_structure=structure)
                .exclude(status=FeePayment.Status.REFUNDED)
                .order_by('-id')
            )
            paid = money(payments.aggregate(total=Sum('total_paid'))['total'])
            latest = payments.first()
            if latest is not None:
                due = money(structure.amount + latest.late_fee - latest.discount)
                balance = latest.balance_due
            else:
                due = structure.amount
                balance = structure.amount

            if balance <= 0:
                fee_status = FeePayment.Status.PAID
            elif structure.due_date < today:
                fee_status = FeePayment.Status.OVERDUE
            elif paid > 0:
                fee_status = FeePayment.Status.PARTIAL
            else:
                fee_status = FeePayment.Status.PENDING

            rows.append({
                'fee_structure_id': structure.pk,
                'fee_name': structure.name,
                'category': structure.category,
                'due_date': structure.due_date.isoformat(),
                'amount': str(structure.amount),
                'total_due': str(due),
                'paid': str(paid),
                'balance': str(balance),
                'status': fee_status,
                'last_receipt': latest.receipt_number if latest else None,
            })
            totals['total_due'] += due
            totals['total_paid'] += paid
            totals['total_balance'] += balance

        return {
            'student_id': student.pk,
            'student_name': student.name,
            'class_name': student.class_name,
            'fees': rows,
            'summary': {key: str(value) for key, value in totals.items()},
        }
