"""
Tests for fees app.

Covers:
- days_late / пеня
- FeeService.record_payment (скидка, частичная оплата, накопленный остаток, квитанции)
- Возврат и пометка просроченных, ежедневные напоминания
- API: начисления, платежи, сводка, статус ученика
"""
import re
from datetime import date, datetime
from decimal import Decimal

from django.core import mail
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from audit.models import AuditLog
from campusiq.testing import create_school, create_student, create_user
from tenants.middleware import SchoolMiddleware
from tenants.models import School

from .models import FeePayment, FeeStructure
from .services import (
    AlreadyRefundedError,
    FeeService,
    InactiveFeeStructureError,
    InvalidPaymentError,
    days_late,
    previously_paid,
)
from .tasks import mark_overdue_payments, send_fee_reminders


def local_dt(*args):
    return timezone.make_aware(datetime(*args), timezone.get_current_timezone())


def create_structure(school, **extra):
    data = {
        'name': 'Term 1 Tuition',
        'class_name': '5A',
        'academic_year': '2026-27',
        'amount': Decimal('1000.00'),
        'due_date': date(2026, 4, 1),
        'late_fee_per_day': Decimal('10.00'),
    }
    data.update(extra)
    return FeeStructure.objects.create(school=school, **data)


class DaysLateTest(TestCase):

    def test_before_due_date(self):
        self.assertEqual(days_late(date(2026, 4, 1), local_dt(2026, 3, 31, 18, 0)), 0)

    def test_partial_day_rounds_up(self):
        self.assertEqual(days_late(date(2026, 4, 1), local_dt(2026, 4, 1, 9, 30)), 1)
        self.assertEqual(days_late(date(2026, 4, 1), local_dt(2026, 4, 3, 10, 0)), 3)

    def test_exact_midnight(self):
        self.assertEqual(days_late(date(2026, 4, 1), local_dt(2026, 4, 1, 0, 0)), 0)
        self.assertEqual(days_late(date(2026, 4, 1), local_dt(2026, 4, 2, 0, 0)), 1)


class RecordPaymentTest(TestCase):

    def setUp(self):
        self.school = create_school('greenwood')
        self.student = create_student(self.school)
        self.structure = create_structure(self.school)

    def test_full_payment_on_time(self):
        payment = FeeService.record_payment(
            self.school, self.student, self.structure, '1000', now=local_dt(2026, 3, 25, 11, 0),
        )
        self.assertEqual(payment.status, FeePayment.Status.PAID)
        self.assertEqual(payment.late_fee, Decimal('0.00'))
        self.assertEqual(payment.balance_due, Decimal('0.00'))
        self.assertEqual(payment.receipt_number, 'RCP-20260325110000-1')
        self.assertEqual(payment.student_name, self.student.name)
        self.assertEqual(payment.fee_name, 'Term 1 Tuition')

    def test_late_fee_and_discount(self):
        payment = FeeService.record_payment(
            self.school, self.student, self.structure, '500',
            discount='100', now=local_dt(2026, 4, 3, 10, 0),
        )
        # 1000 + 3 * 10 - 100 = 930
        self.assertEqual(payment.late_fee, Decimal('30.00'))
        self.assertEqual(payment.balance_due, Decimal('430.00'))
        self.assertEqual(payment.status, FeePayment.Status.PARTIAL)

    def test_second_payment_settles_balance(self):
        now = local_dt(2026, 3, 20, 9, 0)
        FeeService.record_payment(self.school, self.student, self.structure, '600', now=now)
        second = FeeService.record_payment(self.school, self.student, self.structure, '400', now=now)
        self.assertEqual(second.balance_due, Decimal('0.00'))
        self.assertEqual(second.status, FeePayment.Status.PAID)
        self.assertEqual(second.receipt_number, 'RCP-20260320090000-2')

    def test_overpayment_clamps_balance(self):
        payment = FeeService.record_payment(
            self.school, self.student, self.structure, '1200', now=local_dt(2026, 3, 20, 9, 0),
        )
        self.assertEqual(payment.balance_due, Decimal('0.00'))
        self.assertEqual(payment.status, FeePayment.Status.PAID)

    def test_refunded_payments_not_counted(self):
        now = local_dt(2026, 3, 20, 9, 0)
        first = FeeService.record_payment(self.school, self.student, self.structure, '600', now=now)
        FeeService.refund_payment(first, 'Paid twice by mistake')
        self.assertEqual(previously_paid(self.school, self.student, self.structure), Decimal('0.00'))

        second = FeeService.record_payment(self.school, self.student, self.structure, '600', now=now)
        self.assertEqual(second.balance_due, Decimal('400.00'))

    def test_receipt_sequence_is_per_school(self):
        other = create_school('other')
        FeeService.record_payment(
            other, create_student(other), create_structure(other), '100', now=local_dt(2026, 3, 20, 9, 0),
        )
        payment = FeeService.record_payment(
            self.school, self.student, self.structure, '100', now=local_dt(2026, 3, 20, 9, 0),
        )
        self.assertTrue(payment.receipt_number.endswith('-1'))

    def test_invalid_amounts(self):
        with self.assertRaises(InvalidPaymentError):
            FeeService.record_payment(self.school, self.student, self.structure, '0')
        with self.assertRaises(InvalidPaymentError):
            FeeService.record_payment(self.school, self.student, self.structure, '100', discount='-5')

    def test_inactive_structure(self):
        self.structure.status = FeeStructure.Status.INACTIVE
        self.structure.save()
        with self.assertRaises(InactiveFeeStructureError):
            FeeService.record_payment(self.school, self.student, self.structure, '100')

    def test_double_refund(self):
        payment = FeeService.record_payment(self.school, self.student, self.structure, '100')
        FeeService.refund_payment(payment)
        with self.assertRaises(AlreadyRefundedError):
            FeeService.refund_payment(payment)


class MarkOverdueTest(TestCase):

    def setUp(self):
        self.school = create_school('greenwood')
        self.student = create_student(self.school)

    def test_partial_past_due_becomes_overdue(self):
        structure = create_structure(self.school, due_date=date(2026, 4, 1))
        partial = FeeService.record_payment(
            self.school, self.student, structure, '200', now=local_dt(2026, 3, 20, 9, 0),
        )
        paid = FeeService.record_payment(
            self.school, create_student(self.school, roll_number='2'), structure, '1000',
            now=local_dt(2026, 3, 20, 9, 0),
        )

        self.assertEqual(FeeService.mark_overdue(today=date(2026, 4, 1)), 0)
        self.assertEqual(FeeService.mark_overdue(today=date(2026, 4, 2)), 1)

        partial.refresh_from_db()
        paid.refresh_from_db()
        self.assertEqual(partial.status, FeePayment.Status.OVERDUE)
        self.assertEqual(paid.status, FeePayment.Status.PAID)

    def test_superseded_partial_payments_stay_partial(self):
        structure = create_structure(self.school, due_date=date(2026, 4, 1))
        first = FeeService.record_payment(self.school, self.student, structure, '300', now=local_dt(2026, 3, 20, 9, 0))
        second = FeeService.record_payment(self.school, self.student, structure, '300', now=local_dt(2026, 3, 25, 9, 0))

        self.assertEqual(FeeService.mark_overdue(today=date(2026, 5, 1)), 1)

        first.refresh_from_db()
        second.refresh_from_db()
        self.assertEqual((first.status, first.balance_due), (FeePayment.Status.PARTIAL, Decimal('700.00')))
        self.assertEqual((second.status, second.balance_due), (FeePayment.Status.OVERDUE, Decimal('400.00')))

        summary = FeeService.summary(FeePayment.objects.filter(school=self.school))
        self.assertEqual(summary['total_collected'], '600.00')
        self.assertEqual(summary['total_pending'], '400.00')

    def test_refunded_latest_payment_falls_back_to_previous(self):
        structure = create_structure(self.school, due_date=date(2026, 4, 1))
        FeeService.record_payment(self.school, self.student, structure, '300', now=local_dt(2026, 3, 20, 9, 0))
        latest = FeeService.record_payment(self.school, self.student, structure, '300', now=local_dt(2026, 3, 25, 9, 0))
        FeeService.refund_payment(latest)

        summary = FeeService.summary(FeePayment.objects.filter(school=self.school))
        self.assertEqual(summary['total_collected'], '300.00')
        self.assertEqual(summary['total_pending'], '700.00')

    def test_task(self):
        structure = create_structure(self.school, due_date=date(2020, 1, 1))
        FeeService.record_payment(self.school, self.student, structure, '10', now=local_dt(2019, 12, 1, 9, 0))
        self.assertEqual(mark_overdue_payments(), 1)


class SendFeeRemindersTest(TestCase):

    def setUp(self):
        self.school = create_school('greenwood')
        self.structure = create_structure(self.school, due_date=date(2026, 4, 1))
        self.student = create_student(self.school, parent_email='rohit@example.com')

    def test_reminds_current_overdue_balance(self):
        FeeService.record_payment(self.school, self.student, self.structure, '200', now=local_dt(2026, 3, 20, 9, 0))
        FeeService.record_payment(self.school, self.student, self.structure, '100', now=local_dt(2026, 3, 25, 9, 0))
        FeeService.record_payment(
            self.school, create_student(self.school, roll_number='2', parent_email='paid@example.com'),
            self.structure, '1000', now=local_dt(2026, 3, 20, 9, 0),
        )

        result = send_fee_reminders(today=date(2026, 4, 2))

        self.assertEqual(result, {'reminded': 1, 'marked_overdue': 1})
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['rohit@example.com'])
        self.assertEqual(mail.outbox[0].subject, 'Fee overdue: Term 1 Tuition')
        self.assertIn('700.00', mail.outbox[0].alternatives[0][0])

    def test_nothing_before_due_date(self):
        FeeService.record_payment(self.school, self.student, self.structure, '200', now=local_dt(2026, 3, 20, 9, 0))
        self.assertEqual(send_fee_reminders(today=date(2026, 3, 30)), {'reminded': 0, 'marked_overdue': 0})
        self.assertEqual(len(mail.outbox), 0)

    def test_inactive_school_skipped(self):
        FeeService.record_payment(self.school, self.student, self.structure, '200', now=local_dt(2026, 3, 20, 9, 0))
        self.school.status = School.Status.INACTIVE
        self.school.save(update_fields=['status'])
        self.assertEqual(send_fee_reminders(today=date(2026, 4, 2))['reminded'], 0)
        self.assertEqual(len(mail.outbox), 0)


class StudentFeeStatusServiceTest(TestCase):

    def test_balances_per_structure(self):
        school = create_school('greenwood')
        student = create_student(school)
        tuition = create_structure(school, due_date=date(2026, 4, 1))
        create_structure(school, name='Lab Fee', amount=Decimal('300.00'), due_date=date(2026, 9, 1), category='lab')
        create_structure(school, name='Other class', class_name='6B')
        FeeService.record_payment(school, student, tuition, '400', now=local_dt(2026, 3, 20, 9, 0))

        result = FeeService.student_status(school, student, today=date(2026, 5, 1))

        self.assertEqual([f['fee_name'] for f in result['fees']], ['Term 1 Tuition', 'Lab Fee'])
        tuition_row, lab_row = result['fees']
        self.assertEqual(tuition_row['paid'], '400.00')
        self.assertEqual(tuition_row['balance'], '600.00')
        self.assertEqual(tuition_row['status'], 'overdue')
        self.assertEqual(lab_row['status'], 'pending')
        self.assertEqual(result['summary']['total_balance'], '900.00')


class FeeAPITest(APITestCase):

    def setUp(self):
        SchoolMiddleware.clear_cache()
        self.school = create_school('greenwood')
        self.admin = create_user(self.school, 'admin')
        self.teacher = create_user(self.school, 'teacher')
        self.parent = create_user(self.school, 'parent')
        self.student = create_student(self.school, parent_user=self.parent, parent_email='rohit@example.com')
        self.structure = create_structure(self.school, due_date=date(2099, 4, 1))
        self.client.force_authenticate(user=self.admin)

    def _pay(self, amount='1000.00', **extra):
        data = {
            'student_id': self.student.pk,
            'fee_structure_id': self.structure.pk,
            'amount': amount,
            'payment_method': 'upi',
            'transaction_id': 'UPI123',
        }
        data.update(extra)
        return self.client.post('/api/fees/payments/', data, format='json')

    def test_create_structure_sends_reminders(self):
        response = self.client.post('/api/fees/structures/', {
            'name': 'Annual Day', 'class_name': '5A', 'academic_year': '2026-27',
            'amount': '250.00', 'due_date': '2099-12-01', 'category': 'other',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['rohit@example.com'])
        self.assertTrue(AuditLog.objects.filter(entity='fee_structure', action='create').exists())

    def test_negative_amount_rejected(self):
        response = self.client.post('/api/fees/structures/', {
            'name': 'Bad', 'class_name': '5A', 'academic_year': '2026-27',
            'amount': '-1', 'due_date': '2099-12-01',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_structure_soft_delete(self):
        self._pay()
        response = self.client.delete(f'/api/fees/structures/{self.structure.pk}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['preserved_payments'], 1)
        self.structure.refresh_from_db()
        self.assertFalse(self.structure.is_active)

        self.assertEqual(self.client.get('/api/fees/structures/').data['count'], 0)
        self.assertEqual(self.client.get('/api/fees/structures/', {'status': 'all'}).data['count'], 1)

    def test_structure_update_is_audited(self):
        response = self.client.patch(f'/api/fees/structures/{self.structure.pk}/', {'amount': '1100.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        log = AuditLog.objects.get(entity='fee_structure', action='update')
        self.assertEqual(log.changes['amount'], {'old': '1000.00', 'new': '1100.00'})

    def test_record_payment(self):
        response = self._pay('400.00')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertRegex(response.data['receipt_number'], r'^RCP-\d{14}-1$')
        self.assertEqual(response.data['status'], 'partial')
        self.assertEqual(response.data['balance_due'], '600.00')
        self.assertEqual(response.data['collected_by_name'], self.admin.name)
        self.assertEqual(mail.outbox[-1].to, ['rohit@example.com'])
        self.assertTrue(AuditLog.objects.filter(entity='fee_payment', action='create').exists())

    def test_zero_amount_rejected(self):
        response = self._pay('0')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_inactive_structure_is_400(self):
        self.structure.status = FeeStructure.Status.INACTIVE
        self.structure.save()
        response = self._pay()
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('inactive', response.data['detail'])

    def test_foreign_student_is_404(self):
        foreign = create_student(create_school('other'))
        response = self._pay(student_id=foreign.pk)
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_teacher_cannot_record(self):
        self.client.force_authenticate(user=self.teacher)
        self.assertEqual(self._pay().status_code, status.HTTP_403_FORBIDDEN)

    def test_refund(self):
        payment_id = self._pay().data['id']
        response = self.client.post(f'/api/fees/payments/{payment_id}/refund/', {'reason': 'Duplicate'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'refunded')

        response = self.client.post(f'/api/fees/payments/{payment_id}/refund/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

        log = AuditLog.objects.get(entity='fee_payment', action='update')
        self.assertEqual(log.changes['status'], {'old': 'paid', 'new': 'refunded'})

    def test_teacher_cannot_refund(self):
        payment_id = self._pay().data['id']
        self.client.force_authenticate(user=self.teacher)
        response = self.client.post(f'/api/fees/payments/{payment_id}/refund/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_parent_sees_only_own_payments(self):
        self._pay()
        other = create_student(self.school, name='Other Kid', roll_number='2')
        self._pay(student_id=other.pk)

        self.client.force_authenticate(user=self.parent)
        response = self.client.get('/api/fees/payments/')
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['student_name'], self.student.name)

    def test_summary(self):
        self._pay('400.00')
        paid = create_student(self.school, name='Paid Kid', roll_number='2')
        self._pay('1000.00', student_id=paid.pk)
        FeePayment.objects.filter(student=self.student).update(status=FeePayment.Status.OVERDUE)

        response = self.client.get('/api/fees/summary/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        # 400 (overdue) + 1000 (paid): внесённые деньги учитываются при любом статусе
        self.assertEqual(response.data['total_collected'], '1400.00')
        self.assertEqual(response.data['total_pending'], '600.00')
        statuses = {row['status']: row['count'] for row in response.data['by_status']}
        self.assertEqual(statuses, {'overdue': 1, 'paid': 1})

    def test_summary_after_overdue_counts_current_balance_once(self):
        structure = create_structure(self.school, due_date=date(2026, 4, 1))
        for day in (20, 25):
            FeeService.record_payment(self.school, self.student, structure, '300', now=local_dt(2026, 3, day, 9, 0))
        FeeService.mark_overdue(today=date(2026, 5, 1))

        response = self.client.get('/api/fees/summary/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_collected'], '600.00')
        self.assertEqual(response.data['total_pending'], '400.00')

    def test_summary_hidden_from_parents(self):
        other = create_student(self.school, name='Other Kid', roll_number='2')
        self._pay('1000.00', student_id=other.pk)

        self.client.force_authenticate(user=self.parent)
        response = self.client.get('/api/fees/summary/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(user=self.teacher)
        response = self.client.get('/api/fees/summary/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_collected'], '1000.00')

    def test_student_status(self):
        self._pay('250.00')
        response = self.client.get('/api/fees/student-status/', {'student_id': self.student.pk})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['fees'][0]['balance'], '750.00')
        self.assertEqual(response.data['fees'][0]['status'], 'partial')

    def test_student_status_requires_student_id(self):
        response = self.client.get('/api/fees/student-status/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_student_status_hidden_from_other_parent(self):
        other_parent = create_user(self.school, 'parent', email='other.parent@greenwood.test')
        self.client.force_authenticate(user=other_parent)
        response = self.client.get('/api/fees/student-status/', {'student_id': self.student.pk})
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_receipt_numbers_unique(self):
        first = self._pay('100.00').data['receipt_number']
        second = self._pay('100.00').data['receipt_number']
        self.assertNotEqual(first, second)
        self.assertTrue(re.match(r'^RCP-\d{14}-2$', second))
