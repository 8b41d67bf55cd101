"""
Tests for reports app.

Covers:
- parse_month_year
- Месячный отчёт посещаемости (low attendance < 75%, без учёта учеников без отметок)
- Дашборд школы
- Квитанция и табель: JSON и ?format=html, запись export в аудит
"""
from datetime import date, timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from attendance.models import Attendance
from audit.models import AuditLog
from campusiq.testing import create_school, create_student, create_user
from exams.models import Exam
from exams.services import ExamService
from fees.models import FeeStructure
from fees.services import FeeService
from tenants.middleware import SchoolMiddleware
from visitors.services import VisitorService

from .services import ReportError, monthly_attendance, parse_month_year


def mark(school, student, day, status_value):
    return Attendance.objects.create(
        school=school, student=student, class_name=student.class_name, date=day, status=status_value,
    )


class ParseMonthYearTest(TestCase):

    def test_defaults_to_current_month(self):
        self.assertEqual(parse_month_year(None, '', today=date(2026, 7, 14)), (7, 2026))

    def test_explicit(self):
        self.assertEqual(parse_month_year('3', '2025'), (3, 2025))

    def test_invalid(self):
        for month, year in (('13', '2026'), ('0', '2026'), ('abc', '2026'), ('5', '1999'), ('5', '2101')):
            with self.assertRaises(ReportError):
                parse_month_year(month, year)


class MonthlyAttendanceTest(TestCase):

    def setUp(self):
        self.school = create_school('greenwood')
        self.regular = create_student(self.school, name='Regular', roll_number='1')
        self.often_absent = create_student(self.school, name='Often Absent', roll_number='2')
        self.new_joiner = create_student(self.school, name='New Joiner', roll_number='3')
        self.other_class = create_student(self.school, name='Other Class', class_name='6B', roll_number='1')

        for day, regular, absent in (
            (1, 'present', 'absent'),
            (2, 'present', 'absent'),
            (3, 'late', 'present'),
            (6, 'present', 'leave'),
        ):
            mark(self.school, self.regular, date(2026, 7, day), regular)
            mark(self.school, self.often_absent, date(2026, 7, day), absent)
        mark(self.school, self.regular, date(2026, 6, 30), 'absent')

    def test_per_student_counts(self):
        report = monthly_attendance(self.school, 7, 2026, '5A')
        rows = {r['student_name']: r for r in report['students']}
        self.assertEqual(set(rows), {'Regular', 'Often Absent', 'New Joiner'})
        self.assertEqual(rows['Regular']['total_days'], 4)
        self.assertEqual(rows['Regular']['late_count'], 1)
        self.assertEqual(rows['Regular']['percentage'], 75)
        self.assertEqual(rows['Often Absent']['percentage'], 25)
        self.assertEqual(rows['New Joiner']['total_days'], 0)

    def test_low_attendance_excludes_students_without_records(self):
        report = monthly_attendance(self.school, 7, 2026, '5A')
        self.assertEqual([r['student_name'] for r in report['low_attendance']], ['Often Absent'])

    def test_summary(self):
        report = monthly_attendance(self.school, 7, 2026, '5A')
        summary = report['summary']
        self.assertEqual(summary['total_students'], 3)
        self.assertEqual(summary['working_days'], 4)
        self.assertEqual(summary['total_present'], 4)
        self.assertEqual(summary['total_absent'], 2)
        self.assertEqual(summary['total_leave'], 1)
        # (75 + 25 + 0) / 3
        self.assertEqual(summary['average_attendance'], 33)

    def test_all_classes(self):
        report = monthly_attendance(self.school, 7, 2026)
        self.assertEqual(report['class_name'], 'All Classes')
        self.assertEqual(report['summary']['total_students'], 4)


class ReportAPITest(APITestCase):

    def setUp(self):
        SchoolMiddleware.clear_cache()
        self.school = create_school('greenwood', name='Greenwood Public School')
        self.admin = create_user(self.school, 'admin')
        self.teacher = create_user(self.school, 'teacher')
        self.parent = create_user(self.school, 'parent')
        self.student = create_student(self.school, parent_name='Rohit Sharma')
        self.client.force_authenticate(user=self.admin)

    def _payment(self):
        structure = FeeStructure.objects.create(
            school=self.school, name='Term 1 Tuition', class_name='5A', academic_year='2026-27',
            amount=Decimal('1500.00'), due_date=date(2099, 4, 1),
        )
        return FeeService.record_payment(
            self.school, self.student, structure, '1500', payment_method='upi',
            transaction_id='UPI42', collected_by=self.admin,
        )

    def _graded_exam(self):
        exam = Exam.objects.create(
            school=self.school, name='Mid-term 2026', class_name='5A', subject='Science',
            date=date(2026, 9, 15), total_marks=50, passing_marks=18,
        )
        ExamService.enter_grades(exam, [{'student_id': self.student.pk, 'marks_obtained': Decimal('41')}], self.teacher)
        return exam

    def test_monthly_report(self):
        mark(self.school, self.student, date(2026, 7, 1), 'present')
        response = self.client.get('/api/reports/monthly/', {'month': '7', 'year': '2026'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['students'][0]['percentage'], 100)
        self.assertTrue(AuditLog.objects.filter(action='export', entity='monthly_report', entity_id='2026-07').exists())

    def test_monthly_report_invalid_month(self):
        response = self.client.get('/api/reports/monthly/', {'month': '13', 'year': '2026'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['detail'], 'Invalid month (1-12)')

    def test_parent_has_no_reports(self):
        self.client.force_authenticate(user=self.parent)
        response = self.client.get('/api/reports/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_dashboard(self):
        self._payment()
        Exam.objects.create(
            school=self.school, name='Unit Test 2', class_name='5A', subject='Maths',
            date=timezone.localdate() + timedelta(days=3), total_marks=20,
        )
        mark(self.school, self.student, timezone.localdate(), 'present')
        VisitorService.register(self.school, {'visitor_name': 'Courier', 'purpose': 'Delivery'}, self.admin)

        self.client.force_authenticate(user=self.teacher)
        response = self.client.get('/api/reports/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        data = response.data
        self.assertEqual(data['students']['total'], 1)
        self.assertEqual(data['teachers']['total'], 1)
        self.assertEqual(data['attendance_today']['present'], 1)
        self.assertEqual(data['attendance_today']['rate'], 100.0)
        self.assertEqual(data['fees']['collected_this_month'], '1500.00')
        self.assertEqual(data['exams']['upcoming'], 1)
        self.assertEqual(data['exams']['next'][0]['name'], 'Unit Test 2')
        self.assertEqual(data['visitors']['on_campus'], 1)

    def test_fee_receipt_json(self):
        payment = self._payment()
        response = self.client.get('/api/reports/fee-receipt/', {'payment_id': payment.pk})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['receipt_number'], payment.receipt_number)
        self.assertEqual(response.data['school']['name'], 'Greenwood Public School')
        self.assertEqual(response.data['student']['parent_name'], 'Rohit Sharma')
        self.assertEqual(response.data['payment_method'], 'UPI')
        self.assertEqual(response.data['collected_by'], self.admin.name)

        log = AuditLog.objects.get(action='export', entity='fee_receipt')
        self.assertEqual(log.metadata['format'], 'json')

    def test_fee_receipt_html(self):
        payment = self._payment()
        response = self.client.get('/api/reports/fee-receipt/', {'payment_id': payment.pk, 'format': 'html'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response['Content-Type'].startswith('text/html'))
        body = response.content.decode()
        self.assertIn(payment.receipt_number, body)
        self.assertIn('Greenwood Public School', body)
        self.assertIn('UPI42', body)

    def test_fee_receipt_requires_payment_id(self):
        response = self.client.get('/api/reports/fee-receipt/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_fee_receipt_other_school_is_404(self):
        other = create_school('other')
        structure = FeeStructure.objects.create(
            school=other, name='Tuition', class_name='1A', academic_year='2026-27',
            amount=Decimal('100.00'), due_date=date(2099, 1, 1),
        )
        payment = FeeService.record_payment(other, create_student(other), structure, '100')
        response = self.client.get('/api/reports/fee-receipt/', {'payment_id': payment.pk})
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_report_card_json_and_html(self):
        self._graded_exam()
        response = self.client.get('/api/reports/report-card/', {'student_id': self.student.pk})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['exams'][0]['subjects'][0]['grade'], 'A')

        response = self.client.get('/api/reports/report-card/', {'student_id': self.student.pk, 'format': 'html'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        body = response.content.decode()
        self.assertIn('Mid-term 2026', body)
        self.assertIn(self.student.name, body)
        self.assertEqual(AuditLog.objects.filter(action='export', entity='report_card').count(), 2)

    def test_report_card_without_grades_is_404(self):
        response = self.client.get('/api/reports/report-card/', {'student_id': self.student.pk})
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['detail'], 'No grades found for this student')
        self.assertFalse(AuditLog.objects.filter(action='export').exists())


class HealthCheckTest(APITestCase):

    def test_health(self):
        response = self.client.get('/api/health/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()['checks']['database'], 'ok')
        self.assertEqual(response.json()['checks']['sms'], 'disabled')

    def test_ready_and_live(self):
        self.assertTrue(self.client.get('/api/health/ready/').json()['ready'])
        self.assertTrue(self.client.get('/api/health/live/').json()['alive'])
