"""
Tests for attendance app.

Covers:
- AttendanceService.mark (upsert, праздники, чужие ученики)
- Сводка за сегодня и статистика для дашборда
- /api/attendance/ GET/POST, уведомления об опозданиях и отсутствии
- /api/holidays/
- Ежедневный отчёт для администраторов
"""
from datetime import date, timedelta

from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from audit.models import AuditLog
from campusiq.testing import create_school, create_student, create_user
from notifications.models import Notification
from tenants.middleware import SchoolMiddleware

from .models import Attendance, Holiday
from .services import (
    AttendanceService,
    HolidayError,
    UnknownStudentError,
    count_statuses,
    percent,
)
from .tasks import daily_attendance_report


class HelpersTest(TestCase):

    def test_count_statuses(self):
        stats = count_statuses(['present', 'present', 'absent', 'late'])
        self.assertEqual(stats, {'total': 4, 'present': 2, 'absent': 1, 'late': 1, 'leave': 0})

    def test_percent(self):
        self.assertEqual(percent(2, 3), 67)
        self.assertEqual(percent(2, 3, 1), 66.7)
        self.assertEqual(percent(5, 0), 0)


class AttendanceServiceTest(TestCase):

    def setUp(self):
        self.school = create_school('greenwood')
        self.teacher = create_user(self.school, 'teacher')
        self.aarav = create_student(self.school, name='Aarav', roll_number='1')
        self.diya = create_student(self.school, name='Diya', roll_number='2')
        self.day = date(2026, 7, 14)

    def test_mark_creates_records(self):
        saved, stats = AttendanceService.mark(self.school, self.day, '5A', [
            {'student_id': self.aarav.pk, 'status': 'present'},
            {'student_id': self.diya.pk, 'status': 'absent', 'notes': 'Fever'},
        ], self.teacher)
        self.assertEqual(len(saved), 2)
        self.assertEqual(stats['present'], 1)
        self.assertEqual(stats['absent'], 1)
        record = Attendance.objects.get(student=self.diya, date=self.day)
        self.assertEqual(record.notes, 'Fever')
        self.assertEqual(record.marked_by, self.teacher)

    def test_remark_updates_in_place(self):
        AttendanceService.mark(self.school, self.day, '5A', [
            {'student_id': self.aarav.pk, 'status': 'absent'},
        ], self.teacher)
        AttendanceService.mark(self.school, self.day, '5A', [
            {'student_id': self.aarav.pk, 'status': 'late'},
        ], self.teacher)
        records = Attendance.objects.filter(student=self.aarav, date=self.day)
        self.assertEqual(records.count(), 1)
        self.assertEqual(records.get().status, 'late')

    def test_holiday_rejected(self):
        Holiday.objects.create(school=self.school, date=self.day, name='Founders Day')
        with self.assertRaises(HolidayError) as ctx:
            AttendanceService.mark(self.school, self.day, '5A', [
                {'student_id': self.aarav.pk, 'status': 'present'},
            ], self.teacher)
        self.assertIn('Founders Day', str(ctx.exception))
        self.assertFalse(Attendance.objects.exists())

    def test_foreign_student_rejected_without_partial_write(self):
        foreign = create_student(create_school('other'), name='Outsider')
        with self.assertRaises(UnknownStudentError):
            AttendanceService.mark(self.school, self.day, '5A', [
                {'student_id': self.aarav.pk, 'status': 'present'},
                {'student_id': foreign.pk, 'status': 'present'},
            ], self.teacher)
        self.assertFalse(Attendance.objects.exists())

    def test_today_summary(self):
        today = timezone.localdate()
        create_student(self.school, name='Kabir', roll_number='3')
        create_student(self.school, name='Gone', roll_number='4', status='inactive')
        AttendanceService.mark(self.school, today, '5A', [
            {'student_id': self.aarav.pk, 'status': 'present'},
            {'student_id': self.diya.pk, 'status': 'late'},
        ], self.teacher)

        summary = AttendanceService.today_summary(self.school, '5A')

        self.assertEqual(summary['date'], today.isoformat())
        self.assertEqual([s['name'] for s in summary['students']], ['Aarav', 'Diya', 'Kabir'])
        self.assertIsNone(summary['students'][2]['status'])
        self.assertEqual(summary['stats']['total'], 3)
        self.assertEqual(summary['stats']['marked'], 2)
        self.assertEqual(summary['stats']['unmarked'], 1)
        self.assertEqual(summary['stats']['percentage'], 66.7)

    def test_dashboard_stats(self):
        create_student(self.school, name='Meera', class_name='6B', roll_number='1')
        AttendanceService.mark(self.school, self.day, '5A', [
            {'student_id': self.aarav.pk, 'status': 'present'},
            {'student_id': self.diya.pk, 'status': 'absent'},
        ], self.teacher)
        AttendanceService.mark(self.school, self.day - timedelta(days=1), '5A', [
            {'student_id': self.aarav.pk, 'status': 'present'},
        ], self.teacher)

        stats = AttendanceService.dashboard_stats(self.school, today=self.day)

        self.assertEqual(len(stats['weekly_trend']), 7)
        self.assertEqual(stats['weekly_trend'][-1]['date'], self.day.isoformat())
        self.assertEqual(stats['weekly_trend'][-1]['percentage'], 50)
        self.assertEqual(stats['weekly_trend'][-2]['percentage'], 100)
        self.assertEqual(stats['today_distribution'], {'present': 1, 'absent': 1, 'late': 0, 'leave': 0})

        by_class = {row['class_name']: row for row in stats['class_wise']}
        self.assertEqual(by_class['5A']['percentage'], 50)
        self.assertEqual(by_class['6B']['total_students'], 1)
        self.assertEqual(by_class['6B']['percentage'], 0)

        self.assertEqual(len(stats['monthly_overview']), 6)
        self.assertEqual(stats['monthly_overview'][-1]['month'], 'Jul 2026')
        self.assertEqual(stats['monthly_overview'][-1]['total'], 3)
        self.assertEqual(stats['monthly_overview'][0]['month'], 'Feb 2026')


class DailyAttendanceReportTest(TestCase):

    def setUp(self):
        self.school = create_school('greenwood')
        self.teacher = create_user(self.school, 'teacher')
        self.aarav = create_student(self.school, name='Aarav', roll_number='1')
        self.diya = create_student(self.school, name='Diya', roll_number='2')
        create_student(self.school, name='Kabir', roll_number='3')
        self.day = date(2026, 7, 14)

    def test_report_sent_to_admins(self):
        AttendanceService.mark(self.school, self.day, '5A', [
            {'student_id': self.aarav.pk, 'status': 'present'},
            {'student_id': self.diya.pk, 'status': 'late'},
        ], self.teacher)
        create_school('empty')

        self.assertEqual(daily_attendance_report(day=self.day), 1)

        report = Notification.objects.get(school=self.school)
        self.assertEqual(report.title, 'Daily Attendance Report - 2026-07-14')
        self.assertEqual(report.target_role, Notification.Target.ADMIN)
        self.assertEqual(
            report.message,
            'Total: 3 | Present: 1 | Absent: 0 | Late: 1 | Leave: 0 | Unmarked: 1 | Rate: 66.7%',
        )

    def test_holiday_skipped(self):
        Holiday.objects.create(school=self.school, date=self.day, name='Founders Day')
        self.assertEqual(daily_attendance_report(day=self.day), 0)
        self.assertFalse(Notification.objects.filter(school=self.school).exists())


class AttendanceAPITest(APITestCase):

    def setUp(self):
        SchoolMiddleware.clear_cache()
        self.school = create_school('greenwood')
        self.admin = create_user(self.school, 'admin')
        self.teacher = create_user(self.school, 'teacher')
        self.parent = create_user(self.school, 'parent')
        self.aarav = create_student(self.school, name='Aarav', roll_number='1', parent_user=self.parent,
                                    parent_phone='9876543210')
        self.diya = create_student(self.school, name='Diya', roll_number='2')
        self.client.force_authenticate(user=self.teacher)

    def _mark(self, day='2026-07-14', **statuses):
        return self.client.post('/api/attendance/', {
            'date': day,
            'class_name': '5A',
            'records': [
                {'student_id': self.aarav.pk, 'status': statuses.get('aarav', 'present')},
                {'student_id': self.diya.pk, 'status': statuses.get('diya', 'present')},
            ],
        }, format='json')

    def test_mark_and_fetch(self):
        response = self._mark(diya='absent')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['stats']['absent'], 1)

        response = self.client.get('/api/attendance/', {'date': '2026-07-14', 'class_name': '5A'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([r['student_name'] for r in response.data['records']], ['Aarav', 'Diya'])
        self.assertEqual(response.data['records'][0]['marked_by_name'], self.teacher.name)
        self.assertEqual(response.data['stats']['present'], 1)

    def test_mark_is_audited(self):
        self._mark()
        log = AuditLog.objects.get(entity='attendance')
        self.assertEqual(log.entity_id, '2026-07-14-5A')
        self.assertEqual(log.metadata['stats']['present'], 2)

    def test_late_and_absent_notifications(self):
        self._mark(aarav='late', diya='absent')
        alerts = Notification.objects.filter(type=Notification.Type.ALERT, target_role='admin')
        self.assertEqual(alerts.count(), 1)
        self.assertIn('Aarav', alerts.get().message)

        warning = Notification.objects.get(type=Notification.Type.WARNING, module='attendance')
        self.assertEqual(warning.title, '1 absent in 5A')
        self.assertIn('Diya', warning.message)

    def test_date_required(self):
        response = self.client.get('/api/attendance/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['detail'], 'date is required')

    def test_invalid_date(self):
        response = self.client.get('/api/attendance/', {'date': '14-07-2026'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_holiday_is_400(self):
        Holiday.objects.create(school=self.school, date=date(2026, 7, 14), name='Monsoon break')
        response = self._mark()
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['detail'], 'Cannot mark attendance on a holiday: Monsoon break')

    def test_foreign_student_is_400(self):
        foreign = create_student(create_school('other'), name='Outsider')
        response = self.client.post('/api/attendance/', {
            'date': '2026-07-14', 'class_name': '5A',
            'records': [{'student_id': foreign.pk, 'status': 'present'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_duplicate_student_in_records(self):
        response = self.client.post('/api/attendance/', {
            'date': '2026-07-14', 'class_name': '5A',
            'records': [
                {'student_id': self.aarav.pk, 'status': 'present'},
                {'student_id': self.aarav.pk, 'status': 'absent'},
            ],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('records', response.data)

    def test_invalid_status(self):
        response = self.client.post('/api/attendance/', {
            'date': '2026-07-14', 'class_name': '5A',
            'records': [{'student_id': self.aarav.pk, 'status': 'sleeping'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_parent_sees_only_own_child(self):
        self._mark()
        self.client.force_authenticate(user=self.parent)
        response = self.client.get('/api/attendance/', {'date': '2026-07-14'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([r['student_name'] for r in response.data['records']], ['Aarav'])

    def test_parent_cannot_mark(self):
        self.client.force_authenticate(user=self.parent)
        self.assertEqual(self._mark().status_code, status.HTTP_403_FORBIDDEN)

    def test_today_endpoint(self):
        self._mark(day=timezone.localdate().isoformat(), diya='absent')
        response = self.client.get('/api/attendance/today/', {'class_name': '5A'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['stats']['marked'], 2)
        self.assertEqual(response.data['stats']['percentage'], 50.0)

    def test_stats_endpoint(self):
        response = self.client.get('/api/attendance/stats/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['weekly_trend']), 7)
        self.assertEqual(len(response.data['monthly_overview']), 6)

    def test_stats_hidden_from_parents_and_students(self):
        student_user = create_user(self.school, 'student')
        for user in (self.parent, student_user):
            self.client.force_authenticate(user=user)
            response = self.client.get('/api/attendance/stats/')
            self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class HolidayAPITest(APITestCase):

    def setUp(self):
        SchoolMiddleware.clear_cache()
        self.school = create_school('greenwood')
        self.admin = create_user(self.school, 'admin')
        self.teacher = create_user(self.school, 'teacher')
        Holiday.objects.create(school=self.school, date=date(2026, 8, 15), name='Independence Day', type='national')
        Holiday.objects.create(school=self.school, date=date(2026, 10, 20), name='Diwali', type='religious')

    def test_list_by_month(self):
        self.client.force_authenticate(user=self.teacher)
        response = self.client.get('/api/holidays/', {'year': '2026', 'month': '8'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([h['name'] for h in response.data], ['Independence Day'])

    def test_admin_creates_holiday(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.post('/api/holidays/', {
            'date': '2026-11-14', 'name': "Children's Day", 'type': 'school',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(AuditLog.objects.filter(entity='holiday', action='create').exists())

    def test_one_holiday_per_date(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.post('/api/holidays/', {'date': '2026-08-15', 'name': 'Again'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('date', response.data)

    def test_teacher_cannot_create(self):
        self.client.force_authenticate(user=self.teacher)
        response = self.client.post('/api/holidays/', {'date': '2026-11-14', 'name': 'Nope'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_delete(self):
        holiday = Holiday.objects.get(name='Diwali')
        self.client.force_authenticate(user=self.admin)
        response = self.client.delete(f'/api/holidays/{holiday.pk}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertTrue(AuditLog.objects.filter(entity='holiday', action='delete', entity_id=str(holiday.pk)).exists())
