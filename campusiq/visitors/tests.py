"""
Tests for visitors app.

Covers:
- Номер бейджа B + 4 цифры
- Регистрация (сразу check-in или pre-register)
- Переходы статусов и 409 на недопустимые
- Статистика за сегодня, уведомления хозяину визита и родителю
"""
from unittest import mock

from django.test import TestCase
from rest_framework import status
from rest_framework.test import APITestCase

from audit.models import AuditLog
from campusiq.testing import create_school, create_student, create_user
from notifications.models import Notification
from tenants.middleware import SchoolMiddleware

from .models import Visitor
from .services import InvalidTransitionError, VisitorService, generate_badge_number


class VisitorServiceTest(TestCase):

    def setUp(self):
        self.school = create_school('greenwood')
        self.guard = create_user(self.school, 'teacher')

    def _register(self, pre_register=False, **extra):
        data = {'visitor_name': 'Ramesh Kumar', 'purpose': 'Parent meeting'}
        data.update(extra)
        return VisitorService.register(self.school, data, self.guard, pre_register=pre_register)

    def test_badge_format(self):
        for _ in range(5):
            self.assertRegex(generate_badge_number(self.school), r'^B\d{4}$')

    def test_walk_in_is_checked_in(self):
        visitor = self._register()
        self.assertEqual(visitor.status, Visitor.Status.CHECKED_IN)
        self.assertIsNotNone(visitor.check_in)
        self.assertRegex(visitor.badge_number, r'^B\d{4}$')
        self.assertEqual(visitor.registered_by, self.guard)

    def test_pre_register(self):
        visitor = self._register(pre_register=True)
        self.assertEqual(visitor.status, Visitor.Status.PRE_REGISTERED)
        self.assertIsNone(visitor.check_in)

    def test_full_lifecycle(self):
        visitor = self._register(pre_register=True)
        visitor = VisitorService.transition(visitor, 'check_in')
        self.assertIsNotNone(visitor.check_in)
        visitor = VisitorService.transition(visitor, 'check_out')
        self.assertEqual(visitor.status, Visitor.Status.CHECKED_OUT)
        self.assertGreaterEqual(visitor.check_out, visitor.check_in)

    def test_invalid_transitions(self):
        visitor = self._register(pre_register=True)
        with self.assertRaisesMessage(InvalidTransitionError, 'Visitor has not checked in yet'):
            VisitorService.transition(visitor, 'check_out')

        VisitorService.transition(visitor, 'cancel')
        with self.assertRaisesMessage(InvalidTransitionError, 'Cannot check out a cancelled visitor'):
            VisitorService.transition(visitor, 'check_out')
        with self.assertRaisesMessage(InvalidTransitionError, 'Cannot check in a cancelled visitor'):
            VisitorService.transition(visitor, 'check_in')

    def test_cannot_cancel_after_checkout(self):
        visitor = self._register()
        VisitorService.transition(visitor, 'check_out')
        with self.assertRaises(InvalidTransitionError):
            VisitorService.transition(visitor, 'cancel')

    def test_today_stats(self):
        self._register()
        self._register(pre_register=True)
        leaving = self._register()
        VisitorService.transition(leaving, 'check_out')

        stats = VisitorService.today_stats(self.school)
        self.assertEqual(stats, {'total_today': 3, 'checked_in': 1, 'checked_out': 1, 'pre_registered': 1})


class VisitorAPITest(APITestCase):

    def setUp(self):
        SchoolMiddleware.clear_cache()
        self.school = create_school('greenwood')
        self.admin = create_user(self.school, 'admin')
        self.teacher = create_user(self.school, 'teacher', name='Priya Nair', phone='9876500000')
        self.parent = create_user(self.school, 'parent')
        self.student = create_student(self.school, parent_phone='9876543210')
        self.client.force_authenticate(user=self.admin)

    def _create(self, **extra):
        data = {'visitor_name': 'Ramesh Kumar', 'visitor_phone': '9800000000', 'purpose': 'Fee enquiry'}
        data.update(extra)
        return self.client.post('/api/visitors/', data, format='json')

    def test_create_walk_in(self):
        response = self._create()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'checked_in')
        self.assertRegex(response.data['badge_number'], r'^B\d{4}$')
        self.assertNotIn('pre_register', response.data)
        self.assertTrue(AuditLog.objects.filter(entity='visitor', action='create').exists())

        roles = set(Notification.objects.filter(module='visitors').values_list('target_role', flat=True))
        self.assertEqual(roles, {'admin', 'teacher'})

    @mock.patch('visitors.views.notify_visitor_arrival')
    def test_host_and_parent_notified(self, mock_notify):
        response = self._create(host_name='priya nair', host_type='teacher', student_id=self.student.pk)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['student_name'], self.student.name)
        phones = [c.args[0] for c in mock_notify.call_args_list]
        self.assertEqual(phones, ['9876543210', '9876500000'])

    @mock.patch('visitors.views.notify_visitor_arrival')
    def test_pre_register_sends_no_sms(self, mock_notify):
        response = self._create(pre_register=True, host_name='Priya Nair')
        self.assertEqual(response.data['status'], 'pre_registered')
        mock_notify.assert_not_called()

    def test_foreign_student_rejected(self):
        foreign = create_student(create_school('other'))
        response = self._create(student_id=foreign.pk)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('student_id', response.data)

    def test_transitions(self):
        visitor_id = self._create(pre_register=True).data['id']

        response = self.client.post(f'/api/visitors/{visitor_id}/check_in/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'checked_in')

        response = self.client.post(f'/api/visitors/{visitor_id}/check_in/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['detail'], 'Visitor is already checked in')

        response = self.client.post(f'/api/visitors/{visitor_id}/check_out/')
        self.assertEqual(response.data['status'], 'checked_out')
        self.assertIsNotNone(response.data['check_out'])

    def test_cancelled_cannot_check_out(self):
        visitor_id = self._create().data['id']
        self.client.post(f'/api/visitors/{visitor_id}/cancel/')
        response = self.client.post(f'/api/visitors/{visitor_id}/check_out/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['detail'], 'Cannot check out a cancelled visitor')

    def test_list_with_stats(self):
        self._create()
        self._create(visitor_name='Sunita Rao', pre_register=True)
        response = self.client.get('/api/visitors/', {'status': 'pre_registered'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([v['visitor_name'] for v in response.data['results']], ['Sunita Rao'])
        self.assertEqual(response.data['stats']['total_today'], 2)

    def test_search(self):
        badge = self._create().data['badge_number']
        self._create(visitor_name='Sunita Rao')
        response = self.client.get('/api/visitors/', {'search': badge})
        self.assertEqual(response.data['results'][0]['badge_number'], badge)
        response = self.client.get('/api/visitors/', {'search': 'sunita'})
        self.assertEqual(response.data['count'], 1)

    def test_invalid_date_filter_is_400(self):
        response = self.client.get('/api/visitors/', {'date': '2026-13-45'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('date', response.data)

    def test_teacher_can_log_visitors(self):
        self.client.force_authenticate(user=self.teacher)
        self.assertEqual(self._create().status_code, status.HTTP_201_CREATED)

    def test_parent_forbidden(self):
        self.client.force_authenticate(user=self.parent)
        self.assertEqual(self.client.get('/api/visitors/').status_code, status.HTTP_403_FORBIDDEN)
