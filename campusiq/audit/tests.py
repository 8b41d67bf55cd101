"""
Tests for audit app.

Covers:
- build_changes diff
- audit() не ломает запрос при ошибке записи
- /api/audit-logs/ (только администратор, фильтры)
- purge_old_audit_logs retention task
"""
from datetime import date, timedelta
from decimal import Decimal
from unittest import mock

from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from campusiq.testing import create_school, create_user
from tenants.middleware import SchoolMiddleware

from .models import AuditLog
from .services import audit, build_changes
from .tasks import purge_old_audit_logs


class BuildChangesTest(TestCase):

    def test_only_changed_fields(self):
        changes = build_changes(
            {'name': 'Aarav', 'class_name': '5A'},
            {'name': 'Aarav', 'class_name': '6A'},
            ['name', 'class_name'],
        )
        self.assertEqual(changes, {'class_name': {'old': '5A', 'new': '6A'}})

    def test_no_changes_is_none(self):
        self.assertIsNone(build_changes({'a': 1}, {'a': 1}, ['a']))

    def test_values_are_json_safe(self):
        changes = build_changes(
            {'amount': Decimal('10.00'), 'due': date(2026, 4, 1)},
            {'amount': Decimal('12.50'), 'due': date(2026, 4, 10)},
            ['amount', 'due'],
        )
        self.assertEqual(changes['amount'], {'old': '10.00', 'new': '12.50'})
        self.assertEqual(changes['due']['new'], '2026-04-10')


class AuditServiceTest(TestCase):

    def setUp(self):
        self.school = create_school('audited')
        self.admin = create_user(self.school, 'admin')

    def test_writes_row_with_actor(self):
        log = audit(school=self.school, action='create', entity='student', entity_id=7, user=self.admin)
        self.assertIsNotNone(log)
        self.assertEqual(log.entity_id, '7')
        self.assertEqual(log.user_role, 'admin')
        self.assertEqual(log.user_name, self.admin.name)

    def test_without_school_is_skipped(self):
        self.assertIsNone(audit(school=None, action='create', entity='student'))
        self.assertEqual(AuditLog.objects.count(), 0)

    def test_failure_never_raises(self):
        with mock.patch.object(AuditLog.objects, 'create', side_effect=RuntimeError('db down')):
            self.assertIsNone(audit(school=self.school, action='delete', entity='exam', entity_id=1))


class AuditLogAPITest(APITestCase):

    def setUp(self):
        SchoolMiddleware.clear_cache()
        self.school = create_school('greenwood')
        self.other = create_school('other')
        self.admin = create_user(self.school, 'admin')
        self.teacher = create_user(self.school, 'teacher')

        audit(school=self.school, action='create', entity='student', entity_id=1, user=self.admin)
        audit(school=self.school, action='update', entity='fee_structure', entity_id=2, user=self.admin)
        audit(school=self.other, action='create', entity='student', entity_id=3)

    def test_admin_sees_own_school_only(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get('/api/audit-logs/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)

    def test_teacher_forbidden(self):
        self.client.force_authenticate(user=self.teacher)
        response = self.client.get('/api/audit-logs/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_filter_by_entity_and_action(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get('/api/audit-logs/', {'entity': 'student'})
        self.assertEqual(response.data['count'], 1)
        response = self.client.get('/api/audit-logs/', {'action': 'update'})
        self.assertEqual(response.data['results'][0]['entity'], 'fee_structure')

    def test_date_range(self):
        self.client.force_authenticate(user=self.admin)
        today = timezone.localdate()
        response = self.client.get('/api/audit-logs/', {'date_from': today.isoformat()})
        self.assertEqual(response.data['count'], 2)
        response = self.client.get('/api/audit-logs/', {'date_to': (today - timedelta(days=1)).isoformat()})
        self.assertEqual(response.data['count'], 0)

    def test_filter_by_user(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get('/api/audit-logs/', {'user_id': self.admin.pk})
        self.assertEqual(response.data['count'], 2)
        response = self.client.get('/api/audit-logs/', {'user_id': self.teacher.pk})
        self.assertEqual(response.data['count'], 0)

    def test_non_numeric_user_id_is_400(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get('/api/audit-logs/', {'user_id': 'abc'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('user_id', response.data)

    def test_invalid_date_is_400(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get('/api/audit-logs/', {'date_from': '01/04/2026'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('date_from', response.data)

    def test_read_only(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.post('/api/audit-logs/', {'action': 'create'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_405_METHOD_NOT_ALLOWED)


class PurgeAuditLogsTest(TestCase):

    def test_deletes_rows_older_than_retention(self):
        school = create_school('purge')
        old = audit(school=school, action='create', entity='student', entity_id=1)
        audit(school=school, action='create', entity='student', entity_id=2)
        AuditLog.objects.filter(pk=old.pk).update(created_at=timezone.now() - timedelta(days=400))

        result = purge_old_audit_logs(days=365)

        self.assertEqual(result['deleted'], 1)
        self.assertEqual(AuditLog.objects.count(), 1)
