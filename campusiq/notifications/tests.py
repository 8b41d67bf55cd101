"""
Tests for notifications app.

Covers:
- SMSService.format_e164 и отправка через Twilio (requests замокан)
- emit_activity / notify_* никогда не бросают исключений
- Лента уведомлений: видимость по роли, unread_count, read / mark-all-read
- Broadcast (только admin) и SSE stream
"""
import json
from unittest import mock

import requests
from django.core import mail
from django.test import TestCase, override_settings
from rest_framework import status
from rest_framework.test import APITestCase

from campusiq.testing import create_school, create_user
from tenants.middleware import SchoolMiddleware

from .models import Notification
from .services import emit_activity, notify_email, notify_role, notify_sms
from .sms_service import SMSService


class FormatE164Test(TestCase):

    def test_indian_numbers(self):
        self.assertEqual(SMSService.format_e164('9876543210'), '+919876543210')
        self.assertEqual(SMSService.format_e164('09876543210'), '+919876543210')
        self.assertEqual(SMSService.format_e164('91 98765 43210'), '+919876543210')

    def test_already_e164(self):
        self.assertEqual(SMSService.format_e164('+14155238886'), '+14155238886')

    def test_strips_punctuation(self):
        self.assertEqual(SMSService.format_e164('(987) 654-3210'), '+919876543210')


@override_settings(TWILIO_ACCOUNT_SID='AC123', TWILIO_AUTH_TOKEN='secret', TWILIO_PHONE_NUMBER='+15550001111')
class SMSServiceTest(TestCase):

    @mock.patch('notifications.sms_service.requests.post')
    def test_success(self, mock_post):
        mock_post.return_value = mock.Mock(status_code=201, json=lambda: {'sid': 'SM1'})
        result = SMSService().send_sms('9876543210', 'hello')
        self.assertTrue(result['success'])
        self.assertEqual(result['sid'], 'SM1')
        self.assertEqual(mock_post.call_args.kwargs['data']['To'], '+919876543210')

    @mock.patch('notifications.sms_service.requests.post')
    def test_server_error_is_retryable(self, mock_post):
        mock_post.return_value = mock.Mock(status_code=503, json=lambda: {'message': 'unavailable'})
        result = SMSService().send_sms('9876543210', 'hello')
        self.assertFalse(result['success'])
        self.assertTrue(result['retryable'])

    @mock.patch('notifications.sms_service.requests.post')
    def test_client_error_not_retryable(self, mock_post):
        mock_post.return_value = mock.Mock(status_code=400, json=lambda: {'message': 'bad number'})
        result = SMSService().send_sms('123', 'hello')
        self.assertEqual(result['message'], 'bad number')
        self.assertFalse(result['retryable'])

    @mock.patch('notifications.sms_service.requests.post', side_effect=requests.ConnectionError('boom'))
    def test_network_error(self, mock_post):
        result = SMSService().send_sms('9876543210', 'hello')
        self.assertFalse(result['success'])
        self.assertTrue(result['retryable'])

    @override_settings(TWILIO_ACCOUNT_SID='')
    def test_disabled_without_credentials(self):
        result = SMSService().send_sms('9876543210', 'hello')
        self.assertEqual(result['message'], 'SMS service not configured')


class NotifyHelpersTest(TestCase):

    def setUp(self):
        self.school = create_school('notify')

    def test_emit_activity(self):
        admin = create_user(self.school, 'admin')
        notification = emit_activity(
            self.school, title='Student added', message='Aarav joined 5A',
            module='students', entity_id=5, actor=admin,
        )
        self.assertEqual(notification.type, Notification.Type.ACTIVITY)
        self.assertEqual(notification.entity_id, '5')
        self.assertEqual(notification.actor_role, 'admin')

    def test_emit_activity_never_raises(self):
        with mock.patch.object(Notification.objects, 'create', side_effect=RuntimeError('db down')):
            self.assertIsNone(emit_activity(self.school, title='x', message='y'))

    def test_sms_disabled_in_tests(self):
        self.assertFalse(notify_sms('9876543210', 'hello'))

    @override_settings(FEATURE_SMS_NOTIFICATIONS=True)
    def test_sms_queue_failure_is_swallowed(self):
        with mock.patch('notifications.services.send_sms_task.delay', side_effect=RuntimeError('no broker')):
            self.assertFalse(notify_sms('9876543210', 'hello'))

    def test_email_delivered(self):
        self.assertTrue(notify_email('parent@example.com', 'Subject', 'Body'))
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['parent@example.com'])

    def test_notify_role_counts(self):
        create_user(self.school, 'teacher', email='t1@notify.test')
        create_user(self.school, 'teacher', email='t2@notify.test')
        create_user(self.school, 'parent')
        sent = notify_role(self.school, 'teacher', 'Staff meeting', 'At 4pm', email=True)
        self.assertEqual(sent, {'sms': 0, 'email': 2})
        self.assertEqual(len(mail.outbox), 2)


class NotificationAPITest(APITestCase):

    def setUp(self):
        SchoolMiddleware.clear_cache()
        self.school = create_school('greenwood')
        self.admin = create_user(self.school, 'admin')
        self.teacher = create_user(self.school, 'teacher')
        self.parent = create_user(self.school, 'parent')

        self.everyone = emit_activity(self.school, title='Holiday added', message='Diwali')
        self.admins_only = emit_activity(
            self.school, title='Late arrival', message='Aarav was late',
            type=Notification.Type.ALERT, target_role=Notification.Target.ADMIN,
        )
        emit_activity(create_school('other'), title='Other school', message='hidden')

    def test_feed_filtered_by_role(self):
        self.client.force_authenticate(user=self.teacher)
        response = self.client.get('/api/notifications/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        titles = [n['title'] for n in response.data['results']]
        self.assertEqual(titles, ['Holiday added'])
        self.assertEqual(response.data['unread_count'], 1)

    def test_admin_sees_admin_targeted(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get('/api/notifications/')
        self.assertEqual(response.data['count'], 2)
        self.assertEqual(response.data['unread_count'], 2)

    def test_mark_read(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.post(f'/api/notifications/{self.admins_only.pk}/read/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['is_read'])

        response = self.client.get('/api/notifications/')
        self.assertEqual(response.data['unread_count'], 1)
        by_id = {n['id']: n for n in response.data['results']}
        self.assertTrue(by_id[self.admins_only.pk]['is_read'])
        self.assertFalse(by_id[self.everyone.pk]['is_read'])

    def test_read_state_is_per_user(self):
        self.everyone.read_by.add(self.admin)
        self.client.force_authenticate(user=self.teacher)
        response = self.client.get('/api/notifications/', {'unread': 'true'})
        self.assertEqual(response.data['count'], 1)

    def test_cannot_read_other_roles_notification(self):
        self.client.force_authenticate(user=self.teacher)
        response = self.client.post(f'/api/notifications/{self.admins_only.pk}/read/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_mark_all_read(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.post('/api/notifications/mark-all-read/')
        self.assertEqual(response.data['marked'], 2)
        response = self.client.post('/api/notifications/mark-all-read/')
        self.assertEqual(response.data['marked'], 0)

    def test_broadcast_by_admin(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.post('/api/notifications/', {
            'type': 'announcement',
            'title': 'PTM on Saturday',
            'message': 'Parent-teacher meeting at 10am',
            'target_role': 'parent',
            'send_email': True,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['fanout'], {'sms': 0, 'email': 1})
        self.assertEqual(mail.outbox[0].to, [self.parent.email])
        self.assertEqual(response.data['actor_name'], self.admin.name)

    def test_broadcast_forbidden_for_teacher(self):
        self.client.force_authenticate(user=self.teacher)
        response = self.client.post('/api/notifications/', {
            'title': 'Hi', 'message': 'x',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_anonymous_rejected(self):
        response = self.client.get('/api/notifications/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_stream_replays_after_last_id(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get('/api/notifications/stream/', {'last_id': self.everyone.pk})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'text/event-stream')

        body = b''.join(response.streaming_content).decode()
        self.assertTrue(body.startswith('retry: 5000'))
        self.assertIn(f'id: {self.admins_only.pk}\n', body)
        self.assertNotIn(f'id: {self.everyone.pk}\n', body)

        data_line = next(line for line in body.splitlines() if line.startswith('data: '))
        payload = json.loads(data_line[len('data: '):])
        self.assertEqual(payload['title'], 'Late arrival')

    def test_stream_without_last_id_starts_now(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get('/api/notifications/stream/')
        body = b''.join(response.streaming_content).decode()
        self.assertNotIn('event: notification', body)
