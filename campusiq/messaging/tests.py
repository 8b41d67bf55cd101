"""
Tests for messaging app.

Covers:
- Direct-диалог переиспользуется, группа создаётся всегда
- Участники только из своей школы
- Непрочитанные и отметка прочитанного
- Доступ только участникам
"""
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APITestCase

from campusiq.testing import create_school, create_user
from tenants.middleware import SchoolMiddleware

from .models import Conversation, ConversationParticipant, Message
from .services import EmptyMessageError, InvalidConversationError, MessagingService


class MessagingServiceTest(TestCase):

    def setUp(self):
        self.school = create_school('greenwood')
        self.teacher = create_user(self.school, 'teacher')
        self.parent = create_user(self.school, 'parent')
        self.admin = create_user(self.school, 'admin')

    def test_direct_conversation_reused(self):
        first, created = MessagingService.start_conversation(self.school, self.teacher, [self.parent])
        self.assertTrue(created)
        self.assertEqual(first.type, Conversation.Type.DIRECT)

        again, created = MessagingService.start_conversation(self.school, self.parent, [self.teacher])
        self.assertFalse(created)
        self.assertEqual(again.pk, first.pk)

    def test_group_not_confused_with_direct(self):
        group, _ = MessagingService.start_conversation(
            self.school, self.teacher, [self.parent, self.admin], name='Class 5A',
        )
        self.assertEqual(group.type, Conversation.Type.GROUP)
        direct, created = MessagingService.start_conversation(self.school, self.teacher, [self.parent])
        self.assertTrue(created)
        self.assertNotEqual(direct.pk, group.pk)

    def test_direct_requires_exactly_two_members(self):
        with self.assertRaises(InvalidConversationError):
            MessagingService.start_conversation(
                self.school, self.teacher, [self.parent, self.admin], conversation_type=Conversation.Type.DIRECT,
            )
        self.assertFalse(Conversation.objects.exists())

    def test_explicit_group_of_two(self):
        group, created = MessagingService.start_conversation(
            self.school, self.teacher, [self.parent], name='Parent-teacher', conversation_type=Conversation.Type.GROUP,
        )
        self.assertTrue(created)
        self.assertEqual(group.type, Conversation.Type.GROUP)
        direct, created = MessagingService.start_conversation(self.school, self.teacher, [self.parent])
        self.assertTrue(created)
        self.assertNotEqual(direct.pk, group.pk)

    def test_send_increments_unread_for_others(self):
        conversation, _ = MessagingService.start_conversation(
            self.school, self.teacher, [self.parent, self.admin],
        )
        MessagingService.send_message(conversation, self.teacher, 'Homework is due Friday')
        MessagingService.send_message(conversation, self.teacher, 'Please sign the diary')

        counts = dict(ConversationParticipant.objects.filter(conversation=conversation).values_list('user_id', 'unread_count'))
        self.assertEqual(counts, {self.teacher.pk: 0, self.parent.pk: 2, self.admin.pk: 2})

        conversation.refresh_from_db()
        self.assertEqual(conversation.last_message_content, 'Please sign the diary')
        self.assertEqual(conversation.last_message_sender, self.teacher)

    def test_mark_read(self):
        conversation, _ = MessagingService.start_conversation(self.school, self.teacher, [self.parent])
        message = MessagingService.send_message(conversation, self.teacher, 'Hello')

        self.assertEqual(MessagingService.mark_read(conversation, self.parent), 1)
        self.assertIn(self.parent, message.read_by.all())
        membership = ConversationParticipant.objects.get(conversation=conversation, user=self.parent)
        self.assertEqual(membership.unread_count, 0)
        self.assertIsNotNone(membership.last_read_at)

        self.assertEqual(MessagingService.mark_read(conversation, self.parent), 0)

    def test_empty_message(self):
        conversation, _ = MessagingService.start_conversation(self.school, self.teacher, [self.parent])
        with self.assertRaises(EmptyMessageError):
            MessagingService.send_message(conversation, self.teacher, '   ')

    def test_attachment_only_message(self):
        conversation, _ = MessagingService.start_conversation(self.school, self.teacher, [self.parent])
        message = MessagingService.send_message(
            conversation, self.teacher, '', Message.Type.FILE,
            [{'name': 'worksheet.pdf', 'url': 'https://files.example.com/w.pdf', 'type': 'pdf'}],
        )
        conversation.refresh_from_db()
        self.assertEqual(message.type, Message.Type.FILE)
        self.assertEqual(conversation.last_message_content, '[file]')


class ConversationAPITest(APITestCase):

    def setUp(self):
        SchoolMiddleware.clear_cache()
        self.school = create_school('greenwood')
        self.teacher = create_user(self.school, 'teacher')
        self.parent = create_user(self.school, 'parent')
        self.stranger = create_user(self.school, 'parent', email='stranger@greenwood.test')
        self.client.force_authenticate(user=self.teacher)

    def test_start_direct_then_reuse(self):
        response = self.client.post('/api/conversations/', {'participants': [self.parent.pk]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        conversation_id = response.data['id']
        self.assertEqual(len(response.data['participants']), 2)

        response = self.client.post('/api/conversations/', {'participants': [self.parent.pk]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['id'], conversation_id)

    def test_foreign_participant_rejected(self):
        outsider = create_user(create_school('other'), 'parent')
        response = self.client.post('/api/conversations/', {'participants': [outsider.pk]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_only_self_rejected(self):
        response = self.client.post('/api/conversations/', {'participants': [self.teacher.pk]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_direct_with_three_members_is_400(self):
        response = self.client.post('/api/conversations/', {
            'participants': [self.parent.pk, self.stranger.pk], 'type': 'direct',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['detail'], 'A direct conversation must have exactly two participants')
        self.assertFalse(Conversation.objects.exists())

    def test_send_and_read_flow(self):
        conversation, _ = MessagingService.start_conversation(self.school, self.teacher, [self.parent])

        response = self.client.post(f'/api/conversations/{conversation.pk}/messages/',
                                    {'content': 'Aarav did well today'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['is_read'])

        self.client.force_authenticate(user=self.parent)
        response = self.client.get('/api/conversations/')
        self.assertEqual(response.data['results'][0]['unread_count'], 1)
        self.assertEqual(response.data['results'][0]['last_message']['content'], 'Aarav did well today')

        response = self.client.get(f'/api/conversations/{conversation.pk}/messages/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertTrue(response.data['results'][0]['is_read'])

        response = self.client.get('/api/conversations/')
        self.assertEqual(response.data['results'][0]['unread_count'], 0)

    def test_empty_message_is_400(self):
        conversation, _ = MessagingService.start_conversation(self.school, self.teacher, [self.parent])
        response = self.client.post(f'/api/conversations/{conversation.pk}/messages/', {'content': ''}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_non_participant_gets_404(self):
        conversation, _ = MessagingService.start_conversation(self.school, self.teacher, [self.parent])
        self.client.force_authenticate(user=self.stranger)
        self.assertEqual(self.client.get(f'/api/conversations/{conversation.pk}/').status_code,
                         status.HTTP_404_NOT_FOUND)
        response = self.client.post(f'/api/conversations/{conversation.pk}/messages/', {'content': 'hi'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(self.client.get('/api/conversations/').data['count'], 0)
