"""
Tests for accounts app.

Covers:
- Registration (школа + администратор, trial)
- Login, lockout после 5 неудачных попыток
- Role permission table и allowed_modules
- Users / teachers CRUD (мягкая деактивация, лимиты плана, приглашение)
- Ссылки из писем: сброс пароля, подтверждение email, активация
"""
from datetime import timedelta

from django.core import mail
from django.core.cache import cache
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from audit.models import AuditLog
from campusiq.testing import create_school, create_user
from tenants.middleware import SchoolMiddleware
from tenants.models import School

from .models import User
from .roles import get_permissions, has_permission
from .security import is_locked_message, register_failure, reset_failures
from .tokens import activation_token, email_verification_token, encode_uid, password_reset_token


class RolePermissionTest(TestCase):

    def setUp(self):
        self.school = create_school('roles')

    def test_admin_has_everything(self):
        admin = create_user(self.school, 'admin')
        self.assertTrue(has_permission(admin, 'fees', 'manage'))
        self.assertEqual(get_permissions('admin'), ['*'])

    def test_teacher_table(self):
        teacher = create_user(self.school, 'teacher')
        self.assertTrue(has_permission(teacher, 'attendance', 'write'))
        self.assertFalse(has_permission(teacher, 'fees', 'write'))
        self.assertFalse(has_permission(teacher, 'users', 'read'))

    def test_allowed_modules_restrict_role(self):
        teacher = create_user(self.school, 'teacher', allowed_modules=['exams'])
        self.assertTrue(has_permission(teacher, 'exams', 'write'))
        self.assertFalse(has_permission(teacher, 'attendance', 'read'))

    def test_inactive_user_has_nothing(self):
        admin = create_user(self.school, 'admin', is_active=False)
        self.assertFalse(has_permission(admin, 'students', 'read'))

    def test_permission_strings(self):
        self.assertIn('messaging:write', get_permissions('parent'))
        self.assertNotIn('students:write', get_permissions('parent'))


@override_settings(LOGIN_MAX_ATTEMPTS=5, LOGIN_LOCKOUT_MINUTES=15)
class LockoutTest(TestCase):

    def setUp(self):
        self.user = create_user(create_school('lock'), 'teacher')

    def test_locked_after_max_failures(self):
        for expected_remaining in (4, 3, 2, 1):
            self.assertEqual(register_failure(self.user), expected_remaining)
        self.assertEqual(register_failure(self.user), 0)
        self.assertTrue(self.user.is_locked)
        self.assertIn('Account locked', is_locked_message(self.user))

    def test_expired_lock_resets_counter(self):
        self.user.failed_login_attempts = 5
        self.user.locked_until = timezone.now() - timedelta(minutes=1)
        self.user.save()
        self.assertEqual(register_failure(self.user), 4)

    def test_success_resets(self):
        register_failure(self.user)
        reset_failures(self.user)
        self.user.refresh_from_db()
        self.assertEqual(self.user.failed_login_attempts, 0)
        self.assertIsNotNone(self.user.last_login_at)


class AuthAPITest(APITestCase):

    def setUp(self):
        SchoolMiddleware.clear_cache()
        cache.clear()
        self.school = create_school('greenwood')
        self.user = create_user(self.school, 'teacher', email='teacher@greenwood.test')

    def login(self, email='teacher@greenwood.test', password='testpass123'):
        return self.client.post('/api/auth/login/', {'email': email, 'password': password}, format='json')

    def test_register_creates_school_admin_and_trial(self):
        response = self.client.post('/api/auth/register/', {
            'school_name': 'Sunrise Public School',
            'name': 'Priya Nair',
            'email': 'Priya@Sunrise.test',
            'password': 'Str0ngPass!42',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIn('access', response.data)

        school = School.objects.get(slug='sunrise-public-school')
        self.assertEqual(school.subscription_status, School.SubscriptionStatus.TRIAL)
        self.assertIsNotNone(school.trial_ends_at)
        admin = User.objects.get(email='priya@sunrise.test')
        self.assertEqual(admin.role, User.Role.ADMIN)
        self.assertEqual(admin.school, school)
        self.assertEqual(len(mail.outbox), 1)

    def test_register_duplicate_email(self):
        response = self.client.post('/api/auth/register/', {
            'school_name': 'Dup', 'name': 'X', 'email': 'TEACHER@greenwood.test', 'password': 'Str0ngPass!42',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('email', response.data)

    def test_login_case_insensitive(self):
        response = self.login(email='Teacher@Greenwood.test')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['user']['role'], 'teacher')
        self.assertTrue(AuditLog.objects.filter(action='login', user=self.user).exists())

    def test_wrong_password_reports_remaining(self):
        response = self.login(password='nope')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertIn('4 attempt(s) remaining', str(response.data['detail']))

    def test_unknown_email_indistinguishable_from_wrong_password(self):
        known = self.login(password='nope')
        unknown = self.login(email='nobody@greenwood.test', password='nope')
        self.assertEqual(unknown.status_code, known.status_code)
        self.assertEqual(str(unknown.data['detail']), str(known.data['detail']))

        for _ in range(4):
            response = self.login(email='nobody@greenwood.test', password='nope')
        self.assertIn('Account locked', str(response.data['detail']))

    def test_lockout_blocks_correct_password(self):
        for _ in range(5):
            self.login(password='nope')
        response = self.login()
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertIn('Account locked', str(response.data['detail']))

    def test_deactivated_user_cannot_login(self):
        self.user.deactivate()
        response = self.login()
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me_returns_permissions(self):
        self.client.force_authenticate(user=self.user)
        response = self.client.get('/api/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('attendance:write', response.data['permissions'])
        self.assertEqual(response.data['school_config']['slug'], 'greenwood')

    def test_change_password(self):
        self.client.force_authenticate(user=self.user)
        response = self.client.post('/api/auth/change-password/', {
            'old_password': 'testpass123', 'new_password': 'An0therStr0ng!',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password('An0therStr0ng!'))


class AccountLinkTest(APITestCase):
    """Сброс пароля, подтверждение email и активация по ссылкам из писем."""

    def setUp(self):
        SchoolMiddleware.clear_cache()
        cache.clear()
        self.school = create_school('greenwood')
        self.user = create_user(self.school, 'teacher', phone='+919800000001')

    def link_data(self, user, generator, **extra):
        return {'uid': encode_uid(user), 'token': generator.make_token(user), **extra}

    def test_forgot_password_same_answer_for_unknown_email(self):
        known = self.client.post('/api/auth/forgot-password/', {'email': 'Teacher@Greenwood.test'}, format='json')
        unknown = self.client.post('/api/auth/forgot-password/', {'email': 'nobody@greenwood.test'}, format='json')
        self.assertEqual(known.status_code, status.HTTP_200_OK)
        self.assertEqual(unknown.status_code, status.HTTP_200_OK)
        self.assertEqual(known.data, unknown.data)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['teacher@greenwood.test'])
        self.assertIn('/reset-password?uid=', mail.outbox[0].alternatives[0][0])

    def test_forgot_password_for_invited_user_resends_activation(self):
        invited = create_user(self.school, 'parent', password=None, status=User.Status.PENDING)
        self.client.post('/api/auth/forgot-password/', {'email': invited.email}, format='json')
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn('/activate?uid=', mail.outbox[0].alternatives[0][0])

    def test_reset_password_clears_lockout(self):
        for _ in range(5):
            register_failure(self.user)
        data = self.link_data(self.user, password_reset_token, password='Fresh!Passw0rd')
        response = self.client.post('/api/auth/reset-password/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password('Fresh!Passw0rd'))
        self.assertFalse(self.user.is_locked)
        log = AuditLog.objects.get(entity='user', entity_id=str(self.user.pk), action='update')
        self.assertEqual(log.changes, {'password': {'old': '***', 'new': '***'}})

        login = self.client.post('/api/auth/login/', {
            'email': self.user.email, 'password': 'Fresh!Passw0rd',
        }, format='json')
        self.assertEqual(login.status_code, status.HTTP_200_OK)

    def test_reset_link_works_once(self):
        data = self.link_data(self.user, password_reset_token, password='Fresh!Passw0rd')
        self.client.post('/api/auth/reset-password/', data, format='json')
        response = self.client.post('/api/auth/reset-password/', {**data, 'password': 'Other!Passw0rd'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('Invalid or expired reset link', response.data['detail'])

    def test_reset_password_rejects_bad_uid_and_weak_password(self):
        bad_uid = self.client.post('/api/auth/reset-password/', {
            'uid': 'not-base64!', 'token': 'x-y', 'password': 'Fresh!Passw0rd',
        }, format='json')
        self.assertEqual(bad_uid.status_code, status.HTTP_400_BAD_REQUEST)

        weak = self.client.post(
            '/api/auth/reset-password/', self.link_data(self.user, password_reset_token, password='123'),
            format='json',
        )
        self.assertEqual(weak.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('password', weak.data)

    def test_activation_token_is_not_a_reset_token(self):
        data = self.link_data(self.user, activation_token, password='Fresh!Passw0rd')
        response = self.client.post('/api/auth/reset-password/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_verify_email(self):
        self.assertFalse(self.user.email_verified)
        data = self.link_data(self.user, email_verification_token)
        response = self.client.post('/api/auth/verify-email/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertTrue(self.user.email_verified)

        again = self.client.post('/api/auth/verify-email/', data, format='json')
        self.assertEqual(again.status_code, status.HTTP_400_BAD_REQUEST)

    def test_resend_verification(self):
        self.client.force_authenticate(user=self.user)
        response = self.client.post('/api/auth/resend-verification/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('/verify-email?uid=', mail.outbox[0].alternatives[0][0])

        self.user.email_verified = True
        self.user.save(update_fields=['email_verified'])
        self.client.force_authenticate(user=None)
        response = self.client.post('/api/auth/resend-verification/', {'email': self.user.email}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(mail.outbox), 1)

    def test_activate_invited_user(self):
        invited = create_user(self.school, 'parent', name='Ravi Kumar', password=None, status=User.Status.PENDING)
        data = self.link_data(invited, activation_token)

        check = self.client.get('/api/auth/activate/', data)
        self.assertEqual(check.status_code, status.HTTP_200_OK)
        self.assertTrue(check.data['valid'])
        self.assertEqual(check.data['data']['name'], 'Ravi Kumar')
        self.assertEqual(check.data['data']['role'], 'parent')

        response = self.client.post('/api/auth/activate/', {**data, 'password': 'Fresh!Passw0rd'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        invited.refresh_from_db()
        self.assertEqual(invited.status, User.Status.ACTIVE)
        self.assertTrue(invited.email_verified)
        self.assertTrue(invited.check_password('Fresh!Passw0rd'))
        self.assertTrue(AuditLog.objects.filter(entity='user_activation', entity_id=str(invited.pk)).exists())

        reused = self.client.get('/api/auth/activate/', data)
        self.assertEqual(reused.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(reused.data['valid'])

    def test_activate_rejects_active_user(self):
        data = self.link_data(self.user, activation_token, password='Fresh!Passw0rd')
        response = self.client.post('/api/auth/activate/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password('testpass123'))


class UserManagementTest(APITestCase):

    def setUp(self):
        SchoolMiddleware.clear_cache()
        self.school = create_school('greenwood')
        self.admin = create_user(self.school, 'admin')
        self.client.force_authenticate(user=self.admin)

    def test_create_user_without_password_is_invited(self):
        response = self.client.post('/api/users/', {
            'email': 'parent@greenwood.test', 'name': 'Ravi Kumar', 'role': 'parent',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        user = User.objects.get(email='parent@greenwood.test')
        self.assertEqual(user.school, self.school)
        self.assertEqual(user.status, User.Status.PENDING)
        self.assertFalse(user.has_usable_password())
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn('/activate?uid=', mail.outbox[0].alternatives[0][0])

    def test_create_user_with_password_is_active(self):
        response = self.client.post('/api/users/', {
            'email': 'parent@greenwood.test', 'name': 'Ravi Kumar', 'role': 'parent', 'password': 'Str0ngPass!42',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        user = User.objects.get(email='parent@greenwood.test')
        self.assertEqual(user.status, User.Status.ACTIVE)
        self.assertTrue(user.check_password('Str0ngPass!42'))
        self.assertIn('/verify-email?uid=', mail.outbox[0].alternatives[0][0])

    def test_teacher_cannot_manage_users(self):
        teacher = create_user(self.school, 'teacher')
        self.client.force_authenticate(user=teacher)
        response = self.client.get('/api/users/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_delete_is_soft(self):
        user = create_user(self.school, 'parent')
        response = self.client.delete(f'/api/users/{user.pk}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        user.refresh_from_db()
        self.assertFalse(user.is_active)
        self.assertEqual(user.status, User.Status.INACTIVE)

    def test_cannot_deactivate_self(self):
        response = self.client.delete(f'/api/users/{self.admin.pk}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_teacher_limit(self):
        limits = self.school.resource_limits
        limits.max_teachers = 1
        limits.save()
        create_user(self.school, 'teacher')
        response = self.client.post('/api/teachers/', {
            'email': 't2@greenwood.test', 'name': 'Second Teacher', 'subject': 'Maths',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertIn('Plan limit reached', str(response.data['detail']))

    def test_create_teacher_sets_role(self):
        response = self.client.post('/api/teachers/', {
            'email': 'maths@greenwood.test', 'name': 'Meena Iyer', 'subject': 'Maths', 'classes': ['5A', '6B'],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        teacher = User.objects.get(email='maths@greenwood.test')
        self.assertEqual(teacher.role, User.Role.TEACHER)
        self.assertEqual(teacher.classes, ['5A', '6B'])

    def test_deactivating_teacher_unassigns_scheduled_exams(self):
        from exams.models import Exam

        teacher = create_user(self.school, 'teacher', name='Meena Iyer')
        exam = Exam.objects.create(
            school=self.school, name='Unit Test 1', class_name='5A', subject='Maths',
            date=timezone.localdate() + timedelta(days=3), total_marks=50,
            invigilator=teacher, invigilator_name=teacher.name,
        )
        response = self.client.delete(f'/api/teachers/{teacher.pk}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['exams_unassigned'], 1)
        exam.refresh_from_db()
        self.assertIsNone(exam.invigilator)
        self.assertEqual(exam.invigilator_name, '')
