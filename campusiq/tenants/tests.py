"""
Tests for tenants app.

Covers:
- School model (trial, frontend config)
- Resource limits (signals, plan defaults, check_school_limit)
- SchoolMiddleware (X-School-ID только для dev-хостов)
- School-scoped views (изоляция данных между школами)
- expire_trials (истёкший trial → expired)
"""
from datetime import timedelta

from django.test import RequestFactory, TestCase, override_settings
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from campusiq.testing import create_school, create_student, create_user
from notifications.models import Notification

from .context import get_current_school
from .limits import SchoolLimitError, check_school_limit
from .middleware import SchoolMiddleware
from .models import School, SchoolResourceLimits
from .tasks import expire_trials


class SchoolModelTest(TestCase):

    def test_resource_limits_created_from_plan(self):
        school = create_school('oakridge', plan=School.Plan.BASIC)
        limits = SchoolResourceLimits.objects.get(school=school)
        self.assertEqual(limits.max_students, 500)
        self.assertEqual(limits.max_teachers, 50)

    def test_trial_expiry(self):
        school = create_school('trialschool')
        school.start_trial()
        self.assertFalse(school.is_trial_expired)

        school.trial_ends_at = timezone.now() - timedelta(days=1)
        self.assertTrue(school.is_trial_expired)

    def test_frontend_config_has_no_secrets(self):
        school = create_school('configschool', metadata={'theme': {'primary_color': '#000000'}})
        config = school.to_frontend_config()
        self.assertEqual(config['slug'], 'configschool')
        self.assertEqual(config['primary_color'], '#000000')
        self.assertNotIn('metadata', config)


class SchoolLimitTest(TestCase):

    def setUp(self):
        self.school = create_school('limits')
        limits = self.school.resource_limits
        limits.max_students = 2
        limits.save()

    def test_below_limit_passes(self):
        create_student(self.school, roll_number='1')
        check_school_limit(self.school, 'max_students')

    def test_limit_reached_raises(self):
        create_student(self.school, roll_number='1')
        create_student(self.school, roll_number='2')
        with self.assertRaises(SchoolLimitError):
            check_school_limit(self.school, 'max_students')

    def test_inactive_students_not_counted(self):
        create_student(self.school, roll_number='1')
        create_student(self.school, roll_number='2', status='inactive')
        check_school_limit(self.school, 'max_students')

    def test_explicit_count(self):
        with self.assertRaises(SchoolLimitError):
            check_school_limit(self.school, 'max_students', current_count=5)


@override_settings(PLATFORM_DOMAINS=['campusiq.app'])
class SchoolMiddlewareTest(TestCase):

    def setUp(self):
        SchoolMiddleware.clear_cache()
        self.school = create_school('greenwood')
        self.factory = RequestFactory()
        self.seen = {}

        def get_response(request):
            self.seen['school'] = request.school
            self.seen['context'] = get_current_school()
            return None

        self.middleware = SchoolMiddleware(get_response)

    def test_subdomain_resolves_school(self):
        request = self.factory.get('/api/students/', HTTP_HOST='greenwood.campusiq.app')
        with self.settings(ALLOWED_HOSTS=['*']):
            self.middleware(request)
        self.assertEqual(self.seen['school'], self.school)
        self.assertEqual(self.seen['context'], self.school)
        # После запроса контекст очищен
        self.assertIsNone(get_current_school())

    def test_header_accepted_on_dev_host(self):
        request = self.factory.get('/api/students/', HTTP_X_SCHOOL_ID='greenwood')
        self.middleware(request)
        self.assertEqual(self.seen['school'], self.school)

    def test_header_ignored_on_remote_host(self):
        create_school('other')
        request = self.factory.get('/api/students/', HTTP_HOST='campusiq.app', HTTP_X_SCHOOL_ID='other')
        with self.settings(ALLOWED_HOSTS=['*']):
            self.middleware(request)
        self.assertIsNone(self.seen['school'])

    def test_cache_cleared_on_school_save(self):
        request = self.factory.get('/api/students/', HTTP_X_SCHOOL_ID='greenwood')
        self.middleware(request)
        self.assertTrue(SchoolMiddleware._school_cache)
        self.school.name = 'Greenwood High'
        self.school.save()
        self.assertFalse(SchoolMiddleware._school_cache)


class SchoolIsolationTest(APITestCase):
    """Данные другой школы невидимы (404), а не запрещены (403)."""

    def setUp(self):
        SchoolMiddleware.clear_cache()
        self.school_a = create_school('alpha')
        self.school_b = create_school('beta')
        self.admin_a = create_user(self.school_a, 'admin')
        self.admin_b = create_user(self.school_b, 'admin')
        self.student_b = create_student(self.school_b, name='Beta Kid')

    def test_list_only_own_school(self):
        create_student(self.school_a, name='Alpha Kid')
        self.client.force_authenticate(user=self.admin_a)
        response = self.client.get('/api/students/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        names = [s['name'] for s in response.data['results']]
        self.assertEqual(names, ['Alpha Kid'])

    def test_foreign_object_is_404(self):
        self.client.force_authenticate(user=self.admin_a)
        response = self.client.get(f'/api/students/{self.student_b.pk}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_host_school_mismatch_is_403(self):
        self.client.force_authenticate(user=self.admin_a)
        response = self.client.get('/api/students/', HTTP_X_SCHOOL_ID='beta')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class SchoolViewTest(APITestCase):

    def setUp(self):
        SchoolMiddleware.clear_cache()
        self.school = create_school('greenwood')
        self.admin = create_user(self.school, 'admin')
        self.teacher = create_user(self.school, 'teacher')

    def test_public_config_by_header(self):
        response = self.client.get('/api/school/config/', HTTP_X_SCHOOL_ID='greenwood')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['slug'], 'greenwood')

    def test_public_config_default(self):
        response = self.client.get('/api/school/config/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['name'], 'CampusIQ')

    def test_admin_gets_stats(self):
        create_student(self.school)
        self.client.force_authenticate(user=self.admin)
        response = self.client.get('/api/school/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['stats']['students_count'], 1)
        self.assertEqual(response.data['stats']['teachers_count'], 1)

    def test_teacher_cannot_edit_school(self):
        self.client.force_authenticate(user=self.teacher)
        response = self.client.patch('/api/school/', {'name': 'Hacked'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_admin_update_is_audited(self):
        from audit.models import AuditLog

        self.client.force_authenticate(user=self.admin)
        response = self.client.patch('/api/school/', {'board': 'CBSE'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        log = AuditLog.objects.get(entity='school', action='update')
        self.assertEqual(log.changes['board']['new'], 'CBSE')


class ExpireTrialsTest(TestCase):

    def test_only_past_trials_expire(self):
        ended = create_school('ended', trial_ends_at=timezone.now() - timedelta(hours=1))
        running = create_school('running', trial_ends_at=timezone.now() + timedelta(days=3))
        paid = create_school(
            'paid', subscription_status=School.SubscriptionStatus.ACTIVE,
            trial_ends_at=timezone.now() - timedelta(days=30),
        )

        self.assertEqual(expire_trials(), 1)

        ended.refresh_from_db()
        running.refresh_from_db()
        paid.refresh_from_db()
        self.assertEqual(ended.subscription_status, School.SubscriptionStatus.EXPIRED)
        self.assertEqual(running.subscription_status, School.SubscriptionStatus.TRIAL)
        self.assertEqual(paid.subscription_status, School.SubscriptionStatus.ACTIVE)

        alert = Notification.objects.get(school=ended)
        self.assertEqual(alert.title, 'Trial expired')
        self.assertEqual(alert.target_role, Notification.Target.ADMIN)

        self.assertEqual(expire_trials(), 0)
