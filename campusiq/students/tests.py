"""
Tests for students app.

Covers:
- CRUD, фильтры и поиск
- Уникальность roll number в классе, лимит плана
- Мягкое удаление
- Массовый импорт (гибкие заголовки, дубликаты, ошибки)
- Видимость для родителя / ученика
"""
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APITestCase

from audit.models import AuditLog
from campusiq.testing import create_school, create_student, create_user
from notifications.models import Notification
from tenants.middleware import SchoolMiddleware

from .importer import import_students, normalize_record
from .models import Student


class NormalizeRecordTest(TestCase):

    def test_flexible_headers(self):
        row = normalize_record({
            'Student Name*': ' Diya Patel ',
            'Class/Section': '6B',
            'Roll No.': 12,
            'Father Name': 'Raj Patel',
            'Mobile': '9876543210',
            'Favourite colour': 'blue',
        })
        self.assertEqual(row, {
            'name': 'Diya Patel',
            'class_name': '6B',
            'roll_number': '12',
            'parent_name': 'Raj Patel',
            'parent_phone': '9876543210',
        })

    def test_empty_values_dropped(self):
        self.assertEqual(normalize_record({'name': 'A', 'email': '  ', 'address': None}), {'name': 'A'})


class ImportStudentsTest(TestCase):

    def setUp(self):
        self.school = create_school('importer')

    def test_existing_and_in_file_duplicates_skipped(self):
        create_student(self.school, class_name='5A', roll_number='1')
        created, skipped, errors = import_students(self.school, [
            {'name': 'Existing', 'class': '5A', 'roll': '1'},
            {'name': 'New One', 'class': '5A', 'roll': '2'},
            {'name': 'Repeat', 'class': '5A', 'roll': '2'},
        ])
        self.assertEqual([s.name for s in created], ['New One'])
        self.assertEqual([s['reason'] for s in skipped], ['already exists', 'duplicate in file'])
        self.assertEqual(errors, [])

    def test_invalid_rows_reported(self):
        created, skipped, errors = import_students(self.school, [
            {'class': '5A', 'roll': '3'},
            {'name': 'Bad Email', 'class': '5A', 'roll': '4', 'email': 'not-an-email'},
        ])
        self.assertEqual(created, [])
        self.assertEqual([e['row'] for e in errors], [1, 2])
        self.assertIn('name', errors[0]['errors'])
        self.assertIn('email', errors[1]['errors'])

    def test_capacity_respected(self):
        created, skipped, errors = import_students(self.school, [
            {'name': 'One', 'class': '1A', 'roll': '1'},
            {'name': 'Two', 'class': '1A', 'roll': '2'},
        ], remaining_capacity=1)
        self.assertEqual(len(created), 1)
        self.assertEqual(errors[0]['row'], 2)


class StudentAPITest(APITestCase):

    def setUp(self):
        SchoolMiddleware.clear_cache()
        self.school = create_school('greenwood')
        self.admin = create_user(self.school, 'admin')
        self.teacher = create_user(self.school, 'teacher')
        self.client.force_authenticate(user=self.admin)

    def _payload(self, **overrides):
        data = {
            'name': 'Aarav Sharma',
            'class_name': '5A',
            'roll_number': '1',
            'parent_name': 'Rohit Sharma',
            'parent_phone': '9876543210',
        }
        data.update(overrides)
        return data

    def test_create_student(self):
        response = self.client.post('/api/students/', self._payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        student = Student.objects.get(pk=response.data['id'])
        self.assertEqual(student.school, self.school)
        self.assertTrue(AuditLog.objects.filter(entity='student', action='create', entity_id=str(student.pk)).exists())
        self.assertTrue(Notification.objects.filter(module='students', title='New student admitted').exists())

    def test_school_in_body_is_ignored(self):
        other = create_school('other')
        response = self.client.post('/api/students/', self._payload(school=str(other.pk)), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Student.objects.get(pk=response.data['id']).school, self.school)

    def test_duplicate_roll_number_rejected(self):
        create_student(self.school, class_name='5A', roll_number='1')
        response = self.client.post('/api/students/', self._payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('roll_number', response.data)

    def test_same_roll_number_in_other_class_allowed(self):
        create_student(self.school, class_name='5B', roll_number='1')
        response = self.client.post('/api/students/', self._payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_plan_limit(self):
        limits = self.school.resource_limits
        limits.max_students = 1
        limits.save()
        create_student(self.school, roll_number='9')
        response = self.client.post('/api/students/', self._payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertIn('Plan limit reached', response.data['detail'])

    def test_parent_user_from_other_school_rejected(self):
        foreign_parent = create_user(create_school('other'), 'parent')
        response = self.client.post('/api/students/', self._payload(parent_user=foreign_parent.pk), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_filters(self):
        create_student(self.school, name='Aarav', class_name='5A', roll_number='1')
        create_student(self.school, name='Diya', class_name='6B', roll_number='1')
        create_student(self.school, name='Gone', class_name='5A', roll_number='2', status='inactive')

        response = self.client.get('/api/students/', {'class_name': '5A'})
        self.assertEqual([s['name'] for s in response.data['results']], ['Aarav'])

        response = self.client.get('/api/students/', {'status': 'all', 'search': 'o'})
        self.assertEqual({s['name'] for s in response.data['results']}, {'Gone'})

    def test_update_is_audited(self):
        student = create_student(self.school)
        response = self.client.patch(f'/api/students/{student.pk}/', {'class_name': '6A'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        log = AuditLog.objects.get(entity='student', action='update')
        self.assertEqual(log.changes, {'class_name': {'old': '5A', 'new': '6A'}})

    def test_soft_delete(self):
        student = create_student(self.school)
        response = self.client.delete(f'/api/students/{student.pk}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        student.refresh_from_db()
        self.assertEqual(student.status, Student.Status.INACTIVE)

        response = self.client.delete(f'/api/students/{student.pk}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_teacher_read_only(self):
        self.client.force_authenticate(user=self.teacher)
        self.assertEqual(self.client.get('/api/students/').status_code, status.HTTP_200_OK)
        response = self.client.post('/api/students/', self._payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_import_endpoint(self):
        response = self.client.post('/api/students/import/', {'records': [
            {'Student Name': 'Kabir Singh', 'Class': '7A', 'Roll No': '1'},
            {'Student Name': 'Meera Iyer', 'Class': '7A', 'Roll No': '2'},
            {'Class': '7A', 'Roll No': '3'},
        ]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['created'], 2)
        self.assertEqual(len(response.data['errors']), 1)
        self.assertTrue(AuditLog.objects.filter(entity='student', action='import').exists())

    def test_import_requires_records(self):
        response = self.client.post('/api/students/import/', {'records': []}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_classes(self):
        create_student(self.school, class_name='6B', roll_number='1')
        create_student(self.school, class_name='5A', roll_number='1')
        create_student(self.school, class_name='5A', roll_number='2')
        response = self.client.get('/api/students/classes/')
        self.assertEqual(response.data['classes'], ['5A', '6B'])


class StudentVisibilityTest(APITestCase):

    def setUp(self):
        SchoolMiddleware.clear_cache()
        self.school = create_school('greenwood')
        self.parent = create_user(self.school, 'parent')
        self.child = create_student(self.school, name='My Child', roll_number='1', parent_user=self.parent)
        self.other = create_student(self.school, name='Someone Else', roll_number='2')

    def test_parent_sees_only_children(self):
        self.client.force_authenticate(user=self.parent)
        response = self.client.get('/api/students/')
        self.assertEqual([s['name'] for s in response.data['results']], ['My Child'])

        response = self.client.get(f'/api/students/{self.other.pk}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_student_has_no_students_module(self):
        student_user = create_user(self.school, 'student')
        self.client.force_authenticate(user=student_user)
        response = self.client.get('/api/students/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
