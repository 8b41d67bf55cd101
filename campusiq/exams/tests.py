"""
Tests for exams app.

Covers:
- Процент и буквенная оценка
- ExamService.enter_grades (ранги с ничьей 1,2,2,4, marks > total, чужие ученики)
- Табель успеваемости
- API: создание, фильтры, отмена vs удаление, ввод оценок
"""
from datetime import date
from decimal import Decimal

from django.test import TestCase
from rest_framework import status
from rest_framework.test import APITestCase

from audit.models import AuditLog
from campusiq.testing import create_school, create_student, create_user
from tenants.middleware import SchoolMiddleware

from .models import Exam, Grade, compute_percentage, letter_grade
from .services import ExamCancelledError, ExamService, MarksOutOfRangeError


def create_exam(school, **extra):
    data = {
        'name': 'Mid-term 2026',
        'type': Exam.Type.MID_TERM,
        'class_name': '5A',
        'subject': 'Mathematics',
        'date': date(2026, 9, 15),
        'total_marks': 100,
        'passing_marks': 35,
    }
    data.update(extra)
    return Exam.objects.create(school=school, **data)


class GradeMathTest(TestCase):

    def test_letter_grade_boundaries(self):
        self.assertEqual(letter_grade(Decimal('90')), 'A+')
        self.assertEqual(letter_grade(Decimal('89.99')), 'A')
        self.assertEqual(letter_grade(Decimal('70')), 'B+')
        self.assertEqual(letter_grade(Decimal('40')), 'D')
        self.assertEqual(letter_grade(Decimal('39.99')), 'F')

    def test_compute_percentage(self):
        self.assertEqual(compute_percentage(Decimal('33'), 40), Decimal('82.50'))
        self.assertEqual(compute_percentage(Decimal('2'), 3), Decimal('66.67'))
        self.assertEqual(compute_percentage(5, 0), Decimal('0.00'))


class EnterGradesTest(TestCase):

    def setUp(self):
        self.school = create_school('greenwood')
        self.teacher = create_user(self.school, 'teacher')
        self.exam = create_exam(self.school)
        self.students = [
            create_student(self.school, name=name, roll_number=str(i))
            for i, name in enumerate(['Aarav', 'Diya', 'Kabir', 'Meera'], start=1)
        ]

    def _entries(self, *marks):
        return [
            {'student_id': s.pk, 'marks_obtained': Decimal(m), 'remarks': ''}
            for s, m in zip(self.students, marks)
        ]

    def test_competition_ranking(self):
        saved, skipped = ExamService.enter_grades(self.exam, self._entries('90', '80', '80', '70'), self.teacher)
        self.assertEqual(skipped, [])
        ranks = {g.student_name: g.rank for g in saved}
        self.assertEqual(ranks, {'Aarav': 1, 'Diya': 2, 'Kabir': 2, 'Meera': 4})

    def test_grade_fields(self):
        saved, _ = ExamService.enter_grades(self.exam, self._entries('92.5'), self.teacher)
        grade = saved[0]
        self.assertEqual(grade.percentage, Decimal('92.50'))
        self.assertEqual(grade.grade, 'A+')
        self.assertTrue(grade.passed)
        self.exam.refresh_from_db()
        self.assertEqual(self.exam.status, Exam.Status.COMPLETED)

    def test_reentry_updates_and_reranks(self):
        ExamService.enter_grades(self.exam, self._entries('90', '80'), self.teacher)
        ExamService.enter_grades(self.exam, [
            {'student_id': self.students[1].pk, 'marks_obtained': Decimal('95')},
        ], self.teacher)
        self.assertEqual(Grade.objects.filter(exam=self.exam).count(), 2)
        self.assertEqual(Grade.objects.get(student=self.students[1]).rank, 1)
        self.assertEqual(Grade.objects.get(student=self.students[0]).rank, 2)

    def test_reentry_uses_current_total_marks(self):
        exam = create_exam(self.school, total_marks=50, passing_marks=18)
        ExamService.enter_grades(exam, self._entries('40'), self.teacher)

        exam.total_marks = 100
        exam.save(update_fields=['total_marks'])
        saved, _ = ExamService.enter_grades(exam, self._entries('80'), self.teacher)

        grade = Grade.objects.get(pk=saved[0].pk)
        self.assertEqual(grade.total_marks, 100)
        self.assertEqual(grade.percentage, Decimal('80.00'))
        self.assertEqual(grade.grade, 'A')

    def test_marks_above_total_rejected(self):
        with self.assertRaises(MarksOutOfRangeError):
            ExamService.enter_grades(self.exam, self._entries('90', '101'), self.teacher)
        self.assertFalse(Grade.objects.exists())

    def test_foreign_students_skipped(self):
        foreign = create_student(create_school('other'), name='Outsider')
        saved, skipped = ExamService.enter_grades(self.exam, [
            {'student_id': self.students[0].pk, 'marks_obtained': Decimal('50')},
            {'student_id': foreign.pk, 'marks_obtained': Decimal('60')},
        ], self.teacher)
        self.assertEqual(len(saved), 1)
        self.assertEqual(skipped, [foreign.pk])

    def test_cancelled_exam(self):
        self.exam.status = Exam.Status.CANCELLED
        self.exam.save()
        with self.assertRaises(ExamCancelledError):
            ExamService.enter_grades(self.exam, self._entries('50'), self.teacher)


class ReportCardTest(TestCase):

    def setUp(self):
        self.school = create_school('greenwood')
        self.student = create_student(self.school)
        self.maths = create_exam(self.school, subject='Mathematics', total_marks=100)
        self.science = create_exam(self.school, subject='Science', total_marks=50)
        self.unit = create_exam(self.school, name='Unit Test 1', type=Exam.Type.UNIT_TEST,
                                date=date(2026, 7, 10), total_marks=20)
        ExamService.enter_grades(self.maths, [{'student_id': self.student.pk, 'marks_obtained': Decimal('80')}], None)
        ExamService.enter_grades(self.science, [{'student_id': self.student.pk, 'marks_obtained': Decimal('40')}], None)
        ExamService.enter_grades(self.unit, [{'student_id': self.student.pk, 'marks_obtained': Decimal('10')}], None)

    def test_grouped_by_exam_name(self):
        card = ExamService.report_card(self.school, self.student)
        self.assertEqual([e['exam_name'] for e in card['exams']], ['Unit Test 1', 'Mid-term 2026'])

        midterm = card['exams'][1]
        self.assertEqual([s['subject'] for s in midterm['subjects']], ['Mathematics', 'Science'])
        self.assertEqual(midterm['total_marks'], '120.00')
        self.assertEqual(midterm['total_possible'], 150)
        self.assertEqual(midterm['overall_percentage'], '80.00')
        self.assertEqual(midterm['overall_grade'], 'A')

        # (10 + 80 + 40) / (20 + 100 + 50)
        self.assertEqual(card['overall_percentage'], '76.47')
        self.assertEqual(card['overall_grade'], 'B+')

    def test_cancelled_exams_excluded(self):
        Exam.objects.filter(pk=self.unit.pk).update(status=Exam.Status.CANCELLED)
        card = ExamService.report_card(self.school, self.student)
        self.assertEqual([e['exam_name'] for e in card['exams']], ['Mid-term 2026'])

    def test_single_exam(self):
        card = ExamService.report_card(self.school, self.student, exam_id=self.science.pk)
        self.assertEqual(len(card['exams'][0]['subjects']), 1)

    def test_empty(self):
        card = ExamService.report_card(self.school, create_student(self.school, roll_number='2'))
        self.assertEqual(card['exams'], [])
        self.assertEqual(card['overall_grade'], '')


class ExamAPITest(APITestCase):

    def setUp(self):
        SchoolMiddleware.clear_cache()
        self.school = create_school('greenwood')
        self.admin = create_user(self.school, 'admin')
        self.teacher = create_user(self.school, 'teacher', name='Priya Nair')
        self.parent = create_user(self.school, 'parent')
        self.student = create_student(self.school, parent_user=self.parent)
        self.client.force_authenticate(user=self.admin)

    def _exam_payload(self, **overrides):
        data = {
            'name': 'Final 2026', 'type': 'final', 'class_name': '5A', 'subject': 'English',
            'date': '2027-03-10', 'start_time': '09:00', 'end_time': '12:00',
            'total_marks': 80, 'passing_marks': 28,
        }
        data.update(overrides)
        return data

    def test_create_exam_with_invigilator(self):
        response = self.client.post('/api/exams/', self._exam_payload(invigilator=self.teacher.pk), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['invigilator_name'], 'Priya Nair')
        self.assertTrue(AuditLog.objects.filter(entity='exam', action='create').exists())

    def test_foreign_invigilator_rejected(self):
        outsider = create_user(create_school('other'), 'teacher')
        response = self.client.post('/api/exams/', self._exam_payload(invigilator=outsider.pk), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('invigilator', response.data)

    def test_passing_above_total_rejected(self):
        response = self.client.post('/api/exams/', self._exam_payload(passing_marks=90), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('passing_marks', response.data)

    def test_end_before_start_rejected(self):
        response = self.client.post('/api/exams/', self._exam_payload(end_time='08:00'), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('end_time', response.data)

    def test_filters(self):
        create_exam(self.school, subject='Mathematics', date=date(2026, 9, 15))
        create_exam(self.school, subject='Science', date=date(2026, 12, 1))
        create_exam(self.school, subject='Science', class_name='6B', date=date(2026, 12, 2))

        response = self.client.get('/api/exams/', {'subject': 'Science', 'class_name': '5A'})
        self.assertEqual(response.data['count'], 1)
        response = self.client.get('/api/exams/', {'date_from': '2026-11-01', 'date_to': '2026-12-01'})
        self.assertEqual(response.data['count'], 1)

    def test_invalid_date_filter_is_400(self):
        response = self.client.get('/api/exams/', {'date_from': '2026-02-30'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('date_from', response.data)

    def test_enter_grades(self):
        exam = create_exam(self.school)
        self.client.force_authenticate(user=self.teacher)
        response = self.client.post(f'/api/exams/{exam.pk}/grades/', {'grades': [
            {'student_id': self.student.pk, 'marks_obtained': '72.50'},
        ]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['grades'][0]['grade'], 'B+')
        self.assertEqual(response.data['grades'][0]['rank'], 1)

        response = self.client.get(f'/api/exams/{exam.pk}/grades/')
        self.assertEqual(response.data['exam']['status'], 'completed')
        self.assertEqual(len(response.data['grades']), 1)

    def test_marks_above_total_is_400(self):
        exam = create_exam(self.school, total_marks=50)
        response = self.client.post(f'/api/exams/{exam.pk}/grades/', {'grades': [
            {'student_id': self.student.pk, 'marks_obtained': '51'},
        ]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_parent_cannot_enter_grades(self):
        exam = create_exam(self.school)
        self.client.force_authenticate(user=self.parent)
        response = self.client.post(f'/api/exams/{exam.pk}/grades/', {'grades': [
            {'student_id': self.student.pk, 'marks_obtained': '50'},
        ]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_delete_without_grades(self):
        exam = create_exam(self.school)
        response = self.client.delete(f'/api/exams/{exam.pk}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['cancelled'])
        self.assertFalse(Exam.objects.filter(pk=exam.pk).exists())

    def test_delete_with_grades_cancels(self):
        exam = create_exam(self.school)
        ExamService.enter_grades(exam, [{'student_id': self.student.pk, 'marks_obtained': Decimal('60')}], self.admin)

        response = self.client.delete(f'/api/exams/{exam.pk}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['cancelled'])
        self.assertEqual(response.data['preserved_grades'], 1)
        exam.refresh_from_db()
        self.assertEqual(exam.status, Exam.Status.CANCELLED)
        self.assertEqual(exam.grades.count(), 1)

        response = self.client.delete(f'/api/exams/{exam.pk}/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_cancel_action(self):
        exam = create_exam(self.school)
        response = self.client.post(f'/api/exams/{exam.pk}/cancel/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        response = self.client.post(f'/api/exams/{exam.pk}/cancel/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_teacher_cannot_cancel(self):
        exam = create_exam(self.school)
        self.client.force_authenticate(user=self.teacher)
        response = self.client.post(f'/api/exams/{exam.pk}/cancel/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_status_cannot_skip_grades_or_cancel_rules(self):
        exam = create_exam(self.school)
        response = self.client.patch(f'/api/exams/{exam.pk}/', {'status': 'completed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('status', response.data)

        response = self.client.patch(f'/api/exams/{exam.pk}/', {'status': 'cancelled'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.patch(f'/api/exams/{exam.pk}/', {'status': 'ongoing'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'ongoing')

    def test_cancelled_exam_cannot_be_reopened(self):
        exam = create_exam(self.school, status=Exam.Status.CANCELLED)
        response = self.client.patch(f'/api/exams/{exam.pk}/', {'status': 'scheduled'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        exam.refresh_from_db()
        self.assertEqual(exam.status, Exam.Status.CANCELLED)

    def test_grades_follow_total_marks_change(self):
        exam = create_exam(self.school, total_marks=50, passing_marks=18)
        url = f'/api/exams/{exam.pk}/grades/'
        self.client.post(url, {'grades': [{'student_id': self.student.pk, 'marks_obtained': '40'}]}, format='json')
        self.client.patch(f'/api/exams/{exam.pk}/', {'total_marks': 100}, format='json')

        response = self.client.post(url, {'grades': [{'student_id': self.student.pk, 'marks_obtained': '80'}]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        grade = Grade.objects.get(exam=exam, student=self.student)
        self.assertEqual((grade.total_marks, grade.percentage, grade.grade), (100, Decimal('80.00'), 'A'))

    def test_report_card_for_parent(self):
        exam = create_exam(self.school)
        ExamService.enter_grades(exam, [{'student_id': self.student.pk, 'marks_obtained': Decimal('88')}], self.admin)
        self.client.force_authenticate(user=self.parent)
        response = self.client.get('/api/exams/report-card/', {'student_id': self.student.pk})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['overall_grade'], 'A')

        other = create_student(self.school, name='Not Mine', roll_number='2')
        response = self.client.get('/api/exams/report-card/', {'student_id': other.pk})
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
