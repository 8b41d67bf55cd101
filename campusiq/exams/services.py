"""
Exam business logic: ввод оценок, ранжирование, табель успеваемости.
"""
import logging
from collections import OrderedDict
from decimal import Decimal

from django.db import transaction

from students.models import Student

from .models import Exam, Grade, compute_percentage, letter_grade

logger = logging.getLogger(__name__)


class ExamServiceError(Exception):
    """Base exception for exam service errors."""
    pass


class ExamCancelledError(ExamServiceError):
    """Raised when entering grades for a cancelled exam."""
    pass


class MarksOutOfRangeError(ExamServiceError):
    """Raised when marks exceed the exam's total marks."""
    pass


class ExamService:

    @staticmethod
    @transaction.atomic
    def enter_grades(exam: Exam, entries, entered_by):
        """
        Ввести/обновить оценки за экзамен.

        Args:
            entries: [{'student_id': int, 'marks_obtained': Decimal, 'remarks': str}]

        Returns:
            (list[Grade], list[int]) - сохранённые оценки и пропущенные student_id
            (ученики другой школы)

        Raises:
            ExamCancelledError
            MarksOutOfRangeError: marks_obtained > total_marks (ничего не сохраняется)
        """
        exam = Exam.objects.select_for_update().get(pk=exam.pk)
        if exam.status == Exam.Status.CANCELLED:
            raise ExamCancelledError(f'Exam "{exam.name}" is cancelled')

        too_high = [e['student_id'] for e in entries if e['marks_obtained'] > exam.total_marks]
        if too_high:
            raise MarksOutOfRangeError(
                f'Marks exceed total marks ({exam.total_marks}) for student(s): {too_high}'
            )

        students = Student.objects.filter(
            school=exam.school, pk__in=[e['student_id'] for e in entries],
        ).in_bulk()

        saved, skipped = [], []
        for entry in entries:
            student = students.get(entry['student_id'])
            if student is None:
                skipped.append(entry['student_id'])
                continue
            grade = Grade.objects.filter(exam=exam, student=student).first()
            if grade is None:
                grade = Grade(school=exam.school, exam=exam, student=student, entered_by=entered_by)
            # Экзамен мог измениться после первого ввода (total_marks, предмет)
            grade.student_name = student.name
            grade.class_name = exam.class_name
            grade.subject = exam.subject
            grade.total_marks = exam.total_marks
            grade.marks_obtained = entry['marks_obtained']
            grade.remarks = entry.get('remarks', '')
            grade.save()
            saved.append(grade)

        ExamService.recompute_ranks(exam)

        exam.status = Exam.Status.COMPLETED
        exam.save(update_fields=['status', 'updated_at'])

        for grade in saved:
            grade.refresh_from_db(fields=['rank'])

        if skipped:
            logger.warning(f'Grades for exam {exam.pk}: skipped students outside school {skipped}')
        logger.info(f'Grades entered: exam={exam.pk}, saved={len(saved)}')
        return saved, skipped

    @staticmethod
    def recompute_ranks(exam: Exam):
        """Ранг = 1 + число учеников со строго большим баллом (1, 2, 2, 4)."""
        grades = list(Grade.objects.filter(exam=exam).order_by('-marks_obtained', 'student_name'))
        rank, previous = 0, None
        for position, grade in enumerate(grades, start=1):
            if grade.marks_obtained != previous:
                rank, previous = position, grade.marks_obtained
            if grade.rank != rank:
                grade.rank = rank
                Grade.objects.filter(pk=grade.pk).update(rank=rank)

    @staticmethod
    def report_card(school, student, exam_id=None):
        """
        Табель ученика: оценки сгруппированы по названию экзамена
        (например все предметы "Mid-term 2024"), с итогами по группе и общими.
        """
        grades = (
            Grade.objects
            .filter(school=school, student=student)
            .exclude(exam__status=Exam.Status.CANCELLED)
            .select_related('exam')
            .order_by('exam__date', 'subject')
        )
        if exam_id is not None:
            grades = grades.filter(exam_id=exam_id)

        groups = OrderedDict()
        for grade in grades:
            groups.setdefault(grade.exam.name, []).append(grade)

        exams = []
        overall_obtained, overall_possible = Decimal('0'), 0
        for exam_name, exam_grades in groups.items():
            obtained = sum((g.marks_obtained for g in exam_grades), Decimal('0'))
            possible = sum(g.total_marks for g in exam_grades)
            percentage = compute_percentage(obtained, possible)
            exams.append({
                'exam_name': exam_name,
                'exam_type': exam_grades[0].exam.type,
                'date': exam_grades[0].exam.date.isoformat(),
                'subjects': [
                    {
                        'exam_id': g.exam_id,
                        'subject': g.subject,
                        'subject_code': g.exam.subject_code,
                        'marks_obtained': str(g.marks_obtained),
                        'total_marks': g.total_marks,
                        'passing_marks': g.exam.passing_marks,
                        'percentage': str(g.percentage),
                        'grade': g.grade,
                        'rank': g.rank,
                        'passed': g.passed,
                        'remarks': g.remarks,
                    }
                    for g in exam_grades
                ],
                'total_marks': str(obtained),
                'total_possible': possible,
                'overall_percentage': str(percentage),
                'overall_grade': letter_grade(percentage),
            })
            overall_obtained += obtained
            overall_possible += possible

        overall = compute_percentage(overall_obtained, overall_possible)
        return {
            'student_id': student.pk,
            'student_name': student.name,
            'class_name': student.class_name,
            'roll_number': student.roll_number,
            'exams': exams,
            'overall_percentage': str(overall),
            'overall_grade': letter_grade(overall) if exams else '',
        }
