import logging

from django.shortcuts import get_object_or_404
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from accounts.permissions import HasModulePermission
from audit.services import audit_request, build_changes
from campusiq.query import query_date
from notifications.services import emit_activity, notify_student_results
from students.models import Student
from students.views import students_visible_to
from tenants.mixins import SchoolScopedViewMixin

from .models import Exam, Grade
from .serializers import EnterGradesSerializer, ExamSerializer, GradeSerializer
from .services import ExamService, ExamServiceError

logger = logging.getLogger(__name__)

AUDIT_FIELDS = [
    'name', 'type', 'class_name', 'subject', 'subject_code', 'date', 'start_time',
    'end_time', 'total_marks', 'passing_marks', 'room', 'invigilator_name', 'status',
]


class ExamViewSet(SchoolScopedViewMixin, viewsets.ModelViewSet):
    """
    /api/exams/ - экзамены.

    DELETE: экзамен с оценками отменяется (status=cancelled), без оценок удаляется.
    """
    queryset = Exam.objects.all()
    serializer_class = ExamSerializer
    permission_classes = [HasModulePermission]
    permission_module = 'exams'
    permission_levels = {
        'cancel': 'delete',
    }

    def get_serializer_context(self):
        context = super().get_serializer_context()
        context['school'] = getattr(self.request, 'school', None)
        return context

    def get_queryset(self):
        qs = super().get_queryset()
        if self.action != 'list':
            return qs
        params = self.request.query_params
        for field in ('class_name', 'subject', 'status', 'type'):
            if params.get(field):
                qs = qs.filter(**{field: params[field]})
        date_from = query_date(params, 'date_from')
        date_to = query_date(params, 'date_to')
        if date_from:
            qs = qs.filter(date__gte=date_from)
        if date_to:
            qs = qs.filter(date__lte=date_to)
        return qs.order_by('-date', 'class_name')

    def perform_create(self, serializer):
        school = self.require_school()
        exam = serializer.save(school=school)
        audit_request(self.request, 'create', 'exam', exam.pk,
                      metadata={'name': exam.name, 'class_name': exam.class_name, 'subject': exam.subject})
        emit_activity(
            school,
            title='Exam scheduled',
            message=f'{exam.name} ({exam.subject}) for {exam.class_name} on {exam.date:%d %b %Y}',
            module='exams', entity_id=exam.pk, action_url='/exams',
            actor=self.request.user,
        )

    def perform_update(self, serializer):
        old = {field: getattr(serializer.instance, field) for field in AUDIT_FIELDS}
        exam = serializer.save()
        changes = build_changes(old, exam, AUDIT_FIELDS)
        if changes:
            audit_request(self.request, 'update', 'exam', exam.pk, changes=changes)

    def _cancel(self, request, exam):
        old_status = exam.status
        exam.status = Exam.Status.CANCELLED
        exam.save(update_fields=['status', 'updated_at'])
        grade_count = exam.grades.count()

        audit_request(request, 'update', 'exam', exam.pk,
                      changes={'status': {'old': old_status, 'new': Exam.Status.CANCELLED}},
                      metadata={'reason': 'cancelled', 'grade_count': grade_count})
        emit_activity(
            exam.school,
            title='Exam cancelled',
            message=f'{exam.name} was cancelled ({grade_count} grades preserved)',
            module='exams', entity_id=exam.pk, action_url='/exams',
            actor=request.user, type='warning',
        )
        return Response({
            'detail': f'Exam cancelled ({grade_count} grade records preserved)',
            'cancelled': True,
            'preserved_grades': grade_count,
        })

    def destroy(self, request, *args, **kwargs):
        exam = self.get_object()
        if exam.grades.exists():
            if exam.status == Exam.Status.CANCELLED:
                return Response({'detail': 'Exam is already cancelled.'}, status=status.HTTP_409_CONFLICT)
            return self._cancel(request, exam)

        exam_id, name = exam.pk, exam.name
        exam.delete()
        audit_request(request, 'delete', 'exam', exam_id, metadata={'name': name})
        emit_activity(
            request.school,
            title='Exam deleted',
            message=f'{name} exam was deleted',
            module='exams', entity_id=exam_id, action_url='/exams',
            actor=request.user, type='warning',
        )
        return Response({'detail': 'Exam deleted', 'cancelled': False})

    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        exam = self.get_object()
        if exam.status == Exam.Status.CANCELLED:
            return Response({'detail': 'Exam is already cancelled.'}, status=status.HTTP_409_CONFLICT)
        if exam.status == Exam.Status.COMPLETED:
            return Response({'detail': 'Completed exam cannot be cancelled.'}, status=status.HTTP_409_CONFLICT)
        return self._cancel(request, exam)

    @action(detail=True, methods=['get', 'post'])
    def grades(self, request, pk=None):
        """GET - оценки экзамена; POST {grades: [{student_id, marks_obtained, remarks}]}."""
        exam = self.get_object()
        if request.method == 'GET':
            qs = exam.grades.select_related('student', 'exam')
            if request.user.role in ('parent', 'student'):
                qs = qs.filter(student__in=students_visible_to(request.user, Student.objects.for_school(exam.school)))
            return Response({
                'exam': ExamSerializer(exam, context=self.get_serializer_context()).data,
                'grades': GradeSerializer(qs.order_by('rank', 'student_name'), many=True).data,
            })

        serializer = EnterGradesSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            saved, skipped = ExamService.enter_grades(exam, serializer.validated_data['grades'], request.user)
        except ExamServiceError as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)

        audit_request(request, 'update', 'exam_grades', exam.pk,
                      metadata={'grades_entered': len(saved), 'skipped': skipped})
        emit_activity(
            exam.school,
            title='Grades entered',
            message=f'Grades entered for {len(saved)} student(s) in {exam.name} ({exam.subject})',
            module='exams', entity_id=exam.pk, action_url='/exams',
            actor=request.user,
        )
        for grade in saved:
            notify_student_results(grade.student.parent_phone, grade.student.name, exam.name)

        return Response({
            'detail': f'Grades saved for {len(saved)} student(s)',
            'grades': GradeSerializer(saved, many=True).data,
            'skipped': skipped,
        }, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=['get'], url_path='report-card')
    def report_card(self, request):
        """GET /api/exams/report-card/?student_id=&exam_id="""
        school = self.require_school()
        student_id = request.query_params.get('student_id', '')
        if not student_id.isdigit():
            return Response({'detail': 'student_id is required'}, status=status.HTTP_400_BAD_REQUEST)
        student = get_object_or_404(
            students_visible_to(request.user, Student.objects.for_school(school)), pk=int(student_id),
        )
        exam_id = request.query_params.get('exam_id', '')
        return Response(ExamService.report_card(school, student, int(exam_id) if exam_id.isdigit() else None))
