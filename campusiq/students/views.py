import logging

from django.db.models import Q
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from accounts.permissions import HasModulePermission
from audit.services import audit_request, build_changes
from notifications.services import emit_activity, notify_student_registration
from tenants.limits import check_school_limit
from tenants.mixins import SchoolScopedViewMixin
from tenants.models import SchoolResourceLimits

from .importer import import_students
from .models import Student
from .serializers import StudentImportSerializer, StudentSerializer

logger = logging.getLogger(__name__)

AUDIT_FIELDS = [
    'name', 'class_name', 'roll_number', 'parent_name', 'parent_phone', 'parent_email',
    'email', 'address', 'admission_date', 'status',
]


def students_visible_to(user, qs):
    """Родитель видит только привязанных детей, ученик только себя."""
    if user.role == 'parent':
        return qs.filter(parent_user=user)
    if user.role == 'student':
        return qs.filter(user=user)
    return qs


class StudentViewSet(SchoolScopedViewMixin, viewsets.ModelViewSet):
    """
    /api/students/ - ученики школы.

    DELETE - мягкое удаление (status=inactive), история посещаемости и оплат сохраняется.
    """
    queryset = Student.objects.all()
    serializer_class = StudentSerializer
    permission_classes = [HasModulePermission]
    permission_module = 'students'
    permission_levels = {
        'import_records': 'write',
        'classes': 'read',
    }

    def get_serializer_context(self):
        context = super().get_serializer_context()
        context['school'] = getattr(self.request, 'school', None)
        return context

    def get_queryset(self):
        qs = students_visible_to(self.request.user, super().get_queryset())
        if self.action != 'list':
            return qs

        params = self.request.query_params
        student_status = params.get('status', Student.Status.ACTIVE)
        if student_status != 'all':
            qs = qs.filter(status=student_status)
        if params.get('class_name'):
            qs = qs.filter(class_name=params['class_name'])
        search = params.get('search', '').strip()
        if search:
            qs = qs.filter(
                Q(name__icontains=search) | Q(roll_number__icontains=search)
                | Q(parent_name__icontains=search) | Q(parent_phone__icontains=search)
            )
        return qs.order_by('class_name', 'roll_number')

    def perform_create(self, serializer):
        school = self.require_school()
        check_school_limit(school, 'max_students')
        student = serializer.save(school=school)

        audit_request(self.request, 'create', 'student', student.pk,
                      metadata={'class_name': student.class_name, 'roll_number': student.roll_number})
        emit_activity(
            school,
            title='New student admitted',
            message=f'{student.name} joined class {student.class_name}',
            module='students', entity_id=student.pk, action_url=f'/students/{student.pk}',
            actor=self.request.user,
        )
        notify_student_registration(student.parent_phone, student.parent_name, student.name, school.name)

    def perform_update(self, serializer):
        old = {field: getattr(serializer.instance, field) for field in AUDIT_FIELDS}
        student = serializer.save()
        changes = build_changes(old, student, AUDIT_FIELDS)
        if changes:
            audit_request(self.request, 'update', 'student', student.pk, changes=changes)

    def destroy(self, request, *args, **kwargs):
        student = self.get_object()
        if student.status == Student.Status.INACTIVE:
            return Response({'detail': 'Student is already inactive.'}, status=status.HTTP_400_BAD_REQUEST)

        student.status = Student.Status.INACTIVE
        student.save(update_fields=['status', 'updated_at'])

        audit_request(request, 'delete', 'student', student.pk,
                      changes={'status': {'old': Student.Status.ACTIVE, 'new': Student.Status.INACTIVE}},
                      metadata={'soft': True})
        emit_activity(
            student.school,
            title='Student deactivated',
            message=f'{student.name} ({student.class_name}) was marked inactive',
            module='students', entity_id=student.pk,
            actor=request.user, type='warning', target_role='admin',
        )
        return Response({'detail': f'{student.name} deactivated', 'id': student.pk})

    @action(detail=False, methods=['post'], url_path='import')
    def import_records(self, request):
        """POST /api/students/import/ {records: [...]} → created / skipped / errors."""
        school = self.require_school()
        serializer = StudentImportSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            limits = school.resource_limits
            current = Student.objects.filter(school=school, status=Student.Status.ACTIVE).count()
            remaining = max(0, limits.max_students - current)
        except SchoolResourceLimits.DoesNotExist:
            remaining = None

        created, skipped, errors = import_students(school, serializer.validated_data['records'], remaining)

        audit_request(request, 'import', 'student', '', metadata={
            'created': len(created), 'skipped': len(skipped), 'errors': len(errors),
        })
        if created:
            emit_activity(
                school,
                title='Students imported',
                message=f'{len(created)} student(s) imported',
                module='students', action_url='/students',
                actor=request.user,
            )

        return Response({
            'created': len(created),
            'skipped': skipped,
            'errors': errors,
            'students': StudentSerializer(created, many=True).data,
        }, status=status.HTTP_201_CREATED if created else status.HTTP_200_OK)

    @action(detail=False, methods=['get'])
    def classes(self, request):
        """GET /api/students/classes/ - список классов с активными учениками."""
        names = (
            self.get_queryset()
            .filter(status=Student.Status.ACTIVE)
            .order_by('class_name')
            .values_list('class_name', flat=True)
            .distinct()
        )
        return Response({'classes': list(names)})
