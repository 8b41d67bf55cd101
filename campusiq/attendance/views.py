import logging

from django.utils.dateparse import parse_date
from rest_framework import status, viewsets
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.permissions import HasModulePermission
from audit.services import audit_request
from notifications.models import Notification
from notifications.services import emit_activity, notify_parent_absence
from students.models import Student
from students.views import students_visible_to
from tenants.mixins import SchoolScopedViewMixin

from .models import Attendance, Holiday
from .serializers import AttendanceSerializer, HolidaySerializer, MarkAttendanceSerializer
from .services import AttendanceError, AttendanceService, count_statuses

logger = logging.getLogger(__name__)


class AttendanceView(SchoolScopedViewMixin, APIView):
    """
    GET  /api/attendance/?date=YYYY-MM-DD&class_name=  - отметки за день + счётчики
    POST /api/attendance/ {date, class_name, records: [{student_id, status, notes}]}
    """
    permission_classes = [HasModulePermission]
    permission_module = 'attendance'

    def get(self, request):
        school = self.require_school()
        day = request.query_params.get('date')
        if not day:
            return Response({'detail': 'date is required'}, status=status.HTTP_400_BAD_REQUEST)
        try:
            day = parse_date(day)
        except ValueError:
            day = None
        if day is None:
            return Response({'detail': 'Invalid date'}, status=status.HTTP_400_BAD_REQUEST)

        qs = Attendance.objects.for_school(school).filter(date=day).select_related('student', 'marked_by')
        class_name = request.query_params.get('class_name')
        if class_name:
            qs = qs.filter(class_name=class_name)
        if request.user.role in ('parent', 'student'):
            qs = qs.filter(student__in=students_visible_to(request.user, Student.objects.for_school(school)))

        records = list(qs.order_by('class_name', 'student__roll_number'))
        return Response({
            'date': day.isoformat(),
            'records': AttendanceSerializer(records, many=True).data,
            'stats': count_statuses(a.status for a in records),
        })

    def post(self, request):
        school = self.require_school()
        serializer = MarkAttendanceSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        day, class_name = data['date'], data['class_name']

        try:
            saved, stats = AttendanceService.mark(school, day, class_name, data['records'], request.user)
        except AttendanceError as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)

        audit_request(request, 'create', 'attendance', f'{day}-{class_name}', metadata={
            'date': day.isoformat(), 'class_name': class_name, 'stats': stats,
        })
        emit_activity(
            school,
            title='Attendance marked',
            message=f'Class {class_name} on {day:%d %b %Y}: {stats["present"]} present, '
                    f'{stats["absent"]} absent, {stats["late"]} late',
            module='attendance', entity_id=f'{day}-{class_name}',
            action_url=f'/attendance?date={day}&class_name={class_name}',
            actor=request.user,
        )
        self._notify(school, day, class_name, saved, request.user)

        return Response({
            'detail': f'Attendance saved for {len(saved)} student(s)',
            'date': day.isoformat(),
            'class_name': class_name,
            'stats': stats,
            'records': AttendanceSerializer(saved, many=True).data,
        }, status=status.HTTP_201_CREATED)

    @staticmethod
    def _notify(school, day, class_name, saved, actor):
        late = [a for a in saved if a.status == 'late']
        absent = [a for a in saved if a.status == 'absent']

        for record in late:
            emit_activity(
                school,
                title='Late arrival',
                message=f'{record.student.name} ({class_name}) arrived late on {day:%d %b %Y}',
                module='attendance', entity_id=record.student_id,
                actor=actor, type=Notification.Type.ALERT, target_role='admin',
            )

        if absent:
            names = ', '.join(a.student.name for a in absent[:10])
            more = f' and {len(absent) - 10} more' if len(absent) > 10 else ''
            emit_activity(
                school,
                title=f'{len(absent)} absent in {class_name}',
                message=f'Absent on {day:%d %b %Y}: {names}{more}',
                module='attendance', entity_id=f'{day}-{class_name}',
                actor=actor, type=Notification.Type.WARNING, target_role='admin',
            )

        for record in absent:
            student = record.student
            notify_parent_absence(student.parent_phone, student.parent_name, student.name, day)


class AttendanceTodayView(SchoolScopedViewMixin, APIView):
    """GET /api/attendance/today/?class_name= - ученики со статусом на сегодня."""
    permission_classes = [HasModulePermission]
    permission_module = 'attendance'

    def get(self, request):
        school = self.require_school()
        students = students_visible_to(request.user, Student.objects.for_school(school))
        summary = AttendanceService.today_summary(
            school, request.query_params.get('class_name'), students_qs=students,
        )
        return Response(summary)


class AttendanceStatsView(SchoolScopedViewMixin, APIView):
    """
    GET /api/attendance/stats/ - данные для графиков дашборда.

    Статистика по всей школе: доступ по reports:read (admin, teacher).
    """
    permission_classes = [HasModulePermission]
    permission_module = 'reports'

    def get(self, request):
        return Response(AttendanceService.dashboard_stats(self.require_school()))


class HolidayViewSet(SchoolScopedViewMixin, viewsets.ModelViewSet):
    """/api/holidays/?year=&month= - праздники школы."""
    queryset = Holiday.objects.all()
    serializer_class = HolidaySerializer
    permission_classes = [HasModulePermission]
    permission_module = 'holidays'
    pagination_class = None

    def get_serializer_context(self):
        context = super().get_serializer_context()
        context['school'] = getattr(self.request, 'school', None)
        return context

    def get_queryset(self):
        qs = super().get_queryset()
        params = self.request.query_params
        if params.get('year', '').isdigit():
            qs = qs.filter(date__year=int(params['year']))
        if params.get('month', '').isdigit():
            qs = qs.filter(date__month=int(params['month']))
        return qs.order_by('date')

    def perform_create(self, serializer):
        holiday = serializer.save(school=self.require_school())
        audit_request(self.request, 'create', 'holiday', holiday.pk,
                      metadata={'date': holiday.date.isoformat(), 'name': holiday.name})
        emit_activity(
            holiday.school,
            title='Holiday added',
            message=f'{holiday.name} on {holiday.date:%d %b %Y}',
            module='holidays', entity_id=holiday.pk, actor=self.request.user,
        )

    def perform_destroy(self, instance):
        audit_request(self.request, 'delete', 'holiday', instance.pk,
                      metadata={'date': instance.date.isoformat(), 'name': instance.name})
        instance.delete()
