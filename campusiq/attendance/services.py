"""
Attendance business logic: массовая отметка и агрегаты для дашбордов.
"""
import logging
from calendar import monthrange
from datetime import date as date_cls, timedelta

from django.db import transaction
from django.db.models import Count, Q
from django.utils import timezone

from students.models import Student

from .models import Attendance, AttendanceStatus, Holiday

logger = logging.getLogger(__name__)

STATUSES = [choice for choice, _ in AttendanceStatus.choices]


class AttendanceError(Exception):
    """Base exception for attendance service errors."""
    pass


class HolidayError(AttendanceError):
    """Raised when attendance is marked on a school holiday."""
    pass


class UnknownStudentError(AttendanceError):
    """Raised when a record references a student outside the school."""
    pass


def count_statuses(statuses):
    """{total, present, absent, late, leave} из списка статусов."""
    stats = {'total': 0, **{s: 0 for s in STATUSES}}
    for s in statuses:
        stats['total'] += 1
        if s in stats:
            stats[s] += 1
    return stats


def _status_counts(qs):
    """То же, но агрегатом в БД."""
    return qs.aggregate(
        total=Count('id'),
        **{s: Count('id', filter=Q(status=s)) for s in STATUSES},
    )


def percent(part, whole, digits=0):
    if not whole:
        return 0
    value = round(part / whole * 100, digits)
    return int(value) if digits == 0 else value


class AttendanceService:

    @staticmethod
    @transaction.atomic
    def mark(school, date, class_name, records, marked_by):
        """
        Отметить посещаемость класса за день (upsert по ученику).

        Args:
            records: [{'student_id': int, 'status': str, 'notes': str}]

        Returns:
            (list[Attendance], dict stats)

        Raises:
            HolidayError: день - праздник школы
            UnknownStudentError: ученик не найден в школе
        """
        holiday = Holiday.objects.filter(school=school, date=date).first()
        if holiday is not None:
            raise HolidayError(f'Cannot mark attendance on a holiday: {holiday.name}')

        student_ids = [r['student_id'] for r in records]
        students = Student.objects.filter(school=school, pk__in=student_ids).in_bulk()
        missing = sorted(set(student_ids) - set(students))
        if missing:
            raise UnknownStudentError(f'Students not found in this school: {missing}')

        now = timezone.now()
        saved = []
        for record in records:
            attendance, _ = Attendance.objects.update_or_create(
                school=school,
                student=students[record['student_id']],
                date=date,
                defaults={
                    'class_name': class_name,
                    'status': record['status'],
                    'marked_by': marked_by,
                    'marked_at': now,
                    'notes': record.get('notes', ''),
                },
            )
            saved.append(attendance)

        stats = count_statuses(r['status'] for r in records)
        logger.info(f'Attendance marked: school={school.slug} class={class_name} date={date} {stats}')
        return saved, stats

    @staticmethod
    def today_summary(school, class_name=None, students_qs=None, day=None):
        """Ученики класса со статусом на сегодня (или на day) + счётчики."""
        today = day or timezone.localdate()
        students = students_qs if students_qs is not None else Student.objects.filter(school=school)
        students = students.filter(status=Student.Status.ACTIVE)
        records = Attendance.objects.filter(school=school, date=today)
        if class_name:
            students = students.filter(class_name=class_name)
            records = records.filter(class_name=class_name)

        by_student = {a.student_id: a for a in records}
        rows = []
        for student in students.order_by('class_name', 'roll_number'):
            record = by_student.get(student.pk)
            rows.append({
                'student_id': student.pk,
                'roll_number': student.roll_number,
                'name': student.name,
                'class_name': student.class_name,
                'status': record.status if record else None,
                'notes': record.notes if record else '',
            })

        marked = [r['status'] for r in rows if r['status']]
        stats = count_statuses(marked)
        stats.update({
            'total': len(rows),
            'marked': len(marked),
            'unmarked': len(rows) - len(marked),
            'percentage': percent(stats['present'] + stats['late'], len(rows), 1),
        })
        return {'date': today.isoformat(), 'students': rows, 'stats': stats}

    @staticmethod
    def dashboard_stats(school, today=None):
        """Недельный тренд, распределение за сегодня, по классам, помесячно (6 мес)."""
        today = today or timezone.localdate()
        qs = Attendance.objects.filter(school=school)

        weekly_trend = []
        for offset in range(6, -1, -1):
            day = today - timedelta(days=offset)
            counts = _status_counts(qs.filter(date=day))
            weekly_trend.append({
                'date': day.isoformat(),
                'label': day.strftime('%a, %b %d'),
                'present': counts['present'],
                'absent': counts['absent'],
                'late': counts['late'],
                'total': counts['total'],
                'percentage': percent(counts['present'], counts['total']),
            })

        today_qs = qs.filter(date=today)
        today_counts = _status_counts(today_qs)
        today_distribution = {s: today_counts[s] for s in STATUSES}

        class_sizes = dict(
            Student.objects.filter(school=school, status=Student.Status.ACTIVE)
            .values_list('class_name')
            .annotate(n=Count('id'))
            .order_by()
        )
        class_counts = {
            row['class_name']: row
            for row in today_qs.values('class_name').annotate(
                total=Count('id'),
                **{s: Count('id', filter=Q(status=s)) for s in STATUSES},
            ).order_by()
        }
        class_wise = []
        for class_name in sorted(class_sizes):
            counts = class_counts.get(class_name, {})
            present, late = counts.get('present', 0), counts.get('late', 0)
            class_wise.append({
                'class_name': class_name,
                'present': present,
                'absent': counts.get('absent', 0),
                'late': late,
                'total': counts.get('total', 0),
                'total_students': class_sizes[class_name],
                'percentage': percent(present + late, class_sizes[class_name]),
            })

        monthly_overview = []
        for back in range(5, -1, -1):
            year, month = today.year, today.month - back
            while month <= 0:
                month += 12
                year -= 1
            start = date_cls(year, month, 1)
            end = min(date_cls(year, month, monthrange(year, month)[1]), today)
            counts = _status_counts(qs.filter(date__gte=start, date__lte=end))
            monthly_overview.append({
                'month': start.strftime('%b %Y'),
                'present': counts['present'],
                'absent': counts['absent'],
                'late': counts['late'],
                'total': counts['total'],
            })

        return {
            'weekly_trend': weekly_trend,
            'today_distribution': today_distribution,
            'class_wise': class_wise,
            'monthly_overview': monthly_overview,
        }
