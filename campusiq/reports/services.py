"""
Агрегаты для отчётов: дашборд школы и месячный отчёт посещаемости.
"""
import logging
from calendar import monthrange
from datetime import date as date_cls

from django.db.models import Count, Q
from django.utils import timezone

from accounts.models import User
from attendance.models import Attendance
from attendance.services import AttendanceService, STATUSES, percent
from exams.models import Exam
from fees.models import FeePayment
from fees.services import FeeService
from notifications.models import Notification
from notifications.serializers import NotificationSerializer
from students.models import Student
from visitors.models import Visitor

logger = logging.getLogger(__name__)

LOW_ATTENDANCE_THRESHOLD = 75


class ReportError(Exception):
    """Base exception for report errors."""
    pass


def parse_month_year(month, year, today=None):
    """
    month/year из query-параметров (по умолчанию текущий месяц).

    Raises:
        ReportError: month вне 1..12 или year вне 2000..2100
    """
    today = today or timezone.localdate()
    try:
        month = int(month) if month not in (None, '') else today.month
    except (TypeError, ValueError):
        raise ReportError('Invalid month (1-12)')
    try:
        year = int(year) if year not in (None, '') else today.year
    except (TypeError, ValueError):
        raise ReportError('Invalid year (2000-2100)')
    if not 1 <= month <= 12:
        raise ReportError('Invalid month (1-12)')
    if not 2000 <= year <= 2100:
        raise ReportError('Invalid year (2000-2100)')
    return month, year


def monthly_attendance(school, month, year, class_name=None):
    start = date_cls(year, month, 1)
    end = date_cls(year, month, monthrange(year, month)[1])

    students = Student.objects.filter(school=school, status=Student.Status.ACTIVE)
    records = Attendance.objects.filter(school=school, date__gte=start, date__lte=end)
    if class_name:
        students = students.filter(class_name=class_name)
        records = records.filter(class_name=class_name)

    counts = {
        row['student_id']: row
        for row in records.values('student_id').annotate(
            total=Count('id'),
            **{s: Count('id', filter=Q(status=s)) for s in STATUSES},
        ).order_by()
    }

    rows = []
    for student in students.order_by('class_name', 'roll_number'):
        c = counts.get(student.pk, {})
        total = c.get('total', 0)
        rows.append({
            'student_id': student.pk,
            'student_name': student.name,
            'roll_number': student.roll_number,
            'class_name': student.class_name,
            'total_days': total,
            'present_count': c.get('present', 0),
            'absent_count': c.get('absent', 0),
            'late_count': c.get('late', 0),
            'leave_count': c.get('leave', 0),
            'percentage': percent(c.get('present', 0), total),
        })

    summary = {
        'total_students': len(rows),
        'working_days': records.values('date').distinct().count(),
        'average_attendance': round(sum(r['percentage'] for r in rows) / len(rows)) if rows else 0,
        'total_present': sum(r['present_count'] for r in rows),
        'total_absent': sum(r['absent_count'] for r in rows),
        'total_late': sum(r['late_count'] for r in rows),
        'total_leave': sum(r['leave_count'] for r in rows),
    }
    low_attendance = [
        r for r in rows
        if r['total_days'] > 0 and r['percentage'] < LOW_ATTENDANCE_THRESHOLD
    ]
    return {
        'month': month,
        'year': year,
        'class_name': class_name or 'All Classes',
        'students': rows,
        'summary': summary,
        'low_attendance': low_attendance,
    }


def dashboard(school, user):
    today = timezone.localdate()
    month_start = today.replace(day=1)

    today_stats = AttendanceService.today_summary(school)['stats']

    payments = FeePayment.objects.filter(school=school)
    collected = FeeService.summary(payments.filter(payment_date__date__gte=month_start))['total_collected']
    pending = FeeService.summary(payments)['total_pending']

    upcoming = Exam.objects.filter(
        school=school, status=Exam.Status.SCHEDULED, date__gte=today,
    ).order_by('date', 'start_time')

    activity = (
        Notification.objects
        .filter(school=school)
        .filter(Q(target_role=Notification.Target.ALL) | Q(target_role=user.role))
        .prefetch_related('read_by')
        .order_by('-created_at')[:10]
    )

    return {
        'students': {
            'total': Student.objects.filter(school=school, status=Student.Status.ACTIVE).count(),
        },
        'teachers': {
            'total': User.objects.filter(school=school, role='teacher', is_active=True).count(),
        },
        'attendance_today': {
            'marked': today_stats['marked'],
            'present': today_stats['present'],
            'absent': today_stats['absent'],
            'late': today_stats['late'],
            'rate': today_stats['percentage'],
        },
        'fees': {
            'collected_this_month': collected,
            'pending': pending,
        },
        'exams': {
            'upcoming': upcoming.count(),
            'next': [
                {'id': e.pk, 'name': e.name, 'subject': e.subject, 'class_name': e.class_name,
                 'date': e.date.isoformat()}
                for e in upcoming[:5]
            ],
        },
        'visitors': {
            'on_campus': Visitor.objects.filter(school=school, status=Visitor.Status.CHECKED_IN).count(),
        },
        'recent_activity': NotificationSerializer(activity, many=True, context={'user_id': user.pk}).data,
    }


def fee_receipt(payment):
    school = payment.school
    student = payment.student
    return {
        'school': {
            'name': school.name,
            'address': school.address,
            'phone': school.phone,
            'email': school.email,
            'logo_url': school.logo_url,
        },
        'receipt_number': payment.receipt_number,
        'payment_date': timezone.localtime(payment.payment_date).isoformat(),
        'student': {
            'id': student.pk,
            'name': payment.student_name,
            'class_name': payment.class_name,
            'roll_number': student.roll_number,
            'parent_name': student.parent_name,
        },
        'fee_name': payment.fee_name,
        'amount': str(payment.amount),
        'late_fee': str(payment.late_fee),
        'discount': str(payment.discount),
        'total_paid': str(payment.total_paid),
        'balance_due': str(payment.balance_due),
        'payment_method': payment.get_payment_method_display(),
        'transaction_id': payment.transaction_id,
        'status': payment.status,
        'paid_by': payment.paid_by,
        'collected_by': payment.collected_by.get_full_name() if payment.collected_by_id else '',
        'notes': payment.notes,
    }
