"""Celery tasks: ежедневный отчёт о посещаемости для администраторов школ."""
import logging

from celery import shared_task
from django.utils import timezone

from notifications.models import Notification
from notifications.services import emit_activity
from tenants.models import School

from .models import Holiday
from .services import AttendanceService

logger = logging.getLogger(__name__)


def report_message(stats):
    return (
        f"Total: {stats['total']} | Present: {stats['present']} | Absent: {stats['absent']} | "
        f"Late: {stats['late']} | Leave: {stats['leave']} | Unmarked: {stats['unmarked']} | "
        f"Rate: {stats['percentage']}%"
    )


@shared_task
def daily_attendance_report(day=None):
    """
    Вечером: сводка посещаемости за день каждой активной школе (уведомление админам).
    Школы без активных учеников и праздничные дни пропускаются.
    """
    day = day or timezone.localdate()
    sent = 0
    for school in School.objects.filter(status=School.Status.ACTIVE):
        if Holiday.objects.filter(school=school, date=day).exists():
            continue
        stats = AttendanceService.today_summary(school, day=day)['stats']
        if not stats['total']:
            continue
        emit_activity(
            school,
            title=f'Daily Attendance Report - {day.isoformat()}',
            message=report_message(stats),
            module='attendance', action_url='/attendance',
            type=Notification.Type.INFO, target_role=Notification.Target.ADMIN,
        )
        sent += 1
    logger.info(f'daily_attendance_report: {sent} school(s) for {day}')
    return sent
