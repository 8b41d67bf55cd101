"""Celery tasks for school subscriptions."""
import logging

from celery import shared_task
from django.utils import timezone

from notifications.models import Notification
from notifications.services import emit_activity

from .models import School

logger = logging.getLogger(__name__)


@shared_task
def expire_trials():
    """Каждый час: trial с истёкшим trial_ends_at → expired, админам школы - уведомление."""
    now = timezone.now()
    schools = School.objects.filter(
        subscription_status=School.SubscriptionStatus.TRIAL,
        trial_ends_at__lt=now,
    )
    expired = 0
    for school in schools:
        school.subscription_status = School.SubscriptionStatus.EXPIRED
        # save(), не update(): post_save сбрасывает кеш SchoolMiddleware
        school.save(update_fields=['subscription_status', 'updated_at'])
        emit_activity(
            school,
            title='Trial expired',
            message=f'The free trial of {school.name} ended on {timezone.localtime(school.trial_ends_at):%d %b %Y}. '
                    f'Upgrade your plan to continue.',
            module='settings', action_url='/settings',
            type=Notification.Type.ALERT, target_role=Notification.Target.ADMIN,
        )
        expired += 1
    if expired:
        logger.info(f'expire_trials: {expired} school(s) moved to expired')
    return expired
