"""
Visitor log: регистрация, бейджи и переходы статусов.
"""
import logging
import secrets

from django.db import transaction
from django.utils import timezone

from .models import Visitor

logger = logging.getLogger(__name__)


class VisitorError(Exception):
    """Base exception for visitor log errors."""
    pass


class InvalidTransitionError(VisitorError):
    pass


# action → (допустимые исходные статусы, новый статус)
TRANSITIONS = {
    'check_in': ({Visitor.Status.PRE_REGISTERED}, Visitor.Status.CHECKED_IN),
    'check_out': ({Visitor.Status.CHECKED_IN}, Visitor.Status.CHECKED_OUT),
    'cancel': ({Visitor.Status.PRE_REGISTERED, Visitor.Status.CHECKED_IN}, Visitor.Status.CANCELLED),
}

TRANSITION_ERRORS = {
    ('check_in', Visitor.Status.CHECKED_IN): 'Visitor is already checked in',
    ('check_in', Visitor.Status.CHECKED_OUT): 'Visitor has already checked out',
    ('check_in', Visitor.Status.CANCELLED): 'Cannot check in a cancelled visitor',
    ('check_out', Visitor.Status.PRE_REGISTERED): 'Visitor has not checked in yet',
    ('check_out', Visitor.Status.CHECKED_OUT): 'Visitor has already checked out',
    ('check_out', Visitor.Status.CANCELLED): 'Cannot check out a cancelled visitor',
    ('cancel', Visitor.Status.CHECKED_OUT): 'Cannot cancel a visitor who has checked out',
    ('cancel', Visitor.Status.CANCELLED): 'Visitor is already cancelled',
}


def generate_badge_number(school):
    """B + 4 цифры, уникальный среди посетителей, которые сейчас на территории."""
    active = set(
        Visitor.objects.filter(
            school=school,
            status__in=[Visitor.Status.PRE_REGISTERED, Visitor.Status.CHECKED_IN],
        ).values_list('badge_number', flat=True)
    )
    for _ in range(20):
        badge = f'B{secrets.randbelow(10000):04d}'
        if badge not in active:
            return badge
    logger.warning(f'Badge pool exhausted for school {school.slug}, reusing number')
    return badge


class VisitorService:

    @staticmethod
    @transaction.atomic
    def register(school, data, registered_by, pre_register=False):
        now = timezone.now()
        visitor = Visitor.objects.create(
            school=school,
            badge_number=generate_badge_number(school),
            status=Visitor.Status.PRE_REGISTERED if pre_register else Visitor.Status.CHECKED_IN,
            check_in=None if pre_register else now,
            registered_by=registered_by,
            **data,
        )
        logger.info(f'Visitor {visitor.pk} registered: {visitor.status}, badge={visitor.badge_number}')
        return visitor

    @staticmethod
    @transaction.atomic
    def transition(visitor, action):
        """
        Перевести посетителя в новый статус.

        Raises:
            InvalidTransitionError: переход недопустим из текущего статуса
        """
        visitor = Visitor.objects.select_for_update().get(pk=visitor.pk)
        allowed, new_status = TRANSITIONS[action]
        if visitor.status not in allowed:
            raise InvalidTransitionError(
                TRANSITION_ERRORS.get((action, visitor.status), f'Cannot {action} visitor in status {visitor.status}')
            )

        visitor.status = new_status
        fields = ['status', 'updated_at']
        if action == 'check_in':
            visitor.check_in = timezone.now()
            fields.append('check_in')
        elif action == 'check_out':
            visitor.check_out = timezone.now()
            fields.append('check_out')
        visitor.save(update_fields=fields)
        return visitor

    @staticmethod
    def today_stats(school):
        today = timezone.localdate()
        qs = Visitor.objects.filter(school=school)
        todays = qs.filter(created_at__date=today)
        return {
            'total_today': todays.count(),
            'checked_in': qs.filter(status=Visitor.Status.CHECKED_IN).count(),
            'checked_out': todays.filter(status=Visitor.Status.CHECKED_OUT).count(),
            'pre_registered': qs.filter(status=Visitor.Status.PRE_REGISTERED).count(),
        }
