"""
Audit helpers.

    audit_request(request, 'update', 'student', student.pk, changes=build_changes(old, new, FIELDS))

audit() и audit_request() никогда не бросают исключений: ошибка записи
логируется, основной запрос продолжает работу.
"""
import datetime
import decimal
import logging
import uuid

from django.db import models, transaction

from .models import AuditLog

logger = logging.getLogger(__name__)


def _jsonable(value):
    if isinstance(value, decimal.Decimal):
        return str(value)
    if isinstance(value, (datetime.date, datetime.datetime, datetime.time)):
        return value.isoformat()
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, models.Model):
        return value.pk if not isinstance(value.pk, uuid.UUID) else str(value.pk)
    return value


def _read(source, field):
    if isinstance(source, dict):
        return source.get(field)
    return getattr(source, field, None)


def build_changes(old, new, fields):
    """
    Diff двух состояний (dict или объект) по списку полей.

    Returns:
        {field: {'old': ..., 'new': ...}} или None если ничего не изменилось
    """
    changes = {}
    for field in fields:
        before = _jsonable(_read(old, field))
        after = _jsonable(_read(new, field))
        if before != after:
            changes[field] = {'old': before, 'new': after}
    return changes or None


def audit(*, school, action, entity, entity_id='', user=None, changes=None,
          metadata=None, ip_address=None, user_agent=''):
    """Записать строку аудита. Возвращает AuditLog или None."""
    if school is None:
        logger.debug(f'Audit skipped (no school): {action} {entity} {entity_id}')
        return None
    try:
        with transaction.atomic():
            return AuditLog.objects.create(
                school=school,
                action=action,
                entity=entity,
                entity_id=str(entity_id or ''),
                user=user if user is not None and user.pk else None,
                user_name=(user.get_full_name() if user is not None and user.pk else '')[:150],
                user_role=getattr(user, 'role', '') or '',
                changes=changes,
                metadata=metadata or {},
                ip_address=ip_address,
                user_agent=(user_agent or '')[:500],
            )
    except Exception as e:
        logger.error(f'Audit log failed for {action} {entity} {entity_id}: {e}')
        return None


def get_client_ip(request):
    forwarded = request.META.get('HTTP_X_FORWARDED_FOR', '')
    if forwarded:
        return forwarded.split(',')[0].strip() or None
    return request.META.get('REMOTE_ADDR') or None


def audit_request(request, action, entity, entity_id='', changes=None, metadata=None, school=None, user=None):
    """audit() с пользователем, IP и User-Agent из запроса."""
    try:
        user = user or (request.user if request.user.is_authenticated else None)
        school = school or getattr(request, 'school', None) or getattr(user, 'school', None)
        ip_address = get_client_ip(request)
        user_agent = request.META.get('HTTP_USER_AGENT', '')
    except Exception as e:
        logger.error(f'Audit context extraction failed for {action} {entity}: {e}')
        return None
    return audit(
        school=school, action=action, entity=entity, entity_id=entity_id,
        user=user, changes=changes, metadata=metadata,
        ip_address=ip_address, user_agent=user_agent,
    )
