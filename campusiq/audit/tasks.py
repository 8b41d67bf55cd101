"""Celery tasks for audit log maintenance."""
import logging
from datetime import timedelta

from celery import shared_task
from django.conf import settings
from django.utils import timezone

from .models import AuditLog

logger = logging.getLogger(__name__)


@shared_task
def purge_old_audit_logs(days=None):
    """Delete audit rows older than the retention window (AUDIT_RETENTION_DAYS)."""
    days = days or getattr(settings, 'AUDIT_RETENTION_DAYS', 365)
    cutoff = timezone.now() - timedelta(days=days)
    deleted, _ = AuditLog.objects.filter(created_at__lt=cutoff).delete()
    logger.info(f'Audit retention: deleted {deleted} rows older than {days} days')
    return {
        'deleted': deleted,
        'cutoff': cutoff.isoformat(),
    }
