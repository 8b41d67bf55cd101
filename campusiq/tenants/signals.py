"""
School signals - инвалидация кеша middleware и лимиты ресурсов для новых школ.

Подключается через TenantsConfig.ready() в apps.py.
"""
import logging

from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver

logger = logging.getLogger(__name__)


@receiver(post_save, sender='tenants.School')
def school_post_save(sender, instance, created, **kwargs):
    """Сбросить кеш middleware; новой школе создать лимиты по плану."""
    from .middleware import SchoolMiddleware
    from .models import SchoolResourceLimits

    SchoolMiddleware.clear_cache()
    if created:
        limits = SchoolResourceLimits(school=instance)
        limits.apply_plan(instance.plan)
        limits.save()
        logger.info('School created: %s (slug=%s, plan=%s)', instance.name, instance.slug, instance.plan)


@receiver(post_delete, sender='tenants.School')
def school_post_delete(sender, instance, **kwargs):
    from .middleware import SchoolMiddleware
    SchoolMiddleware.clear_cache()
    logger.info('School cache cleared after delete: %s (slug=%s)', instance.name, instance.slug)
