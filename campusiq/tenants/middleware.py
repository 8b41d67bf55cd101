"""
School Middleware - определяет школу из hostname и кладёт в request.school.

Логика:
  1. greenwood.campusiq.app → School(slug='greenwood')   - субдомен
  2. campusiq.app            → None (платформа, школа берётся из JWT пользователя)
  3. localhost:8000          → X-School-ID header (slug или uuid, только DEV!)

БЕЗОПАСНОСТЬ:
  - Для remote-хостов X-School-ID header ИГНОРИРУЕТСЯ, школа определяется
    только по hostname.
  - JWT-аутентификация DRF происходит позже, во view. Сверку host-школы со
    школой пользователя делает SchoolScopedViewMixin.
"""

import logging
import time
import uuid

from django.conf import settings as django_settings

from .context import set_current_school, clear_current_school

logger = logging.getLogger(__name__)


class SchoolMiddleware:
    """
    Ставить в MIDDLEWARE ПОСЛЕ AuthenticationMiddleware.

    Ставит request.school = School instance (или None).
    """

    # Кэш школ: key → (school, timestamp)
    _school_cache = {}

    # Домены разработки - X-School-ID header принимается ТОЛЬКО отсюда
    DEV_HOSTS = {'localhost', '127.0.0.1', '0.0.0.0', 'testserver'}

    SKIP_PATHS = ('/admin/', '/api/health/')

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        school = self._resolve_school(request)
        request.school = school
        set_current_school(school)
        try:
            response = self.get_response(request)
        finally:
            clear_current_school()
        return response

    @staticmethod
    def _cache_ttl():
        return getattr(django_settings, 'SCHOOL_CACHE_TTL', 300)

    def _resolve_school(self, request):
        if request.path.startswith(self.SKIP_PATHS):
            return None

        host = request.get_host().split(':')[0].lower()
        header_value = request.META.get('HTTP_X_SCHOOL_ID', '').strip()

        if host in self.DEV_HOSTS:
            if header_value:
                return self._cached(f'header:{header_value}', lambda: self._lookup_by_identifier(header_value))
            return None

        if header_value:
            logger.warning(
                'X-School-ID header "%s" ignored for non-local host "%s"',
                header_value, host,
            )

        return self._cached(f'host:{host}', lambda: self._lookup_by_host(host))

    def _cached(self, key, loader):
        cached = self._school_cache.get(key)
        if cached is not None:
            school, ts = cached
            if (time.monotonic() - ts) < self._cache_ttl():
                return school
            del self._school_cache[key]
        school = loader()
        self._school_cache[key] = (school, time.monotonic())
        return school

    def _lookup_by_identifier(self, value):
        """X-School-ID: slug или UUID школы."""
        from .models import School
        qs = School.objects.filter(status=School.Status.ACTIVE)
        try:
            return qs.filter(pk=uuid.UUID(value)).first()
        except ValueError:
            return qs.filter(slug=value.lower()).first()

    def _lookup_by_host(self, host):
        from .models import School

        platform_domains = getattr(django_settings, 'PLATFORM_DOMAINS', [])
        if host in platform_domains:
            return None

        # Субдомен: greenwood.campusiq.app → slug='greenwood'
        for domain in platform_domains:
            suffix = f'.{domain}'
            if host.endswith(suffix):
                slug = host[:-len(suffix)]
                school = School.objects.filter(slug=slug, status=School.Status.ACTIVE).first()
                if school is None:
                    logger.warning(f'School not found for subdomain: {slug}')
                return school

        logger.debug(f'Unknown host {host}, no school resolved')
        return None

    @classmethod
    def clear_cache(cls):
        """Очистить кэш (при изменении School)."""
        cls._school_cache.clear()
