"""
Login lockout: после LOGIN_MAX_ATTEMPTS неудачных попыток подряд аккаунт
блокируется на LOGIN_LOCKOUT_MINUTES. Успешный вход сбрасывает счётчик.
Состояние хранится на пользователе (переживает рестарт и общий для воркеров);
для несуществующих email - в кэше, с теми же сообщениями.
"""
import math
from datetime import timedelta

from django.conf import settings
from django.core.cache import cache
from django.utils import timezone


def max_attempts():
    return getattr(settings, 'LOGIN_MAX_ATTEMPTS', 5)


def lockout_minutes():
    return getattr(settings, 'LOGIN_LOCKOUT_MINUTES', 15)


def lockout_remaining_minutes(user) -> int:
    if not user.is_locked:
        return 0
    return max(1, math.ceil((user.locked_until - timezone.now()).total_seconds() / 60))


def register_failure(user) -> int:
    """Увеличить счётчик неудач. Возвращает число оставшихся попыток (0 = заблокирован)."""
    if user.locked_until is not None and not user.is_locked:
        # Блокировка истекла - считаем заново
        user.failed_login_attempts = 0
        user.locked_until = None
    user.failed_login_attempts += 1
    if user.failed_login_attempts >= max_attempts():
        user.locked_until = timezone.now() + timedelta(minutes=lockout_minutes())
    user.save(update_fields=['failed_login_attempts', 'locked_until'])
    return max(0, max_attempts() - user.failed_login_attempts)


def reset_failures(user) -> None:
    user.failed_login_attempts = 0
    user.locked_until = None
    user.last_login_at = timezone.now()
    user.last_login = user.last_login_at
    user.save(update_fields=['failed_login_attempts', 'locked_until', 'last_login_at', 'last_login'])


def is_locked_message(user):
    """Текст ошибки для заблокированного аккаунта или '' если не заблокирован."""
    minutes = lockout_remaining_minutes(user)
    if not minutes:
        return ''
    return f'Account locked. Try again in {minutes} minute(s)'


# Несуществующие email: тот же обратный отсчёт и блокировка, но в кэше,
# чтобы ответ не выдавал, зарегистрирован ли адрес.
UNKNOWN_FAIL_PREFIX = 'login_fail:'


def _unknown_fail_key(email: str) -> str:
    return f'{UNKNOWN_FAIL_PREFIX}{email.lower()}'


def register_unknown_failure(email: str) -> int:
    """Счётчик неудач для email без аккаунта. Возвращает число оставшихся попыток."""
    key = _unknown_fail_key(email)
    fails = cache.get(key, 0) + 1
    cache.set(key, fails, lockout_minutes() * 60)
    return max(0, max_attempts() - fails)


def unknown_locked_message(email: str) -> str:
    if cache.get(_unknown_fail_key(email), 0) < max_attempts():
        return ''
    return f'Account locked. Try again in {lockout_minutes()} minute(s)'
