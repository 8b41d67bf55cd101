"""
School context - хранение текущей школы.
Используется middleware и SchoolScopedViewMixin для установки,
сервисами (audit, notifications) для чтения вне request.

Использует contextvars (async-safe) вместо threading.local.
"""
import contextvars

_current_school: contextvars.ContextVar = contextvars.ContextVar(
    'current_school', default=None
)


def set_current_school(school):
    """Установить текущую школу в context."""
    _current_school.set(school)


def get_current_school():
    """Получить текущую школу из context. Возвращает None если не установлена."""
    return _current_school.get()


def clear_current_school():
    """Очистить текущую школу из context."""
    _current_school.set(None)
