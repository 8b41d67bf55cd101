"""
Таблица прав ролей: `<module>:<level>`.

Уровни: read < write < manage; delete отдельно.
Администратор школы имеет все права.
"""

ALL = '*'

ROLE_PERMISSIONS = {
    'admin': ALL,
    'teacher': {
        'students': ['read'],
        'teachers': ['read'],
        'attendance': ['read', 'write'],
        'holidays': ['read'],
        'fees': ['read'],
        'exams': ['read', 'write'],
        'visitors': ['read', 'write'],
        'messaging': ['read', 'write'],
        'notifications': ['read'],
        'reports': ['read'],
    },
    'student': {
        'attendance': ['read'],
        'holidays': ['read'],
        'fees': ['read'],
        'exams': ['read'],
        'messaging': ['read', 'write'],
        'notifications': ['read'],
    },
    'parent': {
        'students': ['read'],
        'attendance': ['read'],
        'holidays': ['read'],
        'fees': ['read'],
        'exams': ['read'],
        'messaging': ['read', 'write'],
        'notifications': ['read'],
    },
}


def get_permissions(role):
    """Список строк `module:level` для роли (для /api/auth/me/)."""
    table = ROLE_PERMISSIONS.get(role)
    if table == ALL:
        return [ALL]
    return sorted(f'{module}:{level}' for module, levels in (table or {}).items() for level in levels)


def has_permission(user, module, level):
    """Проверка права пользователя на module:level с учётом allowed_modules."""
    if not user or not user.is_authenticated or not user.is_active:
        return False
    if user.is_superuser:
        return True

    allowed = user.allowed_modules or []
    if allowed and module not in allowed:
        return False

    table = ROLE_PERMISSIONS.get(user.role)
    if table == ALL:
        return True
    return level in (table or {}).get(module, [])
