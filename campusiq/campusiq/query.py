"""Разбор query-параметров: некорректное значение - 400, а не 500."""
from django.utils.dateparse import parse_date
from rest_framework.exceptions import ValidationError


def query_date(params, name, required=False):
    """YYYY-MM-DD из query string; пустое значение - None."""
    value = params.get(name) or ''
    if not value:
        if required:
            raise ValidationError({name: f'{name} is required'})
        return None
    try:
        day = parse_date(value)
    except ValueError:
        day = None
    if day is None:
        raise ValidationError({name: 'Expected date in YYYY-MM-DD format.'})
    return day
