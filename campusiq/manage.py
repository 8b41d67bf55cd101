#!/usr/bin/env python
"""Django's command-line utility for administrative tasks."""
import os
import sys
from pathlib import Path

# Apps live next to manage.py; keep site-packages ahead so campusiq/celery.py never shadows celery
PROJECT_ROOT = Path(__file__).resolve().parent
sys.path = [p for p in sys.path if p != str(PROJECT_ROOT)]
sys.path.append(str(PROJECT_ROOT))


def main():
    """Run administrative tasks."""
    os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'campusiq.settings')
    try:
        from django.core.management import execute_from_command_line
    except ImportError as exc:
        raise ImportError(
            "Couldn't import Django. Are you sure it's installed and "
            "available on your PYTHONPATH environment variable? Did you "
            "forget to activate a virtual environment?"
        ) from exc
    execute_from_command_line(sys.argv)


if __name__ == '__main__':
    main()
