"""Celery application instance for CampusIQ."""
import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "campusiq.settings")

app = Celery("campusiq")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()
