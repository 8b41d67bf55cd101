"""
ASGI config for campusiq project.

It exposes the ASGI callable as a module-level variable named ``application``.
The notification stream (SSE) is served as a streaming response, so running
under an ASGI server keeps long-lived connections off the worker threads.

For more information on this file, see
https://docs.djangoproject.com/en/4.2/howto/deployment/asgi/
"""

import os

from django.core.asgi import get_asgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'campusiq.settings')

application = get_asgi_application()
