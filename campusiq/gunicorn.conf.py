# Gunicorn configuration file
# Logging to stdout/stderr; systemd / the container runtime captures output.
#
#   gunicorn -c gunicorn.conf.py campusiq.wsgi:application
import multiprocessing
import os

bind = os.environ.get('GUNICORN_BIND', '0.0.0.0:8000')

_default_workers = (2 * multiprocessing.cpu_count()) + 1
workers = int(os.environ.get('GUNICORN_WORKERS', _default_workers))

# SSE (/api/notifications/stream/) держит поток на соединение: нужен gthread
worker_class = os.environ.get('GUNICORN_WORKER_CLASS', 'gthread')
threads = int(os.environ.get('GUNICORN_THREADS', '8'))

# Timeouts: должен быть больше NOTIFICATION_STREAM_MAX_SECONDS
timeout = int(os.environ.get('GUNICORN_TIMEOUT', '360'))
graceful_timeout = 30
keepalive = 5

# Restart workers periodically to mitigate memory leaks
max_requests = 2000
max_requests_jitter = 200

# Logging
loglevel = os.environ.get('GUNICORN_LOG_LEVEL', 'info')
accesslog = '-'
errorlog = '-'
capture_output = True

preload_app = os.environ.get('GUNICORN_PRELOAD', 'True').lower() in ('true', '1', 'yes')


def on_starting(server):
    server.log.info(f"Gunicorn starting: {workers} {worker_class} workers x {threads} threads")


def worker_exit(server, worker):
    server.log.info(f"Worker {worker.pid} exited")
