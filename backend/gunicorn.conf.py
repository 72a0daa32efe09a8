import multiprocessing
import os

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "core.settings")
import django  # noqa: E402

django.setup()

from django.conf import settings  # noqa: E402

wsgi_app = "core.wsgi:application"
bind = os.getenv("GUNICORN_BIND", "0.0.0.0:8000")
workers = int(os.getenv("GUNICORN_WORKERS", multiprocessing.cpu_count() * 2 + 1))
# Funding calls run inside the approve request; keep above FUNDING_TIMEOUT_SECONDS
timeout = int(os.getenv("GUNICORN_TIMEOUT", "30"))

errorlog = "-"
accesslog = "-"
loglevel = settings.LOG_LEVEL.lower()
capture_output = True

# Gunicorn applies dictConfig; Django's LOGGING replaces its handlers
logconfig_dict = settings.LOGGING
