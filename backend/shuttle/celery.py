import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "shuttle.settings.base")
app = Celery("shuttle")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()
