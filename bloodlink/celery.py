import os

from celery import Celery
from dotenv import load_dotenv

load_dotenv(override=False)

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "bloodlink.settings")

app = Celery("bloodlink")

# CELERY_* keys in settings.py map onto Celery's lowercase options
app.config_from_object("django.conf:settings", namespace="CELERY")

# Picks up blood/tasks.py and any other app-level tasks module
app.autodiscover_tasks()
