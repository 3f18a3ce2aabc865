from __future__ import annotations
import os
from celery import Celery
from celery.schedules import crontab

# ensure Django settings are set for Celery
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "billing_project.settings")

# name should match your project package
celery_app = Celery("billing_project")

# read config from Django settings, using CELERY_ prefix
celery_app.config_from_object("django.conf:settings", namespace="CELERY")

# autoload tasks from installed apps
celery_app.autodiscover_tasks()

# Recurring invoices are generated once a day, shortly after midnight
celery_app.conf.beat_schedule = {
    "generate-recurring-invoices": {
        "task": "billing_core.tasks.generate_recurring_invoices",
        "schedule": crontab(hour=0, minute=15),
    },
}
