# Celery instance is defined in billing_project/celery.py
# It creates celery_app object and points it to Django settings
from .celery import celery_app

# 'from billing_project import *', only exports celery_app
__all__ = ("celery_app",)

""" When you run Celery workers, "celery -A billing_project worker -l info"
    The -A billing_project means:
    Import billing_project/__init__.py →
    which exposes celery_app →  now Celery knows what to run. """
