"""
Django settings for billing_project.

Values come from the environment so the same module serves local runs,
the Celery worker and the test suite.
"""
import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "dev-secret-change-me")
DEBUG = os.environ.get("DJANGO_DEBUG", "false").lower() == "true"
ALLOWED_HOSTS = [
    h.strip()
    for h in os.environ.get("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",")
    if h.strip()
]

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "billing_core.apps.BillingCoreConfig",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "billing_core.middleware.CurrentCompanyMiddleware",
]

ROOT_URLCONF = "billing_project.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.environ.get("BILLING_DB_PATH", str(BASE_DIR / "billing.sqlite3")),
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

LANGUAGE_CODE = "en-us"
TIME_ZONE = os.environ.get("DJANGO_TIME_ZONE", "UTC")
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"

# ---------- Celery ----------
CELERY_BROKER_URL = os.environ.get("CELERY_BROKER_URL", "redis://localhost:6379/0")
CELERY_RESULT_BACKEND = os.environ.get("CELERY_RESULT_BACKEND", CELERY_BROKER_URL)
CELERY_TASK_ALWAYS_EAGER = os.environ.get("CELERY_TASK_ALWAYS_EAGER", "false").lower() == "true"
CELERY_TIMEZONE = TIME_ZONE

# ---------- Billing engine ----------
# Base URL of the backend-of-record used by billing_core.remote
BILLING_API_BASE_URL = os.environ.get("BILLING_API_BASE_URL", "http://localhost:8000/api/v1")
# Frontend URL that share links point at
BILLING_SHARE_URL_BASE = os.environ.get("BILLING_SHARE_URL_BASE", "http://localhost:5173")
# Seconds a verified share-link view stays valid
BILLING_SHARE_GRANT_MAX_AGE = int(os.environ.get("BILLING_SHARE_GRANT_MAX_AGE", "1800"))
# Status a converted quotation's invoice starts in ("draft" or "sent")
BILLING_CONVERTED_INVOICE_STATUS = os.environ.get("BILLING_CONVERTED_INVOICE_STATUS", "draft")
BILLING_LOG_LEVEL = os.environ.get("BILLING_LOG_LEVEL", "INFO")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{asctime} | {levelname:<8} | {name}:{funcName}:{lineno} | {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "verbose"},
    },
    "loggers": {
        "billing_core": {
            "handlers": ["console"],
            "level": BILLING_LOG_LEVEL,
            "propagate": False,
        },
    },
}
