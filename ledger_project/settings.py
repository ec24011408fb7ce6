import os
from pathlib import Path

import dj_database_url
from celery.schedules import crontab

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.environ.get("SECRET_KEY", "changeme")
DEBUG = os.getenv("DEBUG", "True") == "True"
ALLOWED_HOSTS = os.getenv("ALLOWED_HOSTS", "127.0.0.1,localhost,testserver").split(",")

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "rest_framework",
    "django_filters",
    "drf_spectacular",
    "safedelete",
    "simple_history",
    "ledger_core.apps.LedgerCoreConfig",
    "company.apps.CompanyConfig",
    "general_ledger.apps.GeneralLedgerConfig",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "company.middleware.CompanyMiddleware",
    "simple_history.middleware.HistoryRequestMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "ledger_project.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    }
]

WSGI_APPLICATION = "ledger_project.wsgi.application"

# =============================================================================
# Database Configuration
# =============================================================================
DATABASES = {
    "default": dj_database_url.config(
        env="DATABASE_URL",
        default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}",
        conn_max_age=600,
    )
}

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# Tenant resolution by subdomain, e.g. acme.<BASE_DOMAIN>
BASE_DOMAIN = os.getenv("BASE_DOMAIN") or None

# =============================================================================
# REST Framework / OpenAPI
# =============================================================================
REST_FRAMEWORK = {
    "EXCEPTION_HANDLER": "ledger_core.exception_handler.ledger_exception_handler",
    "DEFAULT_PAGINATION_CLASS": "ledger_core.pagination.StandardResultsSetPagination",
    "PAGE_SIZE": 25,
    "DEFAULT_AUTHENTICATION_CLASSES": (
        "rest_framework.authentication.SessionAuthentication",
        "rest_framework.authentication.BasicAuthentication",
    ),
    "DEFAULT_PERMISSION_CLASSES": (
        "rest_framework.permissions.IsAuthenticated",
    ),
    "DEFAULT_FILTER_BACKENDS": ("django_filters.rest_framework.DjangoFilterBackend",),
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
}

SPECTACULAR_SETTINGS = {
    "TITLE": "General Ledger API",
    "DESCRIPTION": "Chart of accounts, journals, posting, account ledger and trial balance per company.",
    "VERSION": "1.0.0",
    "SERVE_INCLUDE_SCHEMA": False,
}

# =============================================================================
# Ledger
# =============================================================================
SAFE_DELETE_FIELD_NAME = "deleted_at"
GL_POSTING_TOLERANCE = os.getenv("GL_POSTING_TOLERANCE", "0.0001")
GL_TRIAL_BALANCE_TOLERANCE = os.getenv("GL_TRIAL_BALANCE_TOLERANCE", "0.01")
GL_ORPHAN_GRACE_SECONDS = int(os.getenv("GL_ORPHAN_GRACE_SECONDS", "600"))

# =============================================================================
# Celery Configuration
# =============================================================================
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://127.0.0.1:6379/0")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", CELERY_BROKER_URL)
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_ALWAYS_EAGER = os.getenv("CELERY_TASK_ALWAYS_EAGER", "False") == "True"
CELERY_BEAT_SCHEDULE = {
    "reconcile-orphan-journal-entries": {
        "task": "general_ledger.tasks.reconcile_orphan_journal_entries",
        "schedule": crontab(minute="*/15"),
    },
}

# =============================================================================
# Logging
# =============================================================================
GL_LOG_LEVEL = os.getenv("GL_LOG_LEVEL", "INFO").upper()

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{asctime} {levelname} {name} {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "root": {"handlers": ["console"], "level": "WARNING"},
    "loggers": {
        "django": {"handlers": ["console"], "level": "INFO", "propagate": False},
        "general_ledger": {"handlers": ["console"], "level": GL_LOG_LEVEL, "propagate": False},
        "company": {"handlers": ["console"], "level": GL_LOG_LEVEL, "propagate": False},
        "ledger_core": {"handlers": ["console"], "level": GL_LOG_LEVEL, "propagate": False},
    },
}
