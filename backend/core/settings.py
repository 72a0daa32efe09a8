"""
Django settings for the accountability payment request service.

Values come from the environment; a backend/.env file is loaded when present.
"""

import os
from datetime import timedelta
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent

load_dotenv(BASE_DIR / ".env")


def _env_flag(name, default="0"):
    """Normalize boolean-ish environment flags (1/true/on/y/yes)."""
    value = os.getenv(name, default)
    return str(value).strip().lower() in {"1", "true", "yes", "on", "y"}


SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "dev-insecure-secret")
if SECRET_KEY == "dev-insecure-secret" and os.getenv("ENVIRONMENT") == "production":
    raise ValueError("DJANGO_SECRET_KEY must be set in production")

DEBUG = _env_flag("DJANGO_DEBUG")
ALLOWED_HOSTS = os.getenv("DJANGO_ALLOWED_HOSTS", "*").split(",")

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "rest_framework",
    "rest_framework_simplejwt.token_blacklist",
    "apps.users",
    "apps.partners",
    "apps.payments",
    "apps.notifications",
    "apps.audit",
]

MIDDLEWARE = [
    "core.middleware.RequestIDMiddleware",
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
    "core.middleware.IdempotencyKeyMiddleware",
]

ROOT_URLCONF = "core.urls"

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

WSGI_APPLICATION = "core.wsgi.application"

if os.getenv("POSTGRES_DB"):
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": os.getenv("POSTGRES_DB"),
            "USER": os.getenv("POSTGRES_USER", "accountabills"),
            "PASSWORD": os.getenv("POSTGRES_PASSWORD", ""),
            "HOST": os.getenv("POSTGRES_HOST", "localhost"),
            "PORT": os.getenv("POSTGRES_PORT", "5432"),
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "db.sqlite3",
            # SQLite ignores select_for_update; writers serialize on BEGIN IMMEDIATE.
            "OPTIONS": {
                "transaction_mode": "IMMEDIATE",
                "timeout": int(os.getenv("SQLITE_TIMEOUT_SECONDS", "20")),
            },
            # File-backed so threaded tests share one database.
            "TEST": {"NAME": BASE_DIR / "test_db.sqlite3"},
        }
    }

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "accountabills",
    }
}
if os.getenv("REDIS_URL"):
    CACHES["default"] = {
        "BACKEND": "django.core.cache.backends.redis.RedisCache",
        "LOCATION": os.getenv("REDIS_URL"),
    }

AUTH_USER_MODEL = "users.User"

LANGUAGE_CODE = "en-us"
TIME_ZONE = os.getenv("DJANGO_TIME_ZONE", "UTC")
USE_I18N = True
USE_TZ = True

STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "static"

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": (
        "rest_framework_simplejwt.authentication.JWTAuthentication",
    ),
    "DEFAULT_PERMISSION_CLASSES": ("rest_framework.permissions.IsAuthenticated",),
    "EXCEPTION_HANDLER": "core.exceptions.domain_exception_handler",
    "DEFAULT_THROTTLE_CLASSES": ("core.throttling.MutationUserThrottle",),
    "DEFAULT_THROTTLE_RATES": {
        "mutation_user": os.getenv("THROTTLE_MUTATION_RATE", "120/min"),
        "decision": os.getenv("THROTTLE_DECISION_RATE", "60/min"),
    },
}

SIMPLE_JWT = {
    "ACCESS_TOKEN_LIFETIME": timedelta(minutes=int(os.getenv("JWT_ACCESS_MIN", "60"))),
    "REFRESH_TOKEN_LIFETIME": timedelta(days=int(os.getenv("JWT_REFRESH_DAYS", "7"))),
    "SIGNING_KEY": os.getenv("JWT_SECRET", SECRET_KEY),
    "AUTH_HEADER_TYPES": ("Bearer",),
}

# Funding provider (Marqeta-compatible GPA orders)
FUNDING_GATEWAY = {
    "BACKEND": os.getenv(
        "FUNDING_GATEWAY_BACKEND", "apps.payments.funding.MarqetaFundingGateway"
    ),
    "OPTIONS": {
        "base_url": os.getenv(
            "MARQETA_BASE_URL", "https://sandbox-api.marqeta.com/v3"
        ),
        "application_token": os.getenv("MARQETA_APPLICATION_TOKEN", ""),
        "admin_access_token": os.getenv("MARQETA_ADMIN_ACCESS_TOKEN", ""),
        "funding_source_token": os.getenv(
            "MARQETA_FUNDING_SOURCE_TOKEN", "sandbox_program_funding"
        ),
        "timeout": float(os.getenv("FUNDING_TIMEOUT_SECONDS", "10")),
    },
}

# Read-through cache for GET paths; 0 disables caching.
PAYMENT_REQUEST_CACHE_TIMEOUT = int(os.getenv("PAYMENT_REQUEST_CACHE_TIMEOUT", "30"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "filters": {
        "request_id": {"()": "core.middleware.RequestIDFilter"},
    },
    "formatters": {
        "structured": {
            "format": (
                "%(asctime)s %(levelname)s %(name)s "
                "request_id=%(request_id)s %(message)s"
            ),
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "filters": ["request_id"],
            "formatter": "structured",
        },
    },
    "root": {"handlers": ["console"], "level": LOG_LEVEL},
    "loggers": {
        "django": {"handlers": ["console"], "level": "WARNING", "propagate": False},
        "apps": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
    },
}
