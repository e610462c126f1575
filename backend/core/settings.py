"""
Django settings for the matching service.
"""

from pathlib import Path
import os

# --------------------------------------------------------------------------------------
# Paths
# --------------------------------------------------------------------------------------
BASE_DIR = Path(__file__).resolve().parent.parent

# --------------------------------------------------------------------------------------
# Security / Debug
# --------------------------------------------------------------------------------------
SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "django-insecure-matching-service-dev-key")
DEBUG = os.getenv("DJANGO_DEBUG", "true").lower() in ("1", "true", "yes")

ALLOWED_HOSTS = [h for h in os.getenv("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",") if h]

# Frontend origin (Vite dev server by default)
FRONTEND_ADDRESS = os.getenv("FRONTEND_ADDRESS", "http://localhost:5173")
CSRF_TRUSTED_ORIGINS = [FRONTEND_ADDRESS]

# --------------------------------------------------------------------------------------
# Applications
# --------------------------------------------------------------------------------------
INSTALLED_APPS = [
    # Django
    "django.contrib.contenttypes",
    "django.contrib.auth",
    "django.contrib.staticfiles",

    # Third-party
    "rest_framework",
    "corsheaders",

    # Local apps
    "matching.apps.MatchingConfig",
]

# --------------------------------------------------------------------------------------
# Middleware
# NOTE: CORS middleware must be placed as high as possible, before CommonMiddleware.
# --------------------------------------------------------------------------------------
MIDDLEWARE = [
    "corsheaders.middleware.CorsMiddleware",
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

# --------------------------------------------------------------------------------------
# URLs / Templates
# --------------------------------------------------------------------------------------
ROOT_URLCONF = "core.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
            ],
        },
    },
]

WSGI_APPLICATION = "core.wsgi.application"

# --------------------------------------------------------------------------------------
# Database
# Matching state is in-memory only; a restart drops every in-flight session.
# --------------------------------------------------------------------------------------
DATABASES = {}

# --------------------------------------------------------------------------------------
# REST framework
# Authentication happens upstream (user service); requests carry a userToken.
# --------------------------------------------------------------------------------------
REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [],
    "DEFAULT_PERMISSION_CLASSES": (
        "rest_framework.permissions.AllowAny",
    ),
    "DEFAULT_RENDERER_CLASSES": (
        "rest_framework.renderers.JSONRenderer",
    ),
    "DEFAULT_PARSER_CLASSES": (
        "rest_framework.parsers.JSONParser",
    ),
    "UNAUTHENTICATED_USER": None,
    "EXCEPTION_HANDLER": "matching.exceptions.custom_exception_handler",
}

# --------------------------------------------------------------------------------------
# Matching
# --------------------------------------------------------------------------------------
# Seconds both matched users have to confirm before the pair is dismissed.
MATCHING_CONFIRMATION_TIMEOUT_SECONDS = int(os.getenv("MATCHING_CONFIRMATION_TIMEOUT_SECONDS", "30"))
# Seconds after that deadline before an unread confirmation record is dropped.
MATCHING_ABANDONED_AFTER_SECONDS = int(os.getenv("MATCHING_ABANDONED_AFTER_SECONDS", "300"))

# --------------------------------------------------------------------------------------
# CORS
# --------------------------------------------------------------------------------------
CORS_ALLOWED_ORIGINS = [FRONTEND_ADDRESS]
CORS_ALLOW_CREDENTIALS = True

# --------------------------------------------------------------------------------------
# Logging
# --------------------------------------------------------------------------------------
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "simple"},
    },
    "loggers": {
        "matching": {
            "handlers": ["console"],
            "level": os.getenv("MATCHING_LOG_LEVEL", "INFO"),
        },
    },
}

# --------------------------------------------------------------------------------------
# I18N / TZ
# --------------------------------------------------------------------------------------
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

# --------------------------------------------------------------------------------------
# Static files
# --------------------------------------------------------------------------------------
STATIC_URL = "static/"

# --------------------------------------------------------------------------------------
# Defaults
# --------------------------------------------------------------------------------------
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"
