from dotenv import load_dotenv
load_dotenv()

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent.parent


def _env(*names, default=""):
    """Return the first non-empty environment variable among ``names``."""
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return default


SECRET_KEY = _env("DJANGO_SECRET_KEY", default="dev-only-insecure-key")
DEBUG = _env("DJANGO_DEBUG", default="false").lower() in ("1", "true", "yes")
ALLOWED_HOSTS = [h.strip() for h in _env("DJANGO_ALLOWED_HOSTS", default="localhost,127.0.0.1").split(",") if h.strip()]

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "events",
    "payments",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "roboyudh.urls"

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

# sqlite unless DB_ENGINE/DB_NAME point at a managed database
DATABASES = {
    "default": {
        "ENGINE": _env("DB_ENGINE", default="django.db.backends.sqlite3"),
        "NAME": _env("DB_NAME", default=str(BASE_DIR / "db.sqlite3")),
        "USER": _env("DB_USER"),
        "PASSWORD": _env("DB_PASSWORD"),
        "HOST": _env("DB_HOST"),
        "PORT": _env("DB_PORT"),
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

LANGUAGE_CODE = "en-us"
TIME_ZONE = "Asia/Kolkata"
USE_I18N = True
USE_TZ = True

STATIC_URL = "/static/"

# Razorpay credentials. The key secret is server-side only; the key id may
# also be published to the checkout widget under its VITE_ name.
RAZORPAY = {
    "KEY_ID": _env("RAZORPAY_KEY_ID", "VITE_RAZORPAY_KEY_ID"),
    "KEY_SECRET": _env("RAZORPAY_KEY_SECRET"),
    "BASE_URL": _env("RAZORPAY_BASE_URL", default="https://api.razorpay.com/v1"),
    "CURRENCY": _env("RAZORPAY_CURRENCY", default="INR"),
    "TIMEOUT": int(_env("RAZORPAY_TIMEOUT", default="30")),
}

TICKET_CODE_PREFIX = _env("TICKET_CODE_PREFIX", default="RY26")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "verbose"},
    },
    "root": {"handlers": ["console"], "level": "WARNING"},
    "loggers": {
        "payments": {"handlers": ["console"], "level": "INFO", "propagate": False},
        "events": {"handlers": ["console"], "level": "INFO", "propagate": False},
    },
}
