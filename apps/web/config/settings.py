"""
Django settings for Tavola.

Secrets come from the environment - never hardcode credentials.
Run with: uv run python apps/web/manage.py runserver
"""

from pathlib import Path

import environ  # type: ignore[import-untyped]

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent

# Initialize environ
env = environ.Env(
    DEBUG=(bool, False),
    ALLOWED_HOSTS=(list, []),
    CORS_ALLOWED_ORIGIN=(str, "*"),
    DELIVERY_SANDBOX=(bool, False),
    PLATFORM_FEE_PERCENT=(int, 10),
    LEDGER_HOLD_DAYS=(int, 2),
    LOG_LEVEL=(str, "INFO"),
)

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = env("SECRET_KEY")

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = env("DEBUG")

ALLOWED_HOSTS = env("ALLOWED_HOSTS")

# Application definition
INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    # Local apps
    "apps.web.core",
    "apps.web.restaurant",
    "apps.web.payments",
    "apps.web.delivery",
    "apps.web.notifications",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
    # Custom middleware
    "apps.web.core.middleware.OrganizationMiddleware",
]

ROOT_URLCONF = "apps.web.config.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [BASE_DIR / "templates"],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "apps.web.config.wsgi.application"

# Database
# https://docs.djangoproject.com/en/5.1/ref/settings/#databases
DATABASES = {
    "default": env.db("DATABASE_URL"),
}

# Idempotency responses live here
CACHES = {
    "default": env.cache("CACHE_URL", default="locmemcache://"),
}

# Custom user model
AUTH_USER_MODEL = "core.User"

# Password validation
_V = "django.contrib.auth.password_validation"
AUTH_PASSWORD_VALIDATORS = [
    {"NAME": f"{_V}.UserAttributeSimilarityValidator"},
    {"NAME": f"{_V}.MinimumLengthValidator"},
    {"NAME": f"{_V}.CommonPasswordValidator"},
    {"NAME": f"{_V}.NumericPasswordValidator"},
]

# Internationalization
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

# Static files (CSS, JavaScript, Images)
STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR.parent.parent / "staticfiles"  # /app/staticfiles in production

# Default primary key field type
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# Logging
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
        "apps.web": {"handlers": ["console"], "level": env("LOG_LEVEL")},
    },
}

# =============================================================================
# Platform
# =============================================================================

# Public storefront URL, used for tracking and onboarding links
SITE_URL = env("SITE_URL", default="http://localhost:5173")
CORS_ALLOWED_ORIGIN = env("CORS_ALLOWED_ORIGIN")

# Shared secret presented by internal schedulers (X-Service-Role-Key)
SERVICE_ROLE_KEY = env("SERVICE_ROLE_KEY", default="")

PLATFORM_FEE_PERCENT = env("PLATFORM_FEE_PERCENT")
LEDGER_HOLD_DAYS = env("LEDGER_HOLD_DAYS")
DEFAULT_TAX_RATE = env.float("DEFAULT_TAX_RATE", default=0.14975)

# =============================================================================
# Third-party credentials
# =============================================================================

STRIPE_SECRET_KEY = env("STRIPE_SECRET_KEY", default="")
STRIPE_WEBHOOK_SECRET = env("STRIPE_WEBHOOK_SECRET", default="")

RESEND_API_KEY = env("RESEND_API_KEY", default="")
EMAIL_FROM = env("EMAIL_FROM", default="orders@tavola.app")

UBER_DIRECT_CLIENT_ID = env("UBER_DIRECT_CLIENT_ID", default="")
UBER_DIRECT_CLIENT_SECRET = env("UBER_DIRECT_CLIENT_SECRET", default="")
UBER_DIRECT_CUSTOMER_ID = env("UBER_DIRECT_CUSTOMER_ID", default="")
UBER_DIRECT_WEBHOOK_SECRET = env("UBER_DIRECT_WEBHOOK_SECRET", default="")
DELIVERY_SANDBOX = env("DELIVERY_SANDBOX")

# Variables the setup check refuses to run without
REQUIRED_ENV_VARS = [
    "SECRET_KEY",
    "DATABASE_URL",
    "STRIPE_SECRET_KEY",
    "STRIPE_WEBHOOK_SECRET",
    "SITE_URL",
]
