import os
from decimal import Decimal
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent


def env_flag(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes')


SECRET_KEY = os.environ.get('DJANGO_SECRET_KEY') or 'replace-this-with-a-secure-secret-in-production'

DEBUG = env_flag('DJANGO_DEBUG', True)

ALLOWED_HOSTS = [
    'localhost',
    '127.0.0.1',
    'testserver',
]

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'accounts',
    'campaigns',
    'payments',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
    'payments.middleware.DonationErrorMiddleware',
]

ROOT_URLCONF = 'lift_site.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [BASE_DIR / 'templates'],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'lift_site.wsgi.application'

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': BASE_DIR / 'db.sqlite3',
        # On a file, the test database is shared by the threads of the concurrency tests
        'TEST': {'NAME': BASE_DIR / 'test_db.sqlite3'},
    }
}

AUTH_USER_MODEL = 'accounts.User'

AUTH_PASSWORD_VALIDATORS = [
    {'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator', 'OPTIONS': {'min_length': 8}},
]

LANGUAGE_CODE = 'en-us'

TIME_ZONE = 'Africa/Nairobi'

USE_I18N = True

USE_TZ = True

STATIC_URL = '/static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

CSRF_TRUSTED_ORIGINS = [
    'http://localhost:8000',
    'http://127.0.0.1:8000',
]

CSRF_COOKIE_HTTPONLY = True

# === Donations ===
# Amounts are integers in the smallest currency unit.
DONATION_MIN_AMOUNT = 100
DONATION_PLATFORM_FEE_RATE = Decimal('0.05')
# No gateway is wired in yet: donations complete at intake unless this is off,
# in which case they stay pending until the gateway webhook confirms them.
DONATION_SETTLE_IMMEDIATELY = env_flag('DONATION_SETTLE_IMMEDIATELY', True)
DONATION_REFUND_WINDOW_DAYS = 7
# Product decision pending: lifetime donor totals are kept on refund by default.
DONATION_REVERSE_DONOR_TOTALS_ON_REFUND = env_flag('DONATION_REVERSE_DONOR_TOTALS_ON_REFUND', False)
DONATION_LEDGER_MAX_ATTEMPTS = 3

# === Payment gateway webhook ===
PAYMENT_WEBHOOK_SECRET = os.environ.get('PAYMENT_WEBHOOK_SECRET') or 'wh_sandbox_change_me'
# Dev only: skip webhook signature verification (1/true/yes)
PAYMENT_WEBHOOK_DISABLE_VERIFY = env_flag('PAYMENT_WEBHOOK_DISABLE_VERIFY', False)

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'simple': {
            'format': '[{asctime}] {levelname} {name}: {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'simple',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'WARNING',
    },
    'loggers': {
        'accounts': {'handlers': ['console'], 'level': 'INFO', 'propagate': False},
        'campaigns': {'handlers': ['console'], 'level': 'INFO', 'propagate': False},
        'payments': {'handlers': ['console'], 'level': 'INFO', 'propagate': False},
    },
}
