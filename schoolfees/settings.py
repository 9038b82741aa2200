# schoolfees/settings.py

"""
Django settings for the schoolfees project.

Deployment values come from the environment:
- DJANGO_SECRET_KEY, DJANGO_DEBUG, DJANGO_ALLOWED_HOSTS
- SCHOOLFEES_DB_NAME / _USER / _PASSWORD / _HOST / _PORT (PostgreSQL when set, SQLite otherwise)
- SCHOOLFEES_TIME_ZONE, SCHOOLFEES_LOG_LEVEL
"""

from pathlib import Path
from decimal import Decimal
import os
import sys

BASE_DIR = Path(__file__).resolve().parent.parent

# Apps are imported by their short names (fees, students, ...)
sys.path.insert(0, str(BASE_DIR / 'apps'))

SECRET_KEY = os.environ.get('DJANGO_SECRET_KEY', 'django-insecure-schoolfees-development-key')

DEBUG = os.environ.get('DJANGO_DEBUG', 'false').lower() in ('1', 'true', 'yes')

ALLOWED_HOSTS = [h for h in os.environ.get('DJANGO_ALLOWED_HOSTS', 'localhost,127.0.0.1').split(',') if h]


# =============================================================================
# APPLICATIONS
# =============================================================================

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',

    # Third party
    'django_countries',

    # Local apps
    'utils',
    'accounts',
    'core',
    'students',
    'fees',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
    'utils.middleware.AuditContextMiddleware',
]

ROOT_URLCONF = 'schoolfees.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'schoolfees.wsgi.application'


# =============================================================================
# DATABASE
# =============================================================================

if os.environ.get('SCHOOLFEES_DB_NAME'):
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.postgresql',
            'NAME': os.environ['SCHOOLFEES_DB_NAME'],
            'USER': os.environ.get('SCHOOLFEES_DB_USER', ''),
            'PASSWORD': os.environ.get('SCHOOLFEES_DB_PASSWORD', ''),
            'HOST': os.environ.get('SCHOOLFEES_DB_HOST', 'localhost'),
            'PORT': os.environ.get('SCHOOLFEES_DB_PORT', '5432'),
            'ATOMIC_REQUESTS': False,
        }
    }
else:
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': BASE_DIR / 'db.sqlite3',
        }
    }

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'


# =============================================================================
# INTERNATIONALIZATION
# =============================================================================

LANGUAGE_CODE = 'en-us'
TIME_ZONE = os.environ.get('SCHOOLFEES_TIME_ZONE', 'Asia/Kolkata')
USE_I18N = True
USE_TZ = True

STATIC_URL = 'static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'

LOGIN_URL = '/admin/login/'


# =============================================================================
# FEE POLICY DEFAULTS (per-school values live in core.FinancialSettings)
# =============================================================================

SCHOOL_FEES = {
    'ACADEMIC_YEAR_START_MONTH': 4,
    'DEFAULT_DUE_DAY': 10,
    'DEFAULTER_GRACE_PERIOD_DAYS': 7,
    'LATE_FEE_PERCENTAGE': Decimal('0.00'),
    'RECENT_TRANSACTIONS_LIMIT': 10,
    'REMINDER_INTERVAL_DAYS': 7,
    'CURRENCY': 'INR',
    'TRANSACTION_PREFIX': 'TXN',
}


# =============================================================================
# LOGGING
# =============================================================================

LOG_LEVEL = os.environ.get('SCHOOLFEES_LOG_LEVEL', 'INFO')

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{asctime} {levelname} {name} {message}',
            'style': '{',
        },
        'audit': {
            'format': '{asctime} AUDIT {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
        'audit_console': {
            'class': 'logging.StreamHandler',
            'formatter': 'audit',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': LOG_LEVEL,
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': 'WARNING',
            'propagate': False,
        },
        'fee_audit': {
            'handlers': ['audit_console'],
            'level': 'INFO',
            'propagate': False,
        },
    },
}
