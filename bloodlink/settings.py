"""
Django settings for the BloodLink project.

Every deploy-specific value is read from the environment. A local ``.env``
file is honoured through python-dotenv, but exported variables take priority.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(override=False)

BASE_DIR = Path(__file__).resolve().parent.parent


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ('1', 'true', 'yes', 'on')


def _env_list(name: str, default: str = '') -> list:
    return [item.strip() for item in os.getenv(name, default).split(',') if item.strip()]


SECRET_KEY = os.getenv('DJANGO_SECRET_KEY', 'django-insecure-bloodlink-local-development-key')

DEBUG = _env_bool('DJANGO_DEBUG', True)

ALLOWED_HOSTS = _env_list('DJANGO_ALLOWED_HOSTS', 'localhost,127.0.0.1,testserver')

CSRF_TRUSTED_ORIGINS = _env_list('DJANGO_CSRF_TRUSTED_ORIGINS')


INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'blood.apps.BloodConfig',
    'donor.apps.DonorConfig',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'bloodlink.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
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

WSGI_APPLICATION = 'bloodlink.wsgi.application'


DATABASES = {
    'default': {
        'ENGINE': os.getenv('DB_ENGINE', 'django.db.backends.sqlite3'),
        'NAME': os.getenv('DB_NAME', str(BASE_DIR / 'db.sqlite3')),
        'USER': os.getenv('DB_USER', ''),
        'PASSWORD': os.getenv('DB_PASSWORD', ''),
        'HOST': os.getenv('DB_HOST', ''),
        'PORT': os.getenv('DB_PORT', ''),
    }
}

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

AUTH_PASSWORD_VALIDATORS = [
    {'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator'},
    {'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator'},
    {'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator'},
    {'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator'},
]

LANGUAGE_CODE = 'en-us'
TIME_ZONE = os.getenv('TIME_ZONE', 'UTC')
USE_I18N = True
USE_TZ = True

STATIC_URL = '/static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'


LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '%(asctime)s %(levelname)s %(name)s: %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': LOG_LEVEL,
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': os.getenv('DJANGO_LOG_LEVEL', 'WARNING').upper(),
            'propagate': False,
        },
    },
}


# Donor matching / eligibility
DONOR_MATCH_DEFAULT_RADIUS_KM = float(os.getenv('DONOR_MATCH_DEFAULT_RADIUS_KM', '50'))
EMERGENCY_NOTIFY_LIMIT = int(os.getenv('EMERGENCY_NOTIFY_LIMIT', '20'))
DONATION_RECOVERY_DAYS = int(os.getenv('DONATION_RECOVERY_DAYS', '56'))

# Inventory severity bands (units, inclusive upper bounds)
INVENTORY_CRITICAL_UNITS = int(os.getenv('INVENTORY_CRITICAL_UNITS', '5'))
INVENTORY_LOW_UNITS = int(os.getenv('INVENTORY_LOW_UNITS', '15'))
LIVES_SAVED_PER_UNIT = int(os.getenv('LIVES_SAVED_PER_UNIT', '3'))


# Geocoding
GEOCODER_ALLOW_REMOTE = _env_bool('GEOCODER_ALLOW_REMOTE', True)
GEOCODER_USER_AGENT = os.getenv('GEOCODER_USER_AGENT', 'bloodlink-geocoder')
GEOCODER_TIMEOUT = int(os.getenv('GEOCODER_TIMEOUT', '10'))
GEOCODER_MIN_DELAY_SECONDS = float(os.getenv('GEOCODER_MIN_DELAY_SECONDS', '1.0'))
GEOCODER_COUNTRY_BIAS = os.getenv('GEOCODER_COUNTRY_BIAS') or None
GEOCODER_STATIC_FIXTURES = {
    'test address': (12.971599, 77.594566),
    'bengaluru': (12.971599, 77.594566),
    'chennai': (13.082680, 80.270718),
    'mumbai': (19.076090, 72.877426),
    'new delhi': (28.613939, 77.209023),
}


# AWS SNS (urgent SMS alerts)
AWS_SNS_ENABLED = _env_bool('AWS_SNS_ENABLED', False)
AWS_SNS_REGION = os.getenv('AWS_SNS_REGION', 'us-east-1')
AWS_SNS_SMS_TYPE = os.getenv('AWS_SNS_SMS_TYPE', 'Transactional')
AWS_SNS_SENDER_ID = os.getenv('AWS_SNS_SENDER_ID', '')
AWS_SNS_MAX_RECIPIENTS = int(os.getenv('AWS_SNS_MAX_RECIPIENTS', '20'))
AWS_SNS_MIN_NOTIFICATION_GAP_SECONDS = int(os.getenv('AWS_SNS_MIN_NOTIFICATION_GAP_SECONDS', '900'))
AWS_SNS_DEFAULT_COUNTRY_CODE = os.getenv('AWS_SNS_DEFAULT_COUNTRY_CODE', '+91')


# Celery
CELERY_BROKER_URL = os.getenv('CELERY_BROKER_URL', 'redis://localhost:6379/0')
CELERY_RESULT_BACKEND = os.getenv('CELERY_RESULT_BACKEND') or None
CELERY_TASK_ALWAYS_EAGER = _env_bool('CELERY_TASK_ALWAYS_EAGER', True)
CELERY_TASK_SERIALIZER = 'json'
CELERY_ACCEPT_CONTENT = ['json']
CELERY_TIMEZONE = TIME_ZONE
