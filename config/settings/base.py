"""
Django Base Settings for PolicyDesk Backend

This file contains all shared settings used across environments.
Environment-specific settings are in development.py, production.py and test.py.
"""
from pathlib import Path

from decouple import Csv, config

# Build paths inside the project like this: BASE_DIR / 'subdir'
BASE_DIR = Path(__file__).resolve().parent.parent.parent

# =============================================================================
# Core Settings
# =============================================================================

SECRET_KEY = config('DJANGO_SECRET_KEY', default='django-insecure-change-me-in-production')

DEBUG = config('DJANGO_DEBUG', default=True, cast=bool)

ALLOWED_HOSTS = config('ALLOWED_HOSTS', default='localhost,127.0.0.1', cast=Csv())

# =============================================================================
# Application Definition
# =============================================================================

INSTALLED_APPS = [
    'django.contrib.contenttypes',
    'django.contrib.auth',

    'rest_framework',
    'corsheaders',

    # Local apps
    'apps.core',
    'apps.dashboard',  # Dashboard + policy template statistics
    'apps.policies',   # Unified policy access, expiry sweep, legacy migration
    'apps.clients',    # Client policy views
]

MIDDLEWARE = [
    'corsheaders.middleware.CorsMiddleware',
    'django.middleware.security.SecurityMiddleware',
    'django.middleware.common.CommonMiddleware',
]

ROOT_URLCONF = 'config.urls'

# =============================================================================
# Database
# Connects to the existing back-office PostgreSQL database - no migrations run
# =============================================================================

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.postgresql',
        'NAME': config('DB_NAME', default='policydesk'),
        'USER': config('DB_USER', default='postgres'),
        'PASSWORD': config('DB_PASSWORD', default=''),
        'HOST': config('DB_HOST', default='localhost'),
        'PORT': config('DB_PORT', default='5432'),
        'OPTIONS': {
            'sslmode': config('DB_SSLMODE', default='require'),
        },
    }
}

# =============================================================================
# Cache
# Best-effort memoization of policy statistics
# =============================================================================

CACHES = {
    'default': {
        'BACKEND': config(
            'CACHE_BACKEND',
            default='django.core.cache.backends.locmem.LocMemCache'
        ),
        'LOCATION': config('CACHE_LOCATION', default='policydesk-stats'),
        'OPTIONS': {
            'MAX_ENTRIES': 1000,
        },
    }
}

POLICY_TEMPLATE_STATS_CACHE_TIMEOUT = config('POLICY_TEMPLATE_STATS_CACHE_TIMEOUT', default=300, cast=int)
POLICY_DETAIL_STATS_CACHE_TIMEOUT = config('POLICY_DETAIL_STATS_CACHE_TIMEOUT', default=180, cast=int)

# =============================================================================
# REST Framework
# Authentication is terminated upstream (API gateway)
# =============================================================================

REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': [],
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.AllowAny',
    ],
    'DEFAULT_RENDERER_CLASSES': [
        'rest_framework.renderers.JSONRenderer',
    ],
    'EXCEPTION_HANDLER': 'apps.core.exceptions.custom_exception_handler',
    'UNAUTHENTICATED_USER': None,
}

# =============================================================================
# CORS Configuration
# =============================================================================

CORS_ALLOWED_ORIGINS = config(
    'CORS_ALLOWED_ORIGINS',
    default='http://localhost:3000',
    cast=Csv()
)

CORS_ALLOW_CREDENTIALS = True

# =============================================================================
# Internationalization
# =============================================================================

LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = False
USE_TZ = True

# =============================================================================
# Policy Migration
# Legacy `policies` table -> `policy_templates` + `policy_instances`
# =============================================================================

POLICY_MIGRATION_PHASES = {
    # Old system only
    'preparation': {
        'use_template_system': False,
        'allow_fallback': True,
        'migrate_on_read': False,
        'batch_size': 50,
    },
    # Hybrid mode with fallback
    'migration': {
        'use_template_system': True,
        'allow_fallback': True,
        'migrate_on_read': False,
        'batch_size': 100,
    },
    # Template system with migrate-on-read
    'transition': {
        'use_template_system': True,
        'allow_fallback': True,
        'migrate_on_read': True,
        'batch_size': 100,
    },
    # Template system only
    'complete': {
        'use_template_system': True,
        'allow_fallback': False,
        'migrate_on_read': False,
        'batch_size': 100,
    },
}

POLICY_MIGRATION_PHASE = config('POLICY_MIGRATION_PHASE', default='migration')

_phase = POLICY_MIGRATION_PHASES.get(POLICY_MIGRATION_PHASE, POLICY_MIGRATION_PHASES['migration'])

POLICY_COMPATIBILITY = {
    'use_template_system': config('USE_TEMPLATE_SYSTEM', default=_phase['use_template_system'], cast=bool),
    'allow_fallback': config('ALLOW_FALLBACK', default=_phase['allow_fallback'], cast=bool),
    'migrate_on_read': config('MIGRATE_ON_READ', default=_phase['migrate_on_read'], cast=bool),
}

POLICY_MIGRATION_BATCH_SIZE = config('MIGRATION_BATCH_SIZE', default=_phase['batch_size'], cast=int)

# =============================================================================
# Logging
# =============================================================================

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{levelname} {asctime} {module} {message}',
            'style': '{',
        },
        'simple': {
            'format': '{levelname} {message}',
            'style': '{',
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
        'level': 'INFO',
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': config('DJANGO_LOG_LEVEL', default='INFO'),
            'propagate': False,
        },
        'apps': {
            'handlers': ['console'],
            'level': 'DEBUG',
            'propagate': False,
        },
        'services': {
            'handlers': ['console'],
            'level': 'DEBUG',
            'propagate': False,
        },
    },
}

# =============================================================================
# Default primary key field type
# =============================================================================

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'
