"""
Django settings for JETDASH project.
Last-mile delivery marketplace (Gombe)

Configuration for:
- Delivery lifecycle engine (propagator policy)
- Redis/Celery (periodic ticks)
- Django Channels (real-time push)
"""

from datetime import timedelta
from pathlib import Path

from decouple import Csv, config

# ===========================================
# BASE CONFIGURATION
# ===========================================
BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = config('SECRET_KEY', default='dev-secret-key-change-in-production')
DEBUG = config('DEBUG', default=True, cast=bool)
ALLOWED_HOSTS = config('ALLOWED_HOSTS', default='localhost,127.0.0.1,0.0.0.0,testserver', cast=Csv())

# ===========================================
# APPLICATION DEFINITION
# ===========================================
INSTALLED_APPS = [
    # Django Core
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',

    # Daphne MUST be before staticfiles
    'daphne',  # ASGI server for WebSocket support
    'channels',  # Django Channels for real-time

    'django.contrib.staticfiles',

    # Third Party
    'rest_framework',
    'corsheaders',
    'django_filters',
    'drf_spectacular',

    # JETDASH Apps
    'core.apps.CoreConfig',
    'deliveries.apps.DeliveriesConfig',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'corsheaders.middleware.CorsMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'jetdash_core.urls'

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

WSGI_APPLICATION = 'jetdash_core.wsgi.application'

# ===========================================
# DATABASE
# ===========================================
# SQLite for local runs and tests, PostgreSQL in production
DB_ENGINE = config('DB_ENGINE', default='django.db.backends.sqlite3')

if DB_ENGINE.endswith('sqlite3'):
    DATABASES = {
        'default': {
            'ENGINE': DB_ENGINE,
            'NAME': config('DB_NAME', default=str(BASE_DIR / 'db.sqlite3')),
        }
    }
else:
    DATABASES = {
        'default': {
            'ENGINE': DB_ENGINE,
            'NAME': config('DB_NAME', default='jetdash_db'),
            'USER': config('DB_USER', default='jetdash_user'),
            'PASSWORD': config('DB_PASSWORD', default=''),
            'HOST': config('DB_HOST', default='db'),
            'PORT': config('DB_PORT', default='5432'),
        }
    }

# ===========================================
# INTERNATIONALIZATION (Nigeria)
# ===========================================
LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'Africa/Lagos'
USE_I18N = True
USE_TZ = True

# ===========================================
# STATIC FILES
# ===========================================
STATIC_URL = 'static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'

# ===========================================
# DEFAULT PRIMARY KEY
# ===========================================
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# ===========================================
# REDIS
# ===========================================
# Empty REDIS_URL = single-process mode (local memory cache, in-memory channel layer)
REDIS_URL = config('REDIS_URL', default='')

# ===========================================
# DJANGO CHANNELS (WebSocket Real-time)
# ===========================================
ASGI_APPLICATION = 'jetdash_core.asgi.application'

if REDIS_URL:
    CHANNEL_LAYERS = {
        'default': {
            'BACKEND': 'channels_redis.core.RedisChannelLayer',
            'CONFIG': {
                'hosts': [REDIS_URL],
                'capacity': 1500,
                'expiry': 10,
            },
        },
    }
    CACHES = {
        'default': {
            'BACKEND': 'django.core.cache.backends.redis.RedisCache',
            'LOCATION': REDIS_URL,
        }
    }
else:
    CHANNEL_LAYERS = {
        'default': {
            'BACKEND': 'channels.layers.InMemoryChannelLayer',
        },
    }
    CACHES = {
        'default': {
            'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        }
    }

# ===========================================
# DJANGO REST FRAMEWORK
# ===========================================
# Identity is handled upstream; the API trusts the rider/customer ids it is given
REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': [
        'rest_framework.authentication.SessionAuthentication',
    ],
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.AllowAny',
    ],
    'DEFAULT_FILTER_BACKENDS': [
        'django_filters.rest_framework.DjangoFilterBackend',
    ],
    'DEFAULT_SCHEMA_CLASS': 'drf_spectacular.openapi.AutoSchema',
}

# ===========================================
# API DOCUMENTATION (drf-spectacular)
# ===========================================
SPECTACULAR_SETTINGS = {
    'TITLE': 'JETDASH API',
    'DESCRIPTION': 'Delivery lifecycle API for customers, riders and SME shippers',
    'VERSION': '1.0.0',
    'SERVE_INCLUDE_SCHEMA': False,
}

# ===========================================
# CORS (Cross-Origin Resource Sharing)
# ===========================================
CORS_ALLOW_ALL_ORIGINS = config('CORS_ALLOW_ALL_ORIGINS', default=DEBUG, cast=bool)
CORS_ALLOWED_ORIGINS = config(
    'CORS_ALLOWED_ORIGINS',
    default='http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173',
    cast=Csv()
)
CORS_ALLOW_CREDENTIALS = True

# ===========================================
# DELIVERY ENGINE - PROPAGATOR POLICY
# ===========================================
PROPAGATOR_ENABLED = config('PROPAGATOR_ENABLED', default=True, cast=bool)
PROPAGATOR_INTERVAL_SECONDS = config('PROPAGATOR_INTERVAL_SECONDS', default=5, cast=int)

# Minimum minutes spent in a state before automatic advancement is considered
PROPAGATOR_ACCEPTED_MINUTES = config('PROPAGATOR_ACCEPTED_MINUTES', default=2, cast=float)
PROPAGATOR_PICKED_UP_MINUTES = config('PROPAGATOR_PICKED_UP_MINUTES', default=5, cast=float)
PROPAGATOR_IN_TRANSIT_MINUTES = config('PROPAGATOR_IN_TRANSIT_MINUTES', default=10, cast=float)

# Per-tick advancement probability once past the threshold
PROPAGATOR_ACCEPTED_PROBABILITY = config('PROPAGATOR_ACCEPTED_PROBABILITY', default=0.3, cast=float)
PROPAGATOR_PICKED_UP_PROBABILITY = config('PROPAGATOR_PICKED_UP_PROBABILITY', default=0.2, cast=float)
PROPAGATOR_IN_TRANSIT_PROBABILITY = config('PROPAGATOR_IN_TRANSIT_PROBABILITY', default=0.1, cast=float)

# Organic demand
PROPAGATOR_NEW_DELIVERY_PROBABILITY = config('PROPAGATOR_NEW_DELIVERY_PROBABILITY', default=0.15, cast=float)

# Automatic acceptance of stale pending deliveries by idle riders
PROPAGATOR_AUTO_ACCEPT = config('PROPAGATOR_AUTO_ACCEPT', default=False, cast=bool)
PROPAGATOR_PENDING_MINUTES = config('PROPAGATOR_PENDING_MINUTES', default=2, cast=float)
PROPAGATOR_AUTO_ACCEPT_PROBABILITY = config('PROPAGATOR_AUTO_ACCEPT_PROBABILITY', default=0.4, cast=float)

# ===========================================
# CELERY CONFIGURATION
# ===========================================
CELERY_BROKER_URL = config('CELERY_BROKER_URL', default=REDIS_URL or 'memory://')
CELERY_RESULT_BACKEND = config('CELERY_RESULT_BACKEND', default=REDIS_URL or 'cache+memory://')
CELERY_ACCEPT_CONTENT = ['json']
CELERY_TASK_SERIALIZER = 'json'
CELERY_RESULT_SERIALIZER = 'json'
CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_ALWAYS_EAGER = config('CELERY_TASK_ALWAYS_EAGER', default=False, cast=bool)

# Celery Beat Schedule (Periodic Tasks)
CELERY_BEAT_SCHEDULE = {}

if PROPAGATOR_ENABLED:
    CELERY_BEAT_SCHEDULE['propagate-deliveries'] = {
        'task': 'deliveries.tasks.propagate_deliveries',
        'schedule': timedelta(seconds=PROPAGATOR_INTERVAL_SECONDS),
        # Drop ticks not started before the next one is due
        'options': {'expires': PROPAGATOR_INTERVAL_SECONDS},
    }

# ===========================================
# LOGGING CONFIGURATION
# ===========================================
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{levelname} {asctime} {module} {process:d} {thread:d} {message}',
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
        'deliveries': {
            'handlers': ['console'],
            'level': config('DELIVERIES_LOG_LEVEL', default='INFO'),
            'propagate': False,
        },
        'celery': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
    },
}
