"""Test settings: file-backed SQLite and eager Celery."""

from .base import *  # noqa: F401,F403

SECRET_KEY = 'test-secret-key'

# A file database lets threaded tests open their own connections.
# Immediate transactions wait on the busy timeout instead of failing on upgrade.
DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': BASE_DIR / 'courtside_test.sqlite3',  # noqa: F405
        'OPTIONS': {
            'timeout': 20,
            'transaction_mode': 'IMMEDIATE',
        },
        'TEST': {
            'NAME': BASE_DIR / 'test_courtside.sqlite3',  # noqa: F405
        },
    }
}

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = False
CELERY_BROKER_URL = 'memory://'
CELERY_RESULT_BACKEND = 'cache+memory://'

COURTSIDE['LOCK_TIMEOUT_SECONDS'] = 1.0  # noqa: F405
