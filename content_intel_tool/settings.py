"""
Django settings for the content_intel_tool.

The project hosts the ``contentintel`` app, which persists the link
occurrences extracted from articles. It uses SQLite by default; set
``DATABASE_URL`` to point it at PostgreSQL or MySQL instead. The analysis
engine itself lives in ``contentintel.engine`` and only reads the optional
YAML override named by ``CONTENTINTEL_ENGINE_CONFIG``.

Please consult the Django documentation for additional configuration
options: https://docs.djangoproject.com/en/4.2/ref/settings/
"""

from __future__ import annotations

import os
from pathlib import Path
from urllib.parse import parse_qs, unquote, urlparse

from django.core.exceptions import ImproperlyConfigured

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.getenv('DJANGO_SECRET_KEY', 'django-insecure-change-me')

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = os.getenv('DJANGO_DEBUG', 'false').lower() == 'true'

RUNNING_TESTS = os.getenv('PYTEST_CURRENT_TEST') is not None
if RUNNING_TESTS:
    DEBUG = True

if not DEBUG and SECRET_KEY == 'django-insecure-change-me' and not RUNNING_TESTS:
    raise ImproperlyConfigured('DJANGO_SECRET_KEY must be set when DEBUG is False.')

ALLOWED_HOSTS: list[str] = [
    host.strip()
    for host in os.getenv('DJANGO_ALLOWED_HOSTS', '127.0.0.1,localhost').split(',')
    if host.strip()
]

# Application definition
INSTALLED_APPS = [
    'django.contrib.contenttypes',
    'contentintel',
]

MIDDLEWARE: list[str] = []

WSGI_APPLICATION = 'content_intel_tool.wsgi.application'

# Database
# https://docs.djangoproject.com/en/4.2/ref/settings/#databases


def _database_config_from_url(
    url: str,
    *,
    conn_max_age: int,
    ssl_require: bool,
    sqlite_default: Path,
) -> dict[str, object]:
    parsed = urlparse(url)
    scheme = parsed.scheme.lower()

    if scheme in {'postgres', 'postgresql'}:
        engine = 'django.db.backends.postgresql'
        name = unquote(parsed.path.lstrip('/')) or ''
    elif scheme in {'mysql', 'mariadb'}:
        engine = 'django.db.backends.mysql'
        name = unquote(parsed.path.lstrip('/')) or ''
    elif scheme == 'sqlite':
        engine = 'django.db.backends.sqlite3'
        raw_path = unquote(parsed.path or '')
        if raw_path.startswith('/'):
            raw_path = raw_path[1:]
        candidate = raw_path or str(sqlite_default)
        if os.path.isabs(candidate):
            name = candidate
        else:
            name = str((sqlite_default.parent / candidate).resolve())
    else:
        raise ImproperlyConfigured(f'Unsupported DATABASE_URL scheme: {scheme}')

    config: dict[str, object] = {
        'ENGINE': engine,
        'NAME': name,
        'CONN_MAX_AGE': conn_max_age,
    }

    if parsed.username:
        config['USER'] = unquote(parsed.username)
    if parsed.password:
        config['PASSWORD'] = unquote(parsed.password)
    if parsed.hostname:
        config['HOST'] = parsed.hostname
    if parsed.port:
        config['PORT'] = str(parsed.port)

    query_options = {key: values[-1] for key, values in parse_qs(parsed.query).items() if values}
    if (
        engine != 'django.db.backends.sqlite3'
        and ssl_require
        and query_options.get('sslmode', '').lower() != 'require'
    ):
        query_options.setdefault('sslmode', 'require')

    if query_options:
        config['OPTIONS'] = query_options

    return config


default_sqlite_path = BASE_DIR / 'db.sqlite3'
DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': default_sqlite_path,
    }
}

database_url = os.getenv('DATABASE_URL')
if database_url:
    conn_max_age = int(os.getenv('DATABASE_CONN_MAX_AGE', '600'))
    ssl_require = os.getenv('DATABASE_SSL_REQUIRE', 'true').lower() == 'true'
    DATABASES['default'] = _database_config_from_url(
        database_url,
        conn_max_age=conn_max_age,
        ssl_require=ssl_require,
        sqlite_default=default_sqlite_path,
    )

# Internationalization
# https://docs.djangoproject.com/en/4.2/topics/i18n/

LANGUAGE_CODE = 'pt-br'

TIME_ZONE = 'UTC'

USE_I18N = True

USE_TZ = True

# Default primary key field type
# https://docs.djangoproject.com/en/4.2/ref/settings/#default-auto-field

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# Optional YAML file overriding the engine thresholds (see contentintel.engine.config)
CONTENTINTEL_ENGINE_CONFIG = os.getenv('CONTENTINTEL_ENGINE_CONFIG') or None


log_level = os.getenv('DJANGO_LOG_LEVEL', 'INFO').upper()
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': log_level,
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': log_level,
            'propagate': False,
        },
        'contentintel': {
            'level': os.getenv('CONTENTINTEL_LOG_LEVEL', log_level).upper(),
        },
    },
}
