"""Pytest configuration shared across test modules."""

import os

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "content_intel_tool.settings")
os.environ.setdefault("DJANGO_SECRET_KEY", "test-secret")
os.environ.setdefault("DJANGO_DEBUG", "true")


def pytest_configure(config):
    # Load settings after the env defaults above so pytest-django sets up Django.
    from django.conf import settings

    settings.DATABASES
