from django.apps import AppConfig


class ContentIntelConfig(AppConfig):
    """Configuration for the contentintel Django app."""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'contentintel'
