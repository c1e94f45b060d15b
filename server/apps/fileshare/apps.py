"""Django app configuration for fileshare app."""

from typing_extensions import override

from django.apps import AppConfig


class FileshareConfig(AppConfig):
    """Configuration for fileshare app."""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'server.apps.fileshare'
    verbose_name = 'File Sharing'

    @override
    def ready(self) -> None:
        """Import signal handlers when app is ready."""
        from server.apps.fileshare import signals  # noqa: F401
