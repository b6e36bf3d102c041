"""Django app configuration for core module."""

from django.apps import AppConfig


class CoreConfig(AppConfig):
    """Core app configuration."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.web.core"
    verbose_name = "Core"

    def ready(self) -> None:
        # Registers the setup system checks
        from apps.web.core import checks  # noqa: F401, PLC0415
