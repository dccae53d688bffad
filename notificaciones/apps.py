from django.apps import AppConfig


class NotificacionesConfig(AppConfig):
    """Configuración de la aplicación de notificaciones y alertas."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "notificaciones"
    verbose_name = "Notificaciones"

    def ready(self) -> None:
        # Conecta los receptores de eventos de órdenes
        from . import signals  # noqa: F401
