from django.conf import settings
from django.db import models
from django.utils import timezone

from ordenes.models import Orden


class TipoNotificacion(models.TextChoices):
    ORDEN_CREADA = "ORDEN_CREADA", "Orden creada"
    ESTADO_CAMBIADO = "ESTADO_CAMBIADO", "Estado cambiado"
    ORDEN_CANCELADA = "ORDEN_CANCELADA", "Orden cancelada"
    TECNICO_REASIGNADO = "TECNICO_REASIGNADO", "Técnico reasignado"
    PRIORIDAD_URGENTE = "PRIORIDAD_URGENTE", "Prioridad urgente"
    COTIZACION_MODIFICADA = "COTIZACION_MODIFICADA", "Cotización modificada"
    ALERTA_ROJO = "ALERTA_ROJO", "Alerta roja"
    ALERTA_AMARILLO = "ALERTA_AMARILLO", "Alerta amarilla"
    ALERTA_SIN_ACTIVIDAD = "ALERTA_SIN_ACTIVIDAD", "Alerta sin actividad"


TIPOS_ALERTA = (
    TipoNotificacion.ALERTA_ROJO,
    TipoNotificacion.ALERTA_AMARILLO,
    TipoNotificacion.ALERTA_SIN_ACTIVIDAD,
)


class PrioridadNotif(models.TextChoices):
    BAJA = "BAJA", "Baja"
    NORMAL = "NORMAL", "Normal"
    ALTA = "ALTA", "Alta"
    URGENTE = "URGENTE", "Urgente"


# --------------------
# Alertas por orden (llave de deduplicación)
# --------------------
class AlertaOrden(models.Model):
    """
    Una alerta de tiempo por ``(orden, tipo, ventana)``.

    ``ventana`` avanza cada vez que la alerta anterior se resuelve; la
    restricción única impide que dos escaneos simultáneos creen la misma.
    """

    orden = models.ForeignKey(Orden, on_delete=models.PROTECT, related_name="alertas")
    tipo = models.CharField(max_length=24, choices=[(t.value, t.label) for t in TIPOS_ALERTA])
    ventana = models.PositiveIntegerField(default=0)

    resuelta = models.BooleanField(default=False)
    resuelta_en = models.DateTimeField(null=True, blank=True)
    creada_en = models.DateTimeField(default=timezone.now)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["orden", "tipo", "ventana"],
                name="uniq_alerta_orden_tipo_ventana",
            )
        ]
        indexes = [
            models.Index(fields=["resuelta"]),
            models.Index(fields=["orden", "tipo"]),
        ]
        ordering = ["-creada_en"]
        verbose_name = "Alerta de orden"
        verbose_name_plural = "Alertas de órdenes"

    def __str__(self):
        estado = "RESUELTA" if self.resuelta else "ABIERTA"
        return f"[{estado}] {self.orden.folio} {self.tipo} #{self.ventana}"

    @property
    def abierta(self) -> bool:
        return not self.resuelta


# --------------------
# Notificaciones por usuario
# --------------------
class Notificacion(models.Model):
    usuario = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="notificaciones"
    )
    # Referencia, no pertenencia: la notificación sobrevive a la orden
    orden = models.ForeignKey(
        Orden, on_delete=models.SET_NULL, null=True, blank=True, related_name="notificaciones"
    )
    alerta = models.ForeignKey(
        AlertaOrden, on_delete=models.SET_NULL, null=True, blank=True, related_name="notificaciones"
    )

    tipo = models.CharField(max_length=24, choices=TipoNotificacion.choices)
    titulo = models.CharField(max_length=160)
    mensaje = models.TextField(blank=True)
    prioridad = models.CharField(max_length=8, choices=PrioridadNotif.choices, default=PrioridadNotif.NORMAL)

    leida = models.BooleanField(default=False)
    leida_en = models.DateTimeField(null=True, blank=True)
    creada_en = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-creada_en", "-id"]
        indexes = [
            models.Index(fields=["usuario", "leida"]),
            models.Index(fields=["usuario", "-creada_en", "-id"]),
            models.Index(fields=["orden", "tipo"]),
        ]
        verbose_name = "Notificación"
        verbose_name_plural = "Notificaciones"

    def __str__(self):
        return f"{self.usuario} — {self.titulo}"
