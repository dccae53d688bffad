from django.conf import settings
from django.db import models
from django.utils import timezone


# -------- Choices --------
class EstadoOrden(models.TextChoices):
    RECIBIDO = "RECIBIDO", "Recibido"
    EN_DIAGNOSTICO = "EN_DIAGNOSTICO", "En Diagnóstico"
    ESPERA_REFACCIONES = "ESPERA_REFACCIONES", "Espera Refacciones"
    COTIZACION_PENDIENTE = "COTIZACION_PENDIENTE", "Cotización Pendiente"
    EN_REPARACION = "EN_REPARACION", "En Reparación"
    REPARADO = "REPARADO", "Reparado"
    LISTO_ENTREGA = "LISTO_ENTREGA", "Listo para Entrega"
    ENTREGADO = "ENTREGADO", "Entregado"
    CANCELADO = "CANCELADO", "Cancelado"


class Prioridad(models.TextChoices):
    BAJA = "BAJA", "Baja"
    NORMAL = "NORMAL", "Normal"
    ALTA = "ALTA", "Alta"
    URGENTE = "URGENTE", "Urgente"


class TipoServicio(models.TextChoices):
    GARANTIA = "GARANTIA", "Garantía"
    CENTRO_SERVICIO = "CENTRO_SERVICIO", "Centro Servicio"
    POR_COBRAR = "POR_COBRAR", "Por Cobrar"
    REPARE = "REPARE", "REPARE"


# Estados fuera del escaneo de alertas
ESTADOS_TERMINALES = frozenset({EstadoOrden.ENTREGADO, EstadoOrden.CANCELADO})

# Sello de tiempo que se fija la primera vez que la orden entra a cada estado
SELLOS_POR_ESTADO = {
    EstadoOrden.RECIBIDO: "recibido_en",
    EstadoOrden.EN_DIAGNOSTICO: "diagnostico_en",
    EstadoOrden.COTIZACION_PENDIENTE: "cotizacion_en",
    EstadoOrden.REPARADO: "reparado_en",
    EstadoOrden.LISTO_ENTREGA: "listo_en",
    EstadoOrden.ENTREGADO: "entregado_en",
    EstadoOrden.CANCELADO: "cancelado_en",
}


# -------- Orden de servicio --------
class Orden(models.Model):
    folio = models.CharField(max_length=30, unique=True)
    estado = models.CharField(max_length=20, choices=EstadoOrden.choices, default=EstadoOrden.RECIBIDO)
    prioridad = models.CharField(max_length=8, choices=Prioridad.choices, default=Prioridad.NORMAL)
    tipo_servicio = models.CharField(
        max_length=16, choices=TipoServicio.choices, default=TipoServicio.CENTRO_SERVICIO
    )

    # Equipo / cliente
    cliente_nombre = models.CharField(max_length=160, blank=True, default="")
    marca_equipo = models.CharField(max_length=80, blank=True, default="")
    modelo_equipo = models.CharField(max_length=80, blank=True, default="")
    cotizacion = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)

    # Usuarios
    creado_por = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="ordenes_creadas"
    )
    tecnico = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="ordenes_asignadas"
    )

    # Hitos del ciclo de vida (se fijan una sola vez)
    recibido_en = models.DateTimeField(null=True, blank=True)
    diagnostico_en = models.DateTimeField(null=True, blank=True)
    cotizacion_en = models.DateTimeField(null=True, blank=True)
    reparado_en = models.DateTimeField(null=True, blank=True)
    listo_en = models.DateTimeField(null=True, blank=True)
    entregado_en = models.DateTimeField(null=True, blank=True)
    cancelado_en = models.DateTimeField(null=True, blank=True)

    creada_en = models.DateTimeField(default=timezone.now)
    ultimo_movimiento_en = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-creada_en"]
        indexes = [
            models.Index(fields=["estado"]),
            models.Index(fields=["prioridad"]),
            models.Index(fields=["tecnico"]),
            models.Index(fields=["-creada_en"]),
        ]

    def __str__(self):
        return f"{self.folio} [{self.estado}]"

    @property
    def activa(self) -> bool:
        return self.estado not in ESTADOS_TERMINALES

    @property
    def equipo(self) -> str:
        return f"{self.marca_equipo} {self.modelo_equipo}".strip()


# -------- Historial de estados (solo inserción) --------
class HistorialEstado(models.Model):
    orden = models.ForeignKey(Orden, on_delete=models.CASCADE, related_name="historial")
    estado_anterior = models.CharField(max_length=20, choices=EstadoOrden.choices)
    estado_nuevo = models.CharField(max_length=20, choices=EstadoOrden.choices)
    usuario = models.ForeignKey(settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL)
    motivo = models.CharField(max_length=255, blank=True)
    timestamp = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-timestamp", "-id"]
        verbose_name = "Historial de estado"
        verbose_name_plural = "Historial de estados"
        indexes = [
            models.Index(fields=["orden"]),
            models.Index(fields=["estado_nuevo"]),
            models.Index(fields=["-timestamp"]),
        ]

    def __str__(self):
        return f"{self.orden.folio}: {self.estado_anterior} → {self.estado_nuevo}"
