# notificaciones/alertas.py
"""
Escaneo periódico de alertas por tiempo.

Recorre las órdenes activas, evalúa las mismas reglas que el semáforo y crea
una alerta (con sus notificaciones) por cada regla incumplida que no tenga ya
una alerta abierta. La llave ``(orden, tipo, ventana)`` es única en base de
datos, así que dos escaneos simultáneos no pueden duplicar una alerta.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from accounts.roles import Rol, usuarios_con_rol
from core.errores import ErrorTaller
from ordenes.models import Orden
from ordenes.repositories import OrdenRepository, persistencia
from ordenes.semaforo import (
    cotizacion_vencida,
    dias_sin_actividad,
    recoleccion_vencida,
    sin_actividad,
)
from .models import AlertaOrden, PrioridadNotif, TipoNotificacion
from .repositories import NotificacionRepository
from .services import ServicioNotificaciones

logger = logging.getLogger(__name__)

COOLDOWN_HORAS = 24


# ====================== Reglas ======================
def _horas(delta: timedelta) -> int:
    return int(delta.total_seconds() // 3600)


def _mensaje_rojo(orden: Orden, ahora: datetime) -> str:
    dias = (ahora - (orden.listo_en or orden.recibido_en)).days
    return f"{orden.equipo} lleva {dias} días listo. Cliente: {orden.cliente_nombre or 'N/D'}"


def _mensaje_amarillo(orden: Orden, ahora: datetime) -> str:
    desde = orden.cotizacion_en or orden.diagnostico_en
    tecnico = "Sin asignar"
    if orden.tecnico:
        tecnico = orden.tecnico.get_full_name() or orden.tecnico.username
    return f"{orden.equipo} lleva {_horas(ahora - desde)}h sin avance. Técnico: {tecnico}"


def _mensaje_sin_actividad(orden: Orden, ahora: datetime) -> str:
    dias = (ahora - orden.ultimo_movimiento_en).days
    return f"{orden.equipo} lleva {dias} días sin cambios en estado {orden.get_estado_display()}"


@dataclass(frozen=True)
class ReglaAlerta:
    tipo: str
    aplica: Callable[[Orden, datetime], bool]
    titulo: str
    mensaje: Callable[[Orden, datetime], str]
    prioridad: str
    incluir_tecnico: bool


REGLAS = (
    ReglaAlerta(
        TipoNotificacion.ALERTA_ROJO, recoleccion_vencida,
        "🔴 Equipo sin recoger: {folio}", _mensaje_rojo, PrioridadNotif.ALTA, False,
    ),
    ReglaAlerta(
        TipoNotificacion.ALERTA_AMARILLO, cotizacion_vencida,
        "🟡 Diagnóstico atrasado: {folio}", _mensaje_amarillo, PrioridadNotif.NORMAL, True,
    ),
    ReglaAlerta(
        TipoNotificacion.ALERTA_SIN_ACTIVIDAD, sin_actividad,
        "⏳ Orden sin actividad: {folio}", _mensaje_sin_actividad, PrioridadNotif.BAJA, True,
    ),
)


# ====================== Resultado ======================
@dataclass
class FalloOrden:
    orden_id: Optional[int]
    folio: str
    error: str


@dataclass
class ResumenEscaneo:
    ejecutado_en: Optional[datetime] = None
    ordenes_revisadas: int = 0
    alertas_creadas: int = 0
    alertas_omitidas: int = 0
    alertas_resueltas: int = 0
    notificaciones_creadas: int = 0
    fallos: List[FalloOrden] = field(default_factory=list)

    def acumular(self, otro: "ResumenEscaneo") -> None:
        self.alertas_creadas += otro.alertas_creadas
        self.alertas_omitidas += otro.alertas_omitidas
        self.alertas_resueltas += otro.alertas_resueltas
        self.notificaciones_creadas += otro.notificaciones_creadas

    def como_dict(self) -> dict:
        datos = asdict(self)
        datos["ejecutado_en"] = self.ejecutado_en.isoformat() if self.ejecutado_en else None
        return datos

    def __str__(self):
        return (
            f"Órdenes revisadas: {self.ordenes_revisadas}, alertas creadas: {self.alertas_creadas}, "
            f"omitidas: {self.alertas_omitidas}, resueltas: {self.alertas_resueltas}, "
            f"notificaciones: {self.notificaciones_creadas}, fallos: {len(self.fallos)}"
        )


# ====================== Escaneo ======================
class EscanerAlertas:
    def __init__(
        self,
        ordenes: Optional[OrdenRepository] = None,
        notificaciones: Optional[NotificacionRepository] = None,
        servicio: Optional[ServicioNotificaciones] = None,
        reloj: Callable = timezone.now,
        cooldown_horas: Optional[int] = None,
    ):
        self.ordenes = ordenes or OrdenRepository()
        self.notificaciones = notificaciones or NotificacionRepository()
        self.servicio = servicio or ServicioNotificaciones(self.notificaciones, reloj=reloj)
        self.reloj = reloj
        if cooldown_horas is None:
            cooldown_horas = getattr(settings, "ALERTAS_COOLDOWN_HORAS", COOLDOWN_HORAS)
        self.cooldown = timedelta(hours=int(cooldown_horas))

    def ejecutar(self) -> ResumenEscaneo:
        """
        Ejecuta un barrido completo. Los fallos de una orden se registran en el
        resumen y el barrido continúa; si no se pueden listar las órdenes se
        lanza ``RepositorioNoDisponible``.
        """
        ahora = self.reloj()
        resumen = ResumenEscaneo(ejecutado_en=ahora)

        try:
            ordenes = self.ordenes.listar_activas()
        except ErrorTaller:
            logger.exception("No se pudieron listar las órdenes activas; escaneo abortado")
            raise

        for orden in ordenes:
            resumen.ordenes_revisadas += 1
            # Contadores de la orden: sólo cuentan si su transacción se confirma
            parcial = ResumenEscaneo()
            try:
                with transaction.atomic():
                    self._procesar_orden(orden, ahora, parcial)
            except Exception as exc:
                logger.exception("Error procesando orden %s", orden.folio)
                resumen.fallos.append(FalloOrden(orden.pk, orden.folio, str(exc)))
                continue
            resumen.acumular(parcial)

        try:
            resumen.alertas_resueltas += self.notificaciones.resolver_alertas_inactivas(ahora)
        except ErrorTaller as exc:
            logger.exception("No se pudieron resolver alertas de órdenes cerradas")
            resumen.fallos.append(FalloOrden(None, "", str(exc)))

        logger.info("Escaneo de alertas (%s días sin actividad): %s", dias_sin_actividad(), resumen)
        return resumen

    def _procesar_orden(self, orden: Orden, ahora: datetime, resumen: ResumenEscaneo) -> None:
        for regla in REGLAS:
            aplica = regla.aplica(orden, ahora)
            abierta = self.notificaciones.alerta_abierta(orden.pk, regla.tipo)

            if abierta is not None:
                if not aplica:
                    self.notificaciones.resolver_alerta(abierta, ahora)
                    resumen.alertas_resueltas += 1
                    continue
                if not self._puede_repetirse(abierta, ahora):
                    resumen.alertas_omitidas += 1
                    continue
                # Leída y fuera del periodo de espera: se cierra y se vuelve a avisar
                self.notificaciones.resolver_alerta(abierta, ahora)
                resumen.alertas_resueltas += 1
                ventana = abierta.ventana + 1
            else:
                if not aplica:
                    continue
                # La siguiente ventana depende sólo de las ya resueltas, así dos
                # escaneos simultáneos calculan la misma llave y uno de ellos choca
                ultima = self.notificaciones.ultima_ventana_resuelta(orden.pk, regla.tipo)
                ventana = 0 if ultima is None else ultima + 1

            alerta = self.notificaciones.crear_alerta(orden, regla.tipo, ventana, ahora)
            if alerta is None:
                # Otro escaneo simultáneo la creó primero
                resumen.alertas_omitidas += 1
                continue
            resumen.alertas_creadas += 1
            resumen.notificaciones_creadas += self._notificar(orden, regla, alerta, ahora)

    def _puede_repetirse(self, alerta: AlertaOrden, ahora: datetime) -> bool:
        if ahora - alerta.creada_en < self.cooldown:
            return False
        return self.notificaciones.alerta_leida(alerta)

    def _notificar(self, orden: Orden, regla: ReglaAlerta, alerta: AlertaOrden, ahora: datetime) -> int:
        with persistencia("buscar destinatarios de alerta"):
            destinatarios = list(
                usuarios_con_rol((Rol.COORD_SERVICIO, Rol.SUPER_ADMIN))
                .order_by("pk")
                .values_list("pk", flat=True)
            )
        if regla.incluir_tecnico and orden.tecnico_id:
            destinatarios.append(orden.tecnico_id)

        notificaciones = self.servicio.construir(
            destinatarios,
            regla.tipo,
            regla.titulo.format(folio=orden.folio),
            regla.mensaje(orden, ahora),
            prioridad=regla.prioridad,
            orden=orden,
            alerta=alerta,
        )
        # Se propaga cualquier error para que la orden quede como fallo aislado
        return self.notificaciones.insertar_varias(notificaciones)
