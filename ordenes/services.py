# ordenes/services.py
"""
Servicio de órdenes: máquina de estados y mutaciones que disparan eventos.

Todas las operaciones devuelven un ``Resultado``; los errores del dominio
(``TransicionInvalida``, ``Prohibido``, ``NoEncontrado``, ``Conflicto``,
``RepositorioNoDisponible``) viajan en ``Resultado.error``.
"""
from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Callable, Optional

from django.utils import timezone

from accounts.permisos import PoliticaPermisos
from core.errores import DatosInvalidos, ErrorTaller, Prohibido, TransicionInvalida
from core.resultados import Resultado
from .eventos import EventSinkSenales, TipoEvento
from .models import EstadoOrden, Orden, Prioridad, TipoServicio
from .repositories import OrdenRepository
from .transiciones import es_transicion_valida, nota_transicion

logger = logging.getLogger(__name__)

# Orden.cotizacion: max_digits=12, decimal_places=2
CENTAVO = Decimal("0.01")
MONTO_MAXIMO = Decimal(10) ** 10


def _contexto(orden: Orden, actor, **extra) -> dict:
    payload = {
        "orden": orden,
        "orden_id": orden.pk,
        "folio": orden.folio,
        "tecnico_id": orden.tecnico_id,
        "equipo": orden.equipo,
        "actor_id": getattr(actor, "pk", None),
    }
    payload.update(extra)
    return payload


class ServicioOrdenes:
    """
    Punto de entrada de las mutaciones de órdenes.

    Las dependencias se construyen en el proceso que lo usa (vista, tarea,
    comando) y se pasan aquí; los valores por defecto usan el ORM y las señales.
    """

    def __init__(
        self,
        repositorio: Optional[OrdenRepository] = None,
        politica: Optional[PoliticaPermisos] = None,
        eventos: Optional[EventSinkSenales] = None,
        reloj: Callable = timezone.now,
    ):
        self.repositorio = repositorio or OrdenRepository()
        self.politica = politica or PoliticaPermisos()
        self.eventos = eventos or EventSinkSenales()
        self.reloj = reloj

    # ---- Máquina de estados ----
    def transicionar(self, orden_id, estado_nuevo: str, actor, motivo: str = "") -> Resultado[Orden]:
        if estado_nuevo not in EstadoOrden.values:
            return Resultado.falla(DatosInvalidos(f"Estado desconocido: {estado_nuevo}"))
        try:
            orden = self.repositorio.obtener(orden_id)
            if not self.politica.puede_modificar_orden(actor, orden):
                return Resultado.falla(Prohibido(f"Sin permisos para modificar la orden {orden.folio}"))

            anterior = orden.estado
            if anterior == estado_nuevo:
                # No es una transición real: sin historial ni eventos
                return Resultado.exito(orden)
            if not es_transicion_valida(anterior, estado_nuevo):
                logger.info("Transición rechazada %s: %s → %s", orden.folio, anterior, estado_nuevo)
                return Resultado.falla(TransicionInvalida(anterior, estado_nuevo))

            self.repositorio.guardar_transicion(
                orden,
                estado_nuevo,
                actor,
                motivo or nota_transicion(anterior, estado_nuevo),
                self.reloj(),
            )
        except ErrorTaller as exc:
            logger.warning("No se pudo transicionar la orden %s: %s", orden_id, exc)
            return Resultado.falla(exc)

        if estado_nuevo == EstadoOrden.CANCELADO:
            self.eventos.emit(
                TipoEvento.ORDEN_CANCELADA, _contexto(orden, actor, estado_anterior=anterior)
            )
        else:
            self.eventos.emit(
                TipoEvento.ESTADO_CAMBIADO,
                _contexto(orden, actor, estado_anterior=anterior, estado_nuevo=estado_nuevo),
            )
        logger.info("Orden %s: %s → %s", orden.folio, anterior, estado_nuevo)
        return Resultado.exito(orden)

    # ---- Alta ----
    def crear_orden(
        self,
        folio: str,
        actor,
        *,
        cliente_nombre: str = "",
        marca_equipo: str = "",
        modelo_equipo: str = "",
        tipo_servicio: str = TipoServicio.CENTRO_SERVICIO,
        prioridad: str = Prioridad.NORMAL,
        tecnico=None,
    ) -> Resultado[Orden]:
        if not folio:
            return Resultado.falla(DatosInvalidos("El folio es obligatorio"))
        if tipo_servicio not in TipoServicio.values or prioridad not in Prioridad.values:
            return Resultado.falla(DatosInvalidos("Tipo de servicio o prioridad inválidos"))
        if not self.politica.puede_crear_orden(actor):
            return Resultado.falla(Prohibido("Sin permisos para crear órdenes"))

        ahora = self.reloj()
        try:
            orden = self.repositorio.crear(
                folio=folio,
                estado=EstadoOrden.RECIBIDO,
                prioridad=prioridad,
                tipo_servicio=tipo_servicio,
                cliente_nombre=cliente_nombre,
                marca_equipo=marca_equipo,
                modelo_equipo=modelo_equipo,
                creado_por=actor if getattr(actor, "pk", None) else None,
                tecnico=tecnico,
                recibido_en=ahora,
                creada_en=ahora,
                ultimo_movimiento_en=ahora,
            )
        except ErrorTaller as exc:
            return Resultado.falla(exc)

        self.eventos.emit(TipoEvento.ORDEN_CREADA, _contexto(orden, actor))
        return Resultado.exito(orden)

    # ---- Otras mutaciones ----
    def reasignar_tecnico(self, orden_id, tecnico, actor) -> Resultado[Orden]:
        try:
            orden = self.repositorio.obtener(orden_id)
            if not self.politica.puede_modificar_orden(actor, orden):
                return Resultado.falla(Prohibido(f"Sin permisos para reasignar la orden {orden.folio}"))
            anterior_id = orden.tecnico_id
            nuevo_id = getattr(tecnico, "pk", None)
            if anterior_id == nuevo_id:
                return Resultado.exito(orden)
            self.repositorio.actualizar(orden, tecnico=tecnico)
        except ErrorTaller as exc:
            return Resultado.falla(exc)

        self.eventos.emit(
            TipoEvento.TECNICO_REASIGNADO,
            _contexto(orden, actor, tecnico_anterior_id=anterior_id, tecnico_nuevo_id=nuevo_id),
        )
        return Resultado.exito(orden)

    def cambiar_prioridad(self, orden_id, prioridad: str, actor) -> Resultado[Orden]:
        if prioridad not in Prioridad.values:
            return Resultado.falla(DatosInvalidos(f"Prioridad desconocida: {prioridad}"))
        try:
            orden = self.repositorio.obtener(orden_id)
            if not self.politica.puede_modificar_orden(actor, orden):
                return Resultado.falla(Prohibido(f"Sin permisos para modificar la orden {orden.folio}"))
            anterior = orden.prioridad
            if anterior == prioridad:
                return Resultado.exito(orden)
            self.repositorio.actualizar(orden, prioridad=prioridad)
        except ErrorTaller as exc:
            return Resultado.falla(exc)

        if prioridad == Prioridad.URGENTE:
            self.eventos.emit(
                TipoEvento.PRIORIDAD_ESCALADA, _contexto(orden, actor, prioridad_anterior=anterior)
            )
        return Resultado.exito(orden)

    def actualizar_cotizacion(self, orden_id, monto, actor) -> Resultado[Orden]:
        try:
            monto = Decimal(str(monto))
            if not monto.is_finite():
                raise InvalidOperation
            monto = monto.quantize(CENTAVO)
        except (InvalidOperation, ValueError):
            return Resultado.falla(DatosInvalidos(f"Monto inválido: {monto}"))
        if monto < 0:
            return Resultado.falla(DatosInvalidos("El monto no puede ser negativo"))
        if monto >= MONTO_MAXIMO:
            return Resultado.falla(DatosInvalidos(f"El monto excede el máximo permitido: {monto}"))
        try:
            orden = self.repositorio.obtener(orden_id)
            if not self.politica.puede_modificar_orden(actor, orden):
                return Resultado.falla(Prohibido(f"Sin permisos para cotizar la orden {orden.folio}"))
            anterior = orden.cotizacion
            if anterior == monto:
                return Resultado.exito(orden)
            self.repositorio.actualizar(orden, cotizacion=monto)
        except ErrorTaller as exc:
            return Resultado.falla(exc)

        # Sólo se avisa cuando cambia una cotización ya emitida
        if anterior is not None:
            self.eventos.emit(
                TipoEvento.COTIZACION_MODIFICADA,
                _contexto(orden, actor, monto_anterior=anterior, monto_nuevo=monto),
            )
        return Resultado.exito(orden)
