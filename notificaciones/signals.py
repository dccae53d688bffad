# notificaciones/signals.py
"""
Receptores de eventos de órdenes: deciden a quién notificar cada evento.

Son "best effort": un error aquí se registra y no afecta a la operación que
originó el evento.
"""
import logging

from django.dispatch import receiver

from accounts.roles import Rol
from ordenes.eventos import TipoEvento, evento_orden
from ordenes.models import EstadoOrden
from .models import PrioridadNotif, TipoNotificacion
from .services import ServicioNotificaciones

logger = logging.getLogger(__name__)

COORDINACION = (Rol.COORD_SERVICIO, Rol.SUPER_ADMIN)


def _registrar(p: dict, resultado) -> None:
    if not resultado.ok:
        logger.error("No se pudo notificar sobre la orden %s: %s", p.get("folio"), resultado.error)


def _orden_creada(servicio: ServicioNotificaciones, p: dict):
    _registrar(p, servicio.notificar_por_rol(
        COORDINACION,
        TipoNotificacion.ORDEN_CREADA,
        "🔵 Nueva orden creada",
        f"Se creó la orden {p['folio']} para {p['equipo']}",
        orden=p["orden"],
        excluir_usuario_id=p["actor_id"],
    ))


# Destinatarios por estado nuevo: (roles, incluir técnico, título, mensaje, prioridad)
_AVISOS_ESTADO = {
    EstadoOrden.EN_DIAGNOSTICO: (
        (), True, "📋 Orden asignada para diagnóstico",
        "Se te asignó la orden {folio} para diagnóstico ({equipo})", PrioridadNotif.NORMAL,
    ),
    EstadoOrden.ESPERA_REFACCIONES: (
        (Rol.REFACCIONES, Rol.COORD_SERVICIO), False, "🟠 Orden necesita refacciones",
        "La orden {folio} necesita refacciones ({equipo})", PrioridadNotif.ALTA,
    ),
    EstadoOrden.COTIZACION_PENDIENTE: (
        COORDINACION, False, "🟡 Cotización pendiente de aprobación",
        "Cotización pendiente de aprobación para {folio} ({equipo})", PrioridadNotif.NORMAL,
    ),
    EstadoOrden.EN_REPARACION: (
        (), True, "🔧 Puedes iniciar la reparación",
        "Puedes iniciar la reparación de {folio} ({equipo})", PrioridadNotif.NORMAL,
    ),
    EstadoOrden.REPARADO: (
        COORDINACION, False, "✅ Reparación completada",
        "El técnico completó la reparación de {folio} ({equipo})", PrioridadNotif.NORMAL,
    ),
    EstadoOrden.LISTO_ENTREGA: (
        COORDINACION, False, "📦 Orden lista para entrega",
        "Orden {folio} lista para entrega al cliente ({equipo})", PrioridadNotif.NORMAL,
    ),
    EstadoOrden.ENTREGADO: (
        COORDINACION, False, "🎉 Orden entregada",
        "Orden {folio} entregada al cliente ({equipo})", PrioridadNotif.NORMAL,
    ),
}


def _estado_cambiado(servicio: ServicioNotificaciones, p: dict):
    aviso = _AVISOS_ESTADO.get(p["estado_nuevo"])
    if aviso is None:
        return
    roles, incluir_tecnico, titulo, plantilla, prioridad = aviso
    opciones = dict(orden=p["orden"], prioridad=prioridad, excluir_usuario_id=p["actor_id"])
    mensaje = plantilla.format(**p)
    if roles:
        _registrar(p, servicio.notificar_por_rol(
            roles, TipoNotificacion.ESTADO_CAMBIADO, titulo, mensaje, **opciones
        ))
    if incluir_tecnico and p["tecnico_id"]:
        _registrar(p, servicio.notificar_usuarios(
            [p["tecnico_id"]], TipoNotificacion.ESTADO_CAMBIADO, titulo, mensaje, **opciones
        ))


def _orden_cancelada(servicio: ServicioNotificaciones, p: dict):
    titulo = "❌ Orden cancelada"
    mensaje = f"La orden {p['folio']} ha sido cancelada ({p['equipo']})"
    opciones = dict(orden=p["orden"], prioridad=PrioridadNotif.ALTA, excluir_usuario_id=p["actor_id"])
    if p["tecnico_id"]:
        _registrar(p, servicio.notificar_usuarios(
            [p["tecnico_id"]], TipoNotificacion.ORDEN_CANCELADA, titulo, mensaje, **opciones
        ))
    _registrar(p, servicio.notificar_por_rol(
        COORDINACION, TipoNotificacion.ORDEN_CANCELADA, titulo, mensaje, **opciones
    ))
    if p.get("estado_anterior") == EstadoOrden.ESPERA_REFACCIONES:
        _registrar(p, servicio.notificar_por_rol(
            (Rol.REFACCIONES,),
            TipoNotificacion.ORDEN_CANCELADA,
            "❌ Orden cancelada (refacciones ya no requeridas)",
            f"La orden {p['folio']} que esperaba refacciones ha sido cancelada",
            **opciones,
        ))


def _tecnico_reasignado(servicio: ServicioNotificaciones, p: dict):
    opciones = dict(orden=p["orden"], excluir_usuario_id=p["actor_id"])
    if p["tecnico_anterior_id"]:
        _registrar(p, servicio.notificar_usuarios(
            [p["tecnico_anterior_id"]],
            TipoNotificacion.TECNICO_REASIGNADO,
            "🔄 Orden reasignada",
            f"La orden {p['folio']} ha sido reasignada a otro técnico",
            **opciones,
        ))
    if p["tecnico_nuevo_id"]:
        _registrar(p, servicio.notificar_usuarios(
            [p["tecnico_nuevo_id"]],
            TipoNotificacion.TECNICO_REASIGNADO,
            "📋 Nueva orden asignada",
            f"Se te asignó la orden {p['folio']} ({p['equipo']})",
            **opciones,
        ))


def _prioridad_escalada(servicio: ServicioNotificaciones, p: dict):
    if not p["tecnico_id"]:
        return
    _registrar(p, servicio.notificar_usuarios(
        [p["tecnico_id"]],
        TipoNotificacion.PRIORIDAD_URGENTE,
        "🚨 ORDEN URGENTE",
        f"La orden {p['folio']} ha sido marcada como URGENTE ({p['equipo']})",
        orden=p["orden"],
        prioridad=PrioridadNotif.URGENTE,
        excluir_usuario_id=p["actor_id"],
    ))


def _cotizacion_modificada(servicio: ServicioNotificaciones, p: dict):
    _registrar(p, servicio.notificar_por_rol(
        COORDINACION,
        TipoNotificacion.COTIZACION_MODIFICADA,
        "💰 Cotización modificada",
        f"La cotización de {p['folio']} cambió de ${p['monto_anterior']:,.2f} a ${p['monto_nuevo']:,.2f}",
        orden=p["orden"],
        excluir_usuario_id=p["actor_id"],
    ))


MANEJADORES = {
    TipoEvento.ORDEN_CREADA: _orden_creada,
    TipoEvento.ESTADO_CAMBIADO: _estado_cambiado,
    TipoEvento.ORDEN_CANCELADA: _orden_cancelada,
    TipoEvento.TECNICO_REASIGNADO: _tecnico_reasignado,
    TipoEvento.PRIORIDAD_ESCALADA: _prioridad_escalada,
    TipoEvento.COTIZACION_MODIFICADA: _cotizacion_modificada,
}


@receiver(evento_orden)
def notificar_evento_orden(sender, tipo, payload, **kwargs):
    manejador = MANEJADORES.get(tipo)
    if manejador is None:
        return
    try:
        manejador(ServicioNotificaciones(), payload)
    except Exception:
        logger.exception("Error notificando evento %s de la orden %s", tipo, payload.get("folio"))
