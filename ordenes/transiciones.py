# ordenes/transiciones.py
"""
Tabla de transiciones válidas para las órdenes de servicio.

Flujo principal:
    RECIBIDO → EN_DIAGNOSTICO → EN_REPARACION → REPARADO → LISTO_ENTREGA → ENTREGADO

Los retrocesos (p. ej. EN_REPARACION → EN_DIAGNOSTICO) están permitidos.
CANCELADO es accesible desde cualquier estado salvo ENTREGADO, y sólo puede
reactivarse hacia RECIBIDO. ENTREGADO es terminal.
"""
from types import MappingProxyType

from .models import EstadoOrden as E

TRANSICIONES_VALIDAS = MappingProxyType({
    E.RECIBIDO: frozenset({E.EN_DIAGNOSTICO, E.CANCELADO}),
    E.EN_DIAGNOSTICO: frozenset({
        E.ESPERA_REFACCIONES, E.COTIZACION_PENDIENTE, E.EN_REPARACION, E.RECIBIDO, E.CANCELADO,
    }),
    E.ESPERA_REFACCIONES: frozenset({E.EN_DIAGNOSTICO, E.EN_REPARACION, E.CANCELADO}),
    E.COTIZACION_PENDIENTE: frozenset({E.EN_REPARACION, E.EN_DIAGNOSTICO, E.CANCELADO}),
    E.EN_REPARACION: frozenset({E.REPARADO, E.ESPERA_REFACCIONES, E.EN_DIAGNOSTICO, E.CANCELADO}),
    E.REPARADO: frozenset({E.LISTO_ENTREGA, E.EN_REPARACION, E.CANCELADO}),
    E.LISTO_ENTREGA: frozenset({E.ENTREGADO, E.CANCELADO}),
    E.ENTREGADO: frozenset(),
    E.CANCELADO: frozenset({E.RECIBIDO}),
})

# Notas por defecto para el historial cuando no se indica motivo
NOTAS_TRANSICION = {
    (E.RECIBIDO, E.EN_DIAGNOSTICO): "Equipo pasado a diagnóstico",
    (E.EN_DIAGNOSTICO, E.ESPERA_REFACCIONES): "En espera de refacciones",
    (E.EN_DIAGNOSTICO, E.COTIZACION_PENDIENTE): "Cotización enviada al cliente",
    (E.EN_DIAGNOSTICO, E.EN_REPARACION): "Reparación iniciada",
    (E.COTIZACION_PENDIENTE, E.EN_REPARACION): "Cotización aprobada, reparación iniciada",
    (E.COTIZACION_PENDIENTE, E.CANCELADO): "Cotización rechazada por cliente",
    (E.ESPERA_REFACCIONES, E.EN_REPARACION): "Refacciones recibidas, reparación iniciada",
    (E.EN_REPARACION, E.REPARADO): "Reparación completada",
    (E.REPARADO, E.LISTO_ENTREGA): "Equipo listo para entrega",
    (E.LISTO_ENTREGA, E.ENTREGADO): "Equipo entregado al cliente",
    (E.CANCELADO, E.RECIBIDO): "Orden reactivada",
}


def es_transicion_valida(desde: str, hacia: str) -> bool:
    """True si ``desde == hacia`` (no es transición real) o la arista existe."""
    if desde == hacia:
        return True
    return hacia in TRANSICIONES_VALIDAS.get(desde, frozenset())


def estados_destino(desde: str) -> frozenset:
    return TRANSICIONES_VALIDAS.get(desde, frozenset())


def nota_transicion(desde: str, hacia: str) -> str:
    return NOTAS_TRANSICION.get((desde, hacia), f"Estado cambiado de {desde!s} a {hacia!s}")
