# ordenes/eventos.py
"""
Eventos de dominio de las órdenes.

El núcleo sólo los emite con el contexto completo; quién recibe qué lo decide
``notificaciones.signals``.
"""
import logging

from django.db import models, transaction
from django.dispatch import Signal

logger = logging.getLogger(__name__)

# kwargs: tipo (TipoEvento), payload (dict)
evento_orden = Signal()


class TipoEvento(models.TextChoices):
    ORDEN_CREADA = "ORDEN_CREADA", "Orden creada"
    ESTADO_CAMBIADO = "ESTADO_CAMBIADO", "Estado cambiado"
    ORDEN_CANCELADA = "ORDEN_CANCELADA", "Orden cancelada"
    TECNICO_REASIGNADO = "TECNICO_REASIGNADO", "Técnico reasignado"
    PRIORIDAD_ESCALADA = "PRIORIDAD_ESCALADA", "Prioridad escalada"
    COTIZACION_MODIFICADA = "COTIZACION_MODIFICADA", "Cotización modificada"


class EventSinkSenales:
    """
    Emite los eventos como señal de Django cuando la transacción en curso se
    confirma. Los receptores que fallan se registran en el log y no afectan a
    quien emitió el evento.
    """

    def emit(self, tipo: str, payload: dict) -> None:
        transaction.on_commit(lambda: self._enviar(tipo, payload))

    def _enviar(self, tipo: str, payload: dict) -> None:
        respuestas = evento_orden.send_robust(sender=self.__class__, tipo=tipo, payload=payload)
        for receptor, respuesta in respuestas:
            if isinstance(respuesta, Exception):
                logger.error(
                    "Receptor %r falló procesando %s: %s", receptor, tipo, respuesta,
                    exc_info=(type(respuesta), respuesta, respuesta.__traceback__),
                )
