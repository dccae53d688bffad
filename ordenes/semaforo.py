# ordenes/semaforo.py
"""
Semáforo de urgencia de una orden.

Las reglas de tiempo de este módulo son las mismas que usa el escaneo de
alertas (``notificaciones.alertas``); ambos deben importar los umbrales de aquí.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from django.conf import settings
from django.db import models
from django.utils import timezone

from .models import EstadoOrden, Orden

# ====================== Umbrales ======================
HORAS_LIMITE_COTIZACION = 72   # Amarillo: sin cotización tras iniciar diagnóstico
DIAS_LIMITE_RECOLECCION = 5    # Rojo: listo para entrega y sin recoger
DIAS_SIN_ACTIVIDAD = 7         # Alerta sin color: orden activa sin movimiento


class Semaforo(models.TextChoices):
    ROJO = "ROJO", "Crítico"
    NARANJA = "NARANJA", "Esperando refacciones"
    AMARILLO = "AMARILLO", "Atención"
    VERDE = "VERDE", "Normal"
    AZUL = "AZUL", "Nuevo"


def dias_sin_actividad() -> int:
    return int(getattr(settings, "ALERTAS_DIAS_SIN_ACTIVIDAD", DIAS_SIN_ACTIVIDAD))


# ====================== Reglas ======================
def recoleccion_vencida(orden: Orden, ahora: datetime) -> bool:
    """Listo para entrega hace más de ``DIAS_LIMITE_RECOLECCION`` días."""
    if orden.estado != EstadoOrden.LISTO_ENTREGA:
        return False
    desde = orden.listo_en or orden.recibido_en
    if desde is None:
        return False
    return ahora - desde > timedelta(days=DIAS_LIMITE_RECOLECCION)


def cotizacion_vencida(orden: Orden, ahora: datetime) -> bool:
    """
    En diagnóstico sin cotización emitida tras ``HORAS_LIMITE_COTIZACION`` horas,
    o con la cotización pendiente de aprobación por más de ese tiempo.
    """
    limite = timedelta(hours=HORAS_LIMITE_COTIZACION)
    if orden.estado == EstadoOrden.EN_DIAGNOSTICO:
        if orden.cotizacion_en is not None or orden.diagnostico_en is None:
            return False
        return ahora - orden.diagnostico_en > limite
    if orden.estado == EstadoOrden.COTIZACION_PENDIENTE:
        if orden.cotizacion_en is None:
            return False
        return ahora - orden.cotizacion_en > limite
    return False


def sin_actividad(orden: Orden, ahora: datetime, dias: Optional[int] = None) -> bool:
    if not orden.activa or orden.ultimo_movimiento_en is None:
        return False
    dias = dias_sin_actividad() if dias is None else dias
    return ahora - orden.ultimo_movimiento_en > timedelta(days=dias)


# ====================== Cálculo ======================
def calcular_semaforo(orden: Orden, ahora: Optional[datetime] = None) -> Semaforo:
    """
    Devuelve el color del semáforo. Precedencia:
    ROJO > NARANJA > AMARILLO > VERDE > AZUL (gana la primera regla que aplica).
    """
    ahora = ahora or timezone.now()

    if recoleccion_vencida(orden, ahora):
        return Semaforo.ROJO
    if orden.estado == EstadoOrden.ESPERA_REFACCIONES:
        return Semaforo.NARANJA
    if cotizacion_vencida(orden, ahora):
        return Semaforo.AMARILLO
    # Verde: ya hay procesamiento en curso (o la orden salió del flujo)
    if orden.estado != EstadoOrden.RECIBIDO:
        return Semaforo.VERDE
    return Semaforo.AZUL
