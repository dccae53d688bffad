# notificaciones/repositories.py
from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from django.db import transaction
from django.db.models import Q

from core.errores import Conflicto, NoEncontrado
from ordenes.models import ESTADOS_TERMINALES
from ordenes.repositories import persistencia
from .models import AlertaOrden, Notificacion

# (creada_en, id) de la última notificación de la página anterior
Cursor = Tuple[datetime, Optional[int]]


class NotificacionRepository:
    """Acceso a notificaciones y a la tabla de deduplicación de alertas."""

    # ---- Notificaciones ----
    def insertar(self, **campos) -> Notificacion:
        with persistencia("insertar notificación"):
            return Notificacion.objects.create(**campos)

    def insertar_varias(self, notificaciones: Iterable[Notificacion]) -> int:
        notificaciones = list(notificaciones)
        if not notificaciones:
            return 0
        with persistencia("insertar notificaciones"):
            Notificacion.objects.bulk_create(notificaciones, batch_size=200)
        return len(notificaciones)

    def obtener(self, notificacion_id) -> Notificacion:
        with persistencia("obtener notificación"):
            notificacion = Notificacion.objects.filter(pk=notificacion_id).first()
        if notificacion is None:
            raise NoEncontrado(f"Notificación {notificacion_id} no encontrada")
        return notificacion

    def consultar(
        self,
        usuario_id,
        *,
        solo_no_leidas: bool = False,
        cursor: Optional[Cursor] = None,
        limite: int = 20,
    ) -> List[Notificacion]:
        """
        Notificaciones del usuario de la más nueva a la más antigua.

        Con cursor ``(t, id)`` devuelve las estrictamente anteriores en el orden
        total ``(creada_en, id)``; con ``id`` None compara sólo el tiempo.
        """
        qs = Notificacion.objects.filter(usuario_id=usuario_id)
        if solo_no_leidas:
            qs = qs.filter(leida=False)
        if cursor is not None:
            creada_en, pk = cursor
            if pk is None:
                qs = qs.filter(creada_en__lt=creada_en)
            else:
                qs = qs.filter(Q(creada_en__lt=creada_en) | Q(creada_en=creada_en, pk__lt=pk))
        with persistencia("consultar notificaciones"):
            return list(qs.select_related("orden").order_by("-creada_en", "-id")[:limite])

    def contar_no_leidas(self, usuario_id) -> int:
        with persistencia("contar notificaciones"):
            return Notificacion.objects.filter(usuario_id=usuario_id, leida=False).count()

    def marcar_leida(self, notificacion: Notificacion, ahora: datetime) -> Notificacion:
        with persistencia("marcar notificación"):
            actualizadas = Notificacion.objects.filter(pk=notificacion.pk, leida=False).update(
                leida=True, leida_en=ahora
            )
        if actualizadas:
            notificacion.leida = True
            notificacion.leida_en = ahora
        return notificacion

    def marcar_todas_leidas(self, usuario_id, ahora: datetime) -> int:
        with persistencia("marcar todas las notificaciones"):
            return Notificacion.objects.filter(usuario_id=usuario_id, leida=False).update(
                leida=True, leida_en=ahora
            )

    # ---- Alertas (deduplicación) ----
    def alerta_abierta(self, orden_id, tipo: str) -> Optional[AlertaOrden]:
        with persistencia("buscar alerta abierta"):
            return (
                AlertaOrden.objects.filter(orden_id=orden_id, tipo=tipo, resuelta=False)
                .order_by("-ventana")
                .first()
            )

    def ultima_ventana_resuelta(self, orden_id, tipo: str) -> Optional[int]:
        with persistencia("buscar ventana de alerta"):
            return (
                AlertaOrden.objects.filter(orden_id=orden_id, tipo=tipo, resuelta=True)
                .order_by("-ventana")
                .values_list("ventana", flat=True)
                .first()
            )

    def crear_alerta(self, orden, tipo: str, ventana: int, ahora: datetime) -> Optional[AlertaOrden]:
        """
        Inserta la alerta o devuelve None si la llave ``(orden, tipo, ventana)``
        ya existe, es decir, si otro escaneo la creó primero.
        """
        try:
            with persistencia("crear alerta"), transaction.atomic():
                return AlertaOrden.objects.create(orden=orden, tipo=tipo, ventana=ventana, creada_en=ahora)
        except Conflicto:
            return None

    def resolver_alerta(self, alerta: AlertaOrden, ahora: datetime) -> AlertaOrden:
        with persistencia("resolver alerta"):
            AlertaOrden.objects.filter(pk=alerta.pk, resuelta=False).update(resuelta=True, resuelta_en=ahora)
        alerta.resuelta = True
        alerta.resuelta_en = ahora
        return alerta

    def alerta_leida(self, alerta: AlertaOrden) -> bool:
        """True si todas las notificaciones de la alerta ya se leyeron."""
        with persistencia("revisar lectura de alerta"):
            return not alerta.notificaciones.filter(leida=False).exists()

    def resolver_alertas_inactivas(self, ahora: datetime) -> int:
        """Resuelve las alertas abiertas de órdenes entregadas o canceladas."""
        with persistencia("resolver alertas de órdenes cerradas"):
            return AlertaOrden.objects.filter(
                resuelta=False, orden__estado__in=ESTADOS_TERMINALES
            ).update(resuelta=True, resuelta_en=ahora)
