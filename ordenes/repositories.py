# ordenes/repositories.py
from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import List

from django.db import DatabaseError, IntegrityError, models, transaction
from django.db.models import F, Value
from django.db.models.functions import Coalesce

from core.errores import Conflicto, NoEncontrado, RepositorioNoDisponible
from .models import ESTADOS_TERMINALES, SELLOS_POR_ESTADO, HistorialEstado, Orden

logger = logging.getLogger(__name__)


@contextmanager
def persistencia(operacion: str):
    """Traduce errores de base de datos a la taxonomía del dominio."""
    try:
        yield
    except IntegrityError as exc:
        raise Conflicto(f"{operacion}: {exc}") from exc
    except DatabaseError as exc:
        logger.warning("Base de datos no disponible en %s: %s", operacion, exc)
        raise RepositorioNoDisponible(f"{operacion}: {exc}") from exc


class OrdenRepository:
    """Acceso a órdenes e historial a través del ORM de Django."""

    def obtener(self, orden_id) -> Orden:
        with persistencia("obtener orden"):
            orden = Orden.objects.select_related("tecnico").filter(pk=orden_id).first()
        if orden is None:
            raise NoEncontrado(f"Orden {orden_id} no encontrada")
        return orden

    def listar_activas(self) -> List[Orden]:
        with persistencia("listar órdenes activas"):
            return list(
                Orden.objects.exclude(estado__in=ESTADOS_TERMINALES)
                .select_related("tecnico")
                .order_by("creada_en", "id")
            )

    def crear(self, **campos) -> Orden:
        with persistencia("crear orden"):
            return Orden.objects.create(**campos)

    def actualizar(self, orden: Orden, **campos) -> Orden:
        with persistencia("actualizar orden"):
            Orden.objects.filter(pk=orden.pk).update(**campos)
        for campo, valor in campos.items():
            setattr(orden, campo, valor)
        return orden

    def guardar_transicion(
        self, orden: Orden, estado_nuevo: str, actor, motivo: str, ahora: datetime
    ) -> HistorialEstado:
        """
        Aplica el cambio de estado y su historial en una sola transacción.

        El UPDATE sólo procede si la fila sigue en el estado leído; si otra
        transición ganó la carrera se lanza ``Conflicto`` y nada se escribe.
        """
        anterior = orden.estado
        campos = {"estado": estado_nuevo, "ultimo_movimiento_en": ahora}
        sello = SELLOS_POR_ESTADO.get(estado_nuevo)
        if sello:
            # Sólo la primera entrada al estado fija el sello
            campos[sello] = Coalesce(F(sello), Value(ahora), output_field=models.DateTimeField())

        with persistencia("guardar transición"), transaction.atomic():
            actualizadas = Orden.objects.filter(pk=orden.pk, estado=anterior).update(**campos)
            if not actualizadas:
                raise Conflicto(
                    f"La orden {orden.folio} ya no está en {anterior}; otra operación la modificó"
                )
            historial = HistorialEstado.objects.create(
                orden=orden,
                estado_anterior=anterior,
                estado_nuevo=estado_nuevo,
                usuario=actor if getattr(actor, "pk", None) else None,
                motivo=motivo[:255],
                timestamp=ahora,
            )
            if sello:
                orden.refresh_from_db(fields=[sello])

        orden.estado = estado_nuevo
        orden.ultimo_movimiento_en = ahora
        return historial
