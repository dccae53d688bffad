# notificaciones/services.py
"""
Servicio de notificaciones: alta, consulta paginada y marcado de lectura.

Las operaciones devuelven ``Resultado``; ``NoEncontrado``/``Prohibido`` en
``marcar_leida`` no modifican nada.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone as dt_timezone
from typing import Callable, Iterable, List, Optional

from django.utils import timezone

from accounts.permisos import PoliticaPermisos
from accounts.roles import usuarios_con_rol
from core.errores import DatosInvalidos, ErrorTaller, Prohibido
from core.resultados import Resultado
from ordenes.repositories import persistencia
from .models import Notificacion, PrioridadNotif, TipoNotificacion
from .repositories import Cursor, NotificacionRepository

logger = logging.getLogger(__name__)

LIMITE_POR_DEFECTO = 20
LIMITE_MAXIMO = 50


@dataclass
class PaginaNotificaciones:
    notificaciones: List[Notificacion] = field(default_factory=list)
    siguiente_cursor: Optional[str] = None


# ---------- Cursor ----------
def codificar_cursor(notificacion: Notificacion) -> str:
    return f"{notificacion.creada_en.isoformat()}|{notificacion.pk}"


def decodificar_cursor(cursor: str) -> Cursor:
    """
    Acepta ``"<iso>|<id>"`` o sólo ``"<iso>"``. Lanza ``DatosInvalidos`` si no
    se puede interpretar.
    """
    marca, _, pk = cursor.partition("|")
    try:
        creada_en = datetime.fromisoformat(marca)
        pk = int(pk) if pk else None
    except ValueError as exc:
        raise DatosInvalidos(f"Cursor inválido: {cursor}") from exc
    if timezone.is_naive(creada_en):
        creada_en = timezone.make_aware(creada_en, dt_timezone.utc)
    return creada_en, pk


class ServicioNotificaciones:
    def __init__(
        self,
        repositorio: Optional[NotificacionRepository] = None,
        politica: Optional[PoliticaPermisos] = None,
        reloj: Callable = timezone.now,
    ):
        self.repositorio = repositorio or NotificacionRepository()
        self.politica = politica or PoliticaPermisos()
        self.reloj = reloj

    # ---- Alta ----
    def agregar(
        self,
        usuario_id,
        tipo: str,
        titulo: str,
        mensaje: str = "",
        *,
        prioridad: str = PrioridadNotif.NORMAL,
        orden=None,
        alerta=None,
    ) -> Resultado[Notificacion]:
        if tipo not in TipoNotificacion.values:
            return Resultado.falla(DatosInvalidos(f"Tipo de notificación desconocido: {tipo}"))
        try:
            notificacion = self.repositorio.insertar(
                usuario_id=usuario_id,
                tipo=tipo,
                titulo=titulo,
                mensaje=mensaje,
                prioridad=prioridad,
                orden=orden,
                alerta=alerta,
                creada_en=self.reloj(),
            )
        except ErrorTaller as exc:
            return Resultado.falla(exc)
        return Resultado.exito(notificacion)

    def construir(
        self,
        usuario_ids: Iterable,
        tipo: str,
        titulo: str,
        mensaje: str = "",
        *,
        prioridad: str = PrioridadNotif.NORMAL,
        orden=None,
        alerta=None,
        excluir_usuario_id=None,
    ) -> List[Notificacion]:
        """Instancias sin guardar, una por destinatario distinto."""
        ahora = self.reloj()
        vistos = set()
        notificaciones = []
        for usuario_id in usuario_ids:
            if usuario_id is None or usuario_id == excluir_usuario_id or usuario_id in vistos:
                continue
            vistos.add(usuario_id)
            notificaciones.append(
                Notificacion(
                    usuario_id=usuario_id,
                    tipo=tipo,
                    titulo=titulo,
                    mensaje=mensaje,
                    prioridad=prioridad,
                    orden=orden,
                    alerta=alerta,
                    creada_en=ahora,
                )
            )
        return notificaciones

    def notificar_usuarios(self, usuario_ids: Iterable, tipo: str, titulo: str, mensaje: str = "", **opciones) -> Resultado[int]:
        try:
            creadas = self.repositorio.insertar_varias(
                self.construir(usuario_ids, tipo, titulo, mensaje, **opciones)
            )
        except ErrorTaller as exc:
            logger.error("Error al notificar usuarios (%s): %s", tipo, exc)
            return Resultado.falla(exc)
        return Resultado.exito(creadas)

    def notificar_por_rol(self, roles: Iterable[str], tipo: str, titulo: str, mensaje: str = "", **opciones) -> Resultado[int]:
        """Notifica a los usuarios activos de ``roles``."""
        try:
            with persistencia("buscar usuarios por rol"):
                ids = list(usuarios_con_rol(roles).order_by("pk").values_list("pk", flat=True))
        except ErrorTaller as exc:
            return Resultado.falla(exc)
        return self.notificar_usuarios(ids, tipo, titulo, mensaje, **opciones)

    # ---- Consulta ----
    def listar(
        self,
        usuario,
        *,
        solo_no_leidas: bool = False,
        limite: int = LIMITE_POR_DEFECTO,
        cursor: Optional[str] = None,
    ) -> Resultado[PaginaNotificaciones]:
        try:
            limite = max(1, min(int(limite or LIMITE_POR_DEFECTO), LIMITE_MAXIMO))
        except (TypeError, ValueError):
            return Resultado.falla(DatosInvalidos(f"Límite inválido: {limite}"))
        try:
            posicion = decodificar_cursor(cursor) if cursor else None
            # Se pide uno extra para saber si hay más páginas
            items = self.repositorio.consultar(
                usuario.pk, solo_no_leidas=solo_no_leidas, cursor=posicion, limite=limite + 1
            )
        except ErrorTaller as exc:
            return Resultado.falla(exc)

        hay_mas = len(items) > limite
        items = items[:limite]
        siguiente = codificar_cursor(items[-1]) if hay_mas else None
        return Resultado.exito(PaginaNotificaciones(items, siguiente))

    def contar_no_leidas(self, usuario) -> Resultado[int]:
        try:
            return Resultado.exito(self.repositorio.contar_no_leidas(usuario.pk))
        except ErrorTaller as exc:
            return Resultado.falla(exc)

    # ---- Lectura ----
    def marcar_leida(self, notificacion_id, usuario) -> Resultado[Notificacion]:
        try:
            notificacion = self.repositorio.obtener(notificacion_id)
            if not self.politica.puede_ver_notificacion(usuario, notificacion):
                return Resultado.falla(Prohibido("La notificación pertenece a otro usuario"))
            if notificacion.leida:
                return Resultado.exito(notificacion)
            return Resultado.exito(self.repositorio.marcar_leida(notificacion, self.reloj()))
        except ErrorTaller as exc:
            return Resultado.falla(exc)

    def marcar_todas_leidas(self, usuario) -> Resultado[int]:
        try:
            return Resultado.exito(self.repositorio.marcar_todas_leidas(usuario.pk, self.reloj()))
        except ErrorTaller as exc:
            return Resultado.falla(exc)
