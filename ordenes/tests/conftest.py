# ordenes/tests/conftest.py
from datetime import datetime, timezone as dt_timezone

import pytest
from django.contrib.auth.models import Group

from accounts.roles import Rol
from ordenes.models import Orden
from ordenes.services import ServicioOrdenes

AHORA = datetime(2026, 3, 2, 10, 0, tzinfo=dt_timezone.utc)


def _usuario(django_user_model, username, rol):
    u = django_user_model.objects.create_user(username=username, password="x", is_active=True)
    grp, _ = Group.objects.get_or_create(name=rol.value)
    u.groups.add(grp)
    return u


@pytest.fixture
def coordinador(django_user_model):
    return _usuario(django_user_model, "coord1", Rol.COORD_SERVICIO)


@pytest.fixture
def tecnico(django_user_model):
    return _usuario(django_user_model, "tecnico1", Rol.TECNICO)


@pytest.fixture
def otro_tecnico(django_user_model):
    return _usuario(django_user_model, "tecnico2", Rol.TECNICO)


@pytest.fixture
def refacciones(django_user_model):
    return _usuario(django_user_model, "almacen1", Rol.REFACCIONES)


@pytest.fixture
def orden(tecnico, coordinador):
    """Orden recién recibida, asignada a ``tecnico``."""
    return Orden.objects.create(
        folio="OS-2026-0001",
        cliente_nombre="Carnicería La Esperanza",
        marca_equipo="TORREY",
        modelo_equipo="L-EQ 10",
        creado_por=coordinador,
        tecnico=tecnico,
        recibido_en=AHORA,
        creada_en=AHORA,
        ultimo_movimiento_en=AHORA,
    )


class ColectorEventos:
    """Sink de eventos en memoria."""

    def __init__(self):
        self.eventos = []

    def emit(self, tipo, payload):
        self.eventos.append((tipo, payload))

    @property
    def tipos(self):
        return [tipo for tipo, _ in self.eventos]


class Reloj:
    """Reloj manual: cada llamada devuelve la hora actual fijada."""

    def __init__(self, ahora=AHORA):
        self.ahora = ahora

    def __call__(self):
        return self.ahora

    def avanzar(self, delta):
        self.ahora = self.ahora + delta


@pytest.fixture
def eventos():
    return ColectorEventos()


@pytest.fixture
def reloj():
    return Reloj()


@pytest.fixture
def servicio(eventos, reloj):
    return ServicioOrdenes(eventos=eventos, reloj=reloj)
