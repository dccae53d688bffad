# notificaciones/tests/conftest.py
from datetime import datetime, timezone as dt_timezone

import pytest
from django.contrib.auth.models import Group

from accounts.roles import Rol
from ordenes.models import EstadoOrden, Orden

AHORA = datetime(2026, 3, 2, 10, 0, tzinfo=dt_timezone.utc)


def _usuario(django_user_model, username, rol, **extra):
    u = django_user_model.objects.create_user(username=username, password="x", is_active=True, **extra)
    grp, _ = Group.objects.get_or_create(name=rol.value)
    u.groups.add(grp)
    return u


@pytest.fixture
def coordinador(django_user_model):
    return _usuario(django_user_model, "coord1", Rol.COORD_SERVICIO)


@pytest.fixture
def admin(django_user_model):
    return _usuario(django_user_model, "admin1", Rol.SUPER_ADMIN)


@pytest.fixture
def tecnico(django_user_model):
    return _usuario(django_user_model, "tecnico1", Rol.TECNICO, first_name="Luis", last_name="Pérez")


@pytest.fixture
def refacciones(django_user_model):
    return _usuario(django_user_model, "almacen1", Rol.REFACCIONES)


@pytest.fixture
def crear_orden(tecnico):
    """Fábrica de órdenes; por defecto asignadas a ``tecnico``."""
    contador = {"n": 0}

    def _crear(estado=EstadoOrden.RECIBIDO, **campos):
        contador["n"] += 1
        campos.setdefault("tecnico", tecnico)
        campos.setdefault("recibido_en", AHORA)
        campos.setdefault("creada_en", AHORA)
        campos.setdefault("ultimo_movimiento_en", AHORA)
        return Orden.objects.create(
            folio=f"OS-2026-{contador['n']:04d}",
            estado=estado,
            marca_equipo="TORREY",
            modelo_equipo="L-EQ 10",
            cliente_nombre="Cliente Prueba",
            **campos,
        )

    return _crear


class Reloj:
    def __init__(self, ahora=AHORA):
        self.ahora = ahora

    def __call__(self):
        return self.ahora

    def avanzar(self, delta):
        self.ahora = self.ahora + delta


@pytest.fixture
def reloj():
    return Reloj()
