# notificaciones/tests/test_alertas.py
from datetime import timedelta
from io import StringIO

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError
from django.utils import timezone

from core.errores import RepositorioNoDisponible
from notificaciones.alertas import EscanerAlertas
from notificaciones.models import AlertaOrden, Notificacion, PrioridadNotif, TipoNotificacion
from notificaciones.repositories import NotificacionRepository
from notificaciones.tasks import ejecutar_alertas_task
from ordenes.models import EstadoOrden
from ordenes.repositories import OrdenRepository

from .conftest import AHORA

pytestmark = pytest.mark.django_db


@pytest.fixture
def escaner(reloj):
    return EscanerAlertas(reloj=reloj, cooldown_horas=24)


@pytest.fixture
def orden_sin_recoger(crear_orden):
    return crear_orden(
        EstadoOrden.LISTO_ENTREGA,
        listo_en=AHORA - timedelta(days=6),
        ultimo_movimiento_en=AHORA - timedelta(days=1),
        recibido_en=AHORA - timedelta(days=6),
    )


@pytest.fixture
def orden_diagnostico_atrasado(crear_orden):
    return crear_orden(
        EstadoOrden.EN_DIAGNOSTICO,
        diagnostico_en=AHORA - timedelta(hours=73),
        ultimo_movimiento_en=AHORA - timedelta(hours=73),
    )


def test_alerta_roja_notifica_a_coordinacion(escaner, orden_sin_recoger, coordinador, admin, tecnico):
    resumen = escaner.ejecutar()

    assert resumen.ordenes_revisadas == 1
    assert resumen.alertas_creadas == 1
    assert resumen.notificaciones_creadas == 2
    assert resumen.fallos == []

    alerta = AlertaOrden.objects.get()
    assert alerta.tipo == TipoNotificacion.ALERTA_ROJO
    assert alerta.ventana == 0
    assert alerta.abierta

    notificaciones = Notificacion.objects.filter(alerta=alerta)
    assert set(notificaciones.values_list("usuario_id", flat=True)) == {coordinador.pk, admin.pk}
    n = notificaciones.first()
    assert n.prioridad == PrioridadNotif.ALTA
    assert n.titulo == f"🔴 Equipo sin recoger: {orden_sin_recoger.folio}"
    assert "6 días listo" in n.mensaje


def test_alerta_amarilla_incluye_al_tecnico(escaner, orden_diagnostico_atrasado, coordinador, tecnico):
    escaner.ejecutar()

    alerta = AlertaOrden.objects.get(tipo=TipoNotificacion.ALERTA_AMARILLO)
    usuarios = set(alerta.notificaciones.values_list("usuario_id", flat=True))
    assert usuarios == {coordinador.pk, tecnico.pk}
    assert "73h sin avance. Técnico: Luis Pérez" in alerta.notificaciones.first().mensaje


def test_orden_dentro_de_plazo_no_genera_alertas(escaner, crear_orden, coordinador):
    crear_orden(EstadoOrden.EN_DIAGNOSTICO, diagnostico_en=AHORA - timedelta(hours=71))

    resumen = escaner.ejecutar()

    assert resumen.ordenes_revisadas == 1
    assert resumen.alertas_creadas == 0
    assert not Notificacion.objects.exists()


def test_ordenes_cerradas_no_se_revisan(escaner, crear_orden, coordinador):
    crear_orden(EstadoOrden.ENTREGADO, ultimo_movimiento_en=AHORA - timedelta(days=60))
    crear_orden(EstadoOrden.CANCELADO, ultimo_movimiento_en=AHORA - timedelta(days=60))

    resumen = escaner.ejecutar()

    assert resumen.ordenes_revisadas == 0
    assert not AlertaOrden.objects.exists()


def test_escaneo_repetido_no_duplica(escaner, orden_sin_recoger, coordinador):
    escaner.ejecutar()
    total = Notificacion.objects.count()

    segundo = escaner.ejecutar()

    assert segundo.alertas_creadas == 0
    assert segundo.alertas_omitidas == 1
    assert Notificacion.objects.count() == total
    assert AlertaOrden.objects.count() == 1


def test_sin_actividad(escaner, crear_orden, coordinador, tecnico, settings):
    crear_orden(EstadoOrden.EN_REPARACION, ultimo_movimiento_en=AHORA - timedelta(days=8))

    settings.ALERTAS_DIAS_SIN_ACTIVIDAD = 10
    assert escaner.ejecutar().alertas_creadas == 0

    settings.ALERTAS_DIAS_SIN_ACTIVIDAD = 7
    escaner.ejecutar()
    alerta = AlertaOrden.objects.get()
    assert alerta.tipo == TipoNotificacion.ALERTA_SIN_ACTIVIDAD
    assert alerta.notificaciones.filter(usuario=tecnico, prioridad=PrioridadNotif.BAJA).exists()


def test_alerta_se_resuelve_cuando_deja_de_aplicar(escaner, orden_diagnostico_atrasado, coordinador):
    escaner.ejecutar()
    orden = orden_diagnostico_atrasado
    orden.estado = EstadoOrden.EN_REPARACION
    orden.ultimo_movimiento_en = AHORA
    orden.save()

    resumen = escaner.ejecutar()

    assert resumen.alertas_resueltas == 1
    alerta = AlertaOrden.objects.get()
    assert alerta.resuelta
    assert alerta.resuelta_en == AHORA

    # Vuelve a incumplir: nueva ventana
    orden.estado = EstadoOrden.EN_DIAGNOSTICO
    orden.save()
    escaner.ejecutar()
    assert list(
        AlertaOrden.objects.filter(orden=orden).order_by("ventana").values_list("ventana", "resuelta")
    ) == [(0, True), (1, False)]


def test_alertas_de_ordenes_cerradas_se_resuelven(escaner, orden_sin_recoger, coordinador):
    escaner.ejecutar()
    orden_sin_recoger.estado = EstadoOrden.ENTREGADO
    orden_sin_recoger.save()

    resumen = escaner.ejecutar()

    assert resumen.ordenes_revisadas == 0
    assert resumen.alertas_resueltas == 1
    assert AlertaOrden.objects.get().resuelta


def test_alerta_leida_se_repite_tras_el_periodo_de_espera(escaner, reloj, orden_sin_recoger, coordinador):
    escaner.ejecutar()
    Notificacion.objects.update(leida=True)

    reloj.avanzar(timedelta(hours=23))
    assert escaner.ejecutar().alertas_creadas == 0

    reloj.avanzar(timedelta(hours=2))
    resumen = escaner.ejecutar()

    assert resumen.alertas_creadas == 1
    assert resumen.alertas_resueltas == 1
    ventanas = list(AlertaOrden.objects.order_by("ventana").values_list("ventana", "resuelta"))
    assert ventanas == [(0, True), (1, False)]
    assert Notificacion.objects.filter(leida=False).count() == 1


def test_alerta_no_leida_no_se_repite(escaner, reloj, orden_sin_recoger, coordinador):
    escaner.ejecutar()
    reloj.avanzar(timedelta(days=3))

    resumen = escaner.ejecutar()

    assert resumen.alertas_creadas == 0
    assert resumen.alertas_omitidas == 1
    assert AlertaOrden.objects.count() == 1


# ---------- Concurrencia ----------
def test_crear_alerta_duplicada_devuelve_none(orden_sin_recoger):
    repo = NotificacionRepository()
    primera = repo.crear_alerta(orden_sin_recoger, TipoNotificacion.ALERTA_ROJO, 0, AHORA)
    segunda = repo.crear_alerta(orden_sin_recoger, TipoNotificacion.ALERTA_ROJO, 0, AHORA)

    assert primera is not None
    assert segunda is None
    assert AlertaOrden.objects.count() == 1


class LecturaObsoleta(NotificacionRepository):
    """Simula un escaneo simultáneo que no ve la alerta recién creada por otro."""

    def alerta_abierta(self, orden_id, tipo):
        return None


def test_escaneos_simultaneos_no_duplican(reloj, orden_sin_recoger, coordinador):
    EscanerAlertas(reloj=reloj).ejecutar()
    total = Notificacion.objects.count()

    resumen = EscanerAlertas(notificaciones=LecturaObsoleta(), reloj=reloj).ejecutar()

    assert resumen.alertas_creadas == 0
    assert resumen.alertas_omitidas == 1
    assert AlertaOrden.objects.count() == 1
    assert Notificacion.objects.count() == total


# ---------- Fallos ----------
class FallaEnUnaOrden(NotificacionRepository):
    def __init__(self, orden_id):
        self.orden_id = orden_id

    def alerta_abierta(self, orden_id, tipo):
        if orden_id == self.orden_id:
            raise RepositorioNoDisponible("timeout")
        return super().alerta_abierta(orden_id, tipo)


def test_fallo_de_una_orden_no_detiene_el_escaneo(reloj, orden_sin_recoger, orden_diagnostico_atrasado, coordinador):
    escaner = EscanerAlertas(notificaciones=FallaEnUnaOrden(orden_sin_recoger.pk), reloj=reloj)

    resumen = escaner.ejecutar()

    assert resumen.ordenes_revisadas == 2
    assert len(resumen.fallos) == 1
    assert resumen.fallos[0].folio == orden_sin_recoger.folio
    assert resumen.alertas_creadas == 1
    assert AlertaOrden.objects.get().orden == orden_diagnostico_atrasado


class ListadoCaido(OrdenRepository):
    def listar_activas(self):
        raise RepositorioNoDisponible("sin conexión")


def test_sin_listado_el_escaneo_falla(reloj):
    with pytest.raises(RepositorioNoDisponible):
        EscanerAlertas(ordenes=ListadoCaido(), reloj=reloj).ejecutar()


# ---------- Entradas ----------
@pytest.fixture
def orden_vencida_hoy(crear_orden):
    ahora = timezone.now()
    return crear_orden(
        EstadoOrden.LISTO_ENTREGA,
        listo_en=ahora - timedelta(days=6),
        recibido_en=ahora - timedelta(days=6),
        creada_en=ahora - timedelta(days=6),
        ultimo_movimiento_en=ahora - timedelta(days=1),
    )


def test_comando_ejecutar_alertas(orden_vencida_hoy, coordinador):
    out = StringIO()
    call_command("ejecutar_alertas", stdout=out)
    assert "alertas creadas: 1" in out.getvalue()


def test_comando_con_base_caida(monkeypatch):
    monkeypatch.setattr(OrdenRepository, "listar_activas", ListadoCaido.listar_activas)
    with pytest.raises(CommandError):
        call_command("ejecutar_alertas")


def test_tarea_devuelve_resumen(orden_vencida_hoy, coordinador):
    resumen = ejecutar_alertas_task()
    assert resumen["alertas_creadas"] == 1
    assert resumen["fallos"] == []
    assert resumen["ejecutado_en"]


def test_intervalo_de_alertas_por_defecto(monkeypatch):
    from taller.celery import app, intervalo_alertas

    monkeypatch.delenv("ALERTAS_INTERVALO_MINUTOS", raising=False)
    assert intervalo_alertas() == timedelta(minutes=60)
    assert isinstance(app.conf.beat_schedule["ejecutar-alertas-ordenes"]["schedule"], timedelta)


@pytest.mark.parametrize("minutos", [45, 120])
def test_intervalo_de_alertas_configurable(monkeypatch, minutos):
    from taller.celery import intervalo_alertas

    monkeypatch.setenv("ALERTAS_INTERVALO_MINUTOS", str(minutos))
    assert intervalo_alertas() == timedelta(minutes=minutos)


@pytest.mark.parametrize("valor", ["0", "-5", "cada hora"])
def test_intervalo_de_alertas_invalido(monkeypatch, valor):
    from django.core.exceptions import ImproperlyConfigured

    from taller.celery import intervalo_alertas

    monkeypatch.setenv("ALERTAS_INTERVALO_MINUTOS", valor)
    with pytest.raises(ImproperlyConfigured):
        intervalo_alertas()
