import os
from datetime import timedelta

from celery import Celery
from django.core.exceptions import ImproperlyConfigured

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'taller.settings')

app = Celery('taller')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()


def intervalo_alertas() -> timedelta:
    """Periodo del escaneo de alertas; ``ALERTAS_INTERVALO_MINUTOS`` (60 por defecto)."""
    valor = os.environ.get('ALERTAS_INTERVALO_MINUTOS', '60')
    try:
        minutos = int(valor)
    except ValueError:
        minutos = 0
    if minutos <= 0:
        raise ImproperlyConfigured(f"ALERTAS_INTERVALO_MINUTOS debe ser un entero positivo, no {valor!r}")
    return timedelta(minutes=minutos)


app.conf.beat_schedule = {
    'ejecutar-alertas-ordenes': {
        'task': 'notificaciones.tasks.ejecutar_alertas_task',
        'schedule': intervalo_alertas(),
    }
}
