from celery import shared_task

from .alertas import EscanerAlertas


@shared_task(ignore_result=False)
def ejecutar_alertas_task():
    """Tarea de Celery que ejecuta el escaneo de alertas por tiempo."""
    return EscanerAlertas().ejecutar().como_dict()
