from django.core.management.base import BaseCommand, CommandError

from core.errores import RepositorioNoDisponible
from notificaciones.alertas import EscanerAlertas


class Command(BaseCommand):
    """Ejecuta una vez el escaneo de alertas por tiempo.

    Útil para cron del sistema cuando no se usa Celery beat, o para revisar
    manualmente qué alertas se generarían. ``--cooldown`` sustituye a
    ``ALERTAS_COOLDOWN_HORAS`` sólo para esta ejecución.
    """

    help = "Revisa las órdenes activas y genera las alertas por tiempo pendientes"

    def add_arguments(self, parser):
        parser.add_argument(
            "--cooldown",
            type=int,
            default=None,
            help="Horas antes de repetir una alerta ya leída",
        )

    def handle(self, *args, **opts):
        try:
            resumen = EscanerAlertas(cooldown_horas=opts["cooldown"]).ejecutar()
        except RepositorioNoDisponible as exc:
            raise CommandError(f"Escaneo abortado: {exc}")

        self.stdout.write(self.style.SUCCESS(str(resumen)))
        if resumen.fallos:
            detalle = "\n".join(f"- {f.folio or f.orden_id}: {f.error}" for f in resumen.fallos)
            self.stdout.write(self.style.WARNING("Fallos:\n" + detalle))
