from django.contrib import admin
from django.utils.html import format_html

from .models import HistorialEstado, Orden
from .semaforo import Semaforo, calcular_semaforo

COLORES_SEMAFORO = {
    Semaforo.ROJO: "#DC2626",
    Semaforo.NARANJA: "#EA580C",
    Semaforo.AMARILLO: "#CA8A04",
    Semaforo.VERDE: "#16A34A",
    Semaforo.AZUL: "#2563EB",
}


class HistorialEstadoInline(admin.TabularInline):
    model = HistorialEstado
    extra = 0
    can_delete = False
    readonly_fields = ("estado_anterior", "estado_nuevo", "usuario", "motivo", "timestamp")

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Orden)
class OrdenAdmin(admin.ModelAdmin):
    list_display = ("folio", "estado", "semaforo", "prioridad", "tipo_servicio", "tecnico", "creada_en")
    list_filter = ("estado", "prioridad", "tipo_servicio")
    search_fields = ("folio", "cliente_nombre", "marca_equipo", "modelo_equipo")
    # El estado sólo cambia a través de ServicioOrdenes.transicionar
    readonly_fields = (
        "estado", "recibido_en", "diagnostico_en", "cotizacion_en", "reparado_en",
        "listo_en", "entregado_en", "cancelado_en", "creada_en", "ultimo_movimiento_en",
    )
    inlines = [HistorialEstadoInline]

    @admin.display(description="Semáforo")
    def semaforo(self, obj):
        color = calcular_semaforo(obj)
        return format_html(
            '<span style="color:{};font-weight:bold">●</span> {}', COLORES_SEMAFORO[color], color.label
        )


@admin.register(HistorialEstado)
class HistorialEstadoAdmin(admin.ModelAdmin):
    list_display = ("orden", "estado_anterior", "estado_nuevo", "usuario", "timestamp")
    list_filter = ("estado_nuevo",)
    search_fields = ("orden__folio", "motivo")

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
