from django.contrib import admin

from .models import AlertaOrden, Notificacion


@admin.register(AlertaOrden)
class AlertaOrdenAdmin(admin.ModelAdmin):
    list_display = ("orden", "tipo", "ventana", "resuelta", "creada_en", "resuelta_en")
    list_filter = ("tipo", "resuelta")
    search_fields = ("orden__folio",)
    readonly_fields = ("orden", "tipo", "ventana", "creada_en", "resuelta_en")


@admin.register(Notificacion)
class NotificacionAdmin(admin.ModelAdmin):
    list_display = ("usuario", "tipo", "titulo", "prioridad", "leida", "creada_en")
    list_filter = ("tipo", "prioridad", "leida")
    search_fields = ("titulo", "mensaje", "usuario__username", "orden__folio")
    readonly_fields = ("creada_en", "leida_en")
    date_hierarchy = "creada_en"
    list_per_page = 50
