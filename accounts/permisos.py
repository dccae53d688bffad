# accounts/permisos.py
from .roles import Rol, rol_de


class PoliticaPermisos:
    """
    Política de acceso que consumen los servicios del núcleo.

    Se inyecta en los servicios para poder sustituirla en pruebas.
    """

    def puede_crear_orden(self, actor) -> bool:
        return rol_de(actor) in (Rol.SUPER_ADMIN, Rol.COORD_SERVICIO)

    def puede_modificar_orden(self, actor, orden) -> bool:
        rol = rol_de(actor)
        if rol in (Rol.SUPER_ADMIN, Rol.COORD_SERVICIO):
            return True
        if rol == Rol.TECNICO:
            return orden.tecnico_id is not None and orden.tecnico_id == actor.pk
        if rol == Rol.REFACCIONES:
            # Sólo órdenes que esperan refacciones
            from ordenes.models import EstadoOrden

            return orden.estado == EstadoOrden.ESPERA_REFACCIONES
        return False

    def puede_ver_notificacion(self, actor, notificacion) -> bool:
        return actor is not None and notificacion.usuario_id == getattr(actor, "pk", None)
