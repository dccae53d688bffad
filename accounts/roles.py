# accounts/roles.py
from typing import Iterable, Optional

from django.contrib.auth import get_user_model
from django.db import models
from django.db.models import Q


class Rol(models.TextChoices):
    SUPER_ADMIN = "SUPER_ADMIN", "Super administrador"
    COORD_SERVICIO = "COORD_SERVICIO", "Coordinación de servicio"
    TECNICO = "TECNICO", "Técnico"
    REFACCIONES = "REFACCIONES", "Refacciones"


def rol_de(usuario) -> Optional[str]:
    """
    Rol efectivo de un usuario. Los roles son grupos de Django; un superusuario
    cuenta como SUPER_ADMIN aunque no pertenezca al grupo.
    """
    if usuario is None or not getattr(usuario, "is_authenticated", False):
        return None
    if usuario.is_superuser:
        return Rol.SUPER_ADMIN
    nombres = set(usuario.groups.values_list("name", flat=True))
    # Orden de precedencia si el usuario está en varios grupos
    for rol in (Rol.SUPER_ADMIN, Rol.COORD_SERVICIO, Rol.REFACCIONES, Rol.TECNICO):
        if rol.value in nombres:
            return rol
    return None


def usuarios_con_rol(roles: Iterable[str]):
    """Usuarios activos que pertenecen a alguno de ``roles``."""
    roles = [str(r) for r in roles]
    filtro = Q(groups__name__in=roles)
    if Rol.SUPER_ADMIN.value in roles:
        filtro |= Q(is_superuser=True)
    return get_user_model().objects.filter(filtro, is_active=True).distinct()
