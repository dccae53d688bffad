# core/errores.py
"""
Taxonomía de errores del núcleo del taller.

Los servicios no dejan escapar estos errores: los devuelven dentro de un
``Resultado`` (ver ``core.resultados``). La única excepción es el escaneo de
alertas, que aborta con ``RepositorioNoDisponible`` si no puede listar órdenes.
"""


class ErrorTaller(Exception):
    """Base de todos los errores del dominio."""

    codigo = "ERROR"

    def __init__(self, mensaje: str = ""):
        super().__init__(mensaje or self.__class__.__doc__ or self.codigo)
        self.mensaje = str(self)


class TransicionInvalida(ErrorTaller):
    """La transición solicitada no existe en la tabla de transiciones."""

    codigo = "TRANSICION_INVALIDA"

    def __init__(self, desde: str, hacia: str):
        self.desde = desde
        self.hacia = hacia
        super().__init__(f"Transición inválida: {desde!s} → {hacia!s}")


class Prohibido(ErrorTaller):
    """El actor no tiene permisos para esta operación."""

    codigo = "PROHIBIDO"


class NoEncontrado(ErrorTaller):
    """La entidad solicitada no existe."""

    codigo = "NO_ENCONTRADO"


class Conflicto(ErrorTaller):
    """Otra operación concurrente modificó la entidad primero."""

    codigo = "CONFLICTO"


class RepositorioNoDisponible(ErrorTaller):
    """Falla transitoria de la capa de persistencia (reintentable)."""

    codigo = "REPOSITORIO_NO_DISPONIBLE"


class DatosInvalidos(ErrorTaller):
    """Los datos recibidos no son válidos."""

    codigo = "DATOS_INVALIDOS"
