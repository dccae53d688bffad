# core/resultados.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

from core.errores import ErrorTaller

T = TypeVar("T")


@dataclass(frozen=True)
class Resultado(Generic[T]):
    """
    Resultado discriminado de una operación del núcleo.

    Exactamente uno de ``valor``/``error`` es significativo: si ``error`` es
    None la operación tuvo éxito.
    """

    valor: Optional[T] = None
    error: Optional[ErrorTaller] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def exito(cls, valor: T = None) -> "Resultado[T]":
        return cls(valor=valor)

    @classmethod
    def falla(cls, error: ErrorTaller) -> "Resultado[T]":
        return cls(error=error)

    def unwrap(self) -> T:
        """Devuelve el valor o lanza el error contenido."""
        if self.error is not None:
            raise self.error
        return self.valor
