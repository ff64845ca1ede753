"""
services/exceptions.py
───────────────────────
Errores de negocio del asistente.

Todos llevan un `message` listo para mostrarle al usuario: el pipeline
de mensajes los convierte en una respuesta "❌ <message>" en el borde de
cada etapa. El acceso no autorizado NO es una excepción (lo resuelve el
control de acceso antes de cualquier comando).
"""

from typing import Any, Dict, Optional


class AgentError(Exception):
    """Base de los errores de negocio."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ValidationError(AgentError):
    """Entrada inválida: monto ilegible, argumento faltante, duplicado."""


class NotFound(AgentError):
    """El recurso pedido no existe en el alcance del usuario."""


class UserNotFound(NotFound):
    pass


class PlanNotFound(NotFound):
    pass


class FamilyNotFound(NotFound):
    pass


class Forbidden(AgentError):
    """Regla de permisos de la familia violada."""


class UpstreamUnavailable(AgentError):
    """Falla de un colaborador externo (IA, base de datos, transporte)."""


class AccessKeyAlreadyUsed(ValidationError):
    pass
