"""
services/session_service.py
────────────────────────────
Sesiones de conversación guiada (asistentes paso a paso).

Cada usuario tiene como máximo una sesión: un estado (ver chat/states.py)
más una bolsa de datos parciales. Las sesiones viven solo en memoria:
no tienen TTL y se pierden al reiniciar el proceso; un asistente a medias
simplemente vuelve a empezar.

El almacenamiento está detrás de `SessionRepository` para poder cambiarlo
por una caché distribuida sin tocar la máquina de estados.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from database.models import Session


class SessionRepository(ABC):
    """Contrato mínimo de un almacén de sesiones por usuario."""

    @abstractmethod
    def get(self, user_id: str) -> Optional[Session]:
        """Sesión activa del usuario, o None."""

    @abstractmethod
    def set(self, user_id: str, state: str, data: Optional[dict] = None) -> Session:
        """Crea o reemplaza la sesión del usuario."""

    @abstractmethod
    def update_data(self, user_id: str, data: dict) -> None:
        """Mezcla `data` en la sesión existente. No hace nada si no hay sesión."""

    @abstractmethod
    def clear(self, user_id: str) -> None:
        """Elimina la sesión del usuario (si existe)."""


class InMemorySessionRepository(SessionRepository):

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}

    def get(self, user_id: str) -> Optional[Session]:
        return self._sessions.get(user_id)

    def set(self, user_id: str, state: str, data: Optional[dict] = None) -> Session:
        session = Session(state=state, data=dict(data or {}))
        self._sessions[user_id] = session
        return session

    def update_data(self, user_id: str, data: dict) -> None:
        session = self._sessions.get(user_id)
        if session is not None:
            self._sessions[user_id] = Session(
                state=session.state,
                data={**session.data, **data},
            )

    def clear(self, user_id: str) -> None:
        self._sessions.pop(user_id, None)

    def __len__(self) -> int:
        return len(self._sessions)


# Almacén del proceso
session_store = InMemorySessionRepository()
