"""
chat/context.py
────────────────
Tipos compartidos por todas las etapas del pipeline de mensajes.

  - MessageContext: el usuario, el texto original, el texto normalizado
    (para comparar palabras clave) y la capacidad de responder.
  - Handled / NotHandled: resultado de cada etapa. La cadena se corta en
    la primera etapa que devuelve Handled.
  - ReplyOption: botón opcional que acompaña una respuesta. Los
    transportes con UI rica lo muestran; al tocarlo, `value` vuelve a
    entrar al pipeline como si el usuario lo hubiera escrito.
"""

from __future__ import annotations

import unicodedata
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Protocol, Union

from database.models import User


@dataclass(frozen=True)
class ReplyOption:
    label: str
    value: str


class Reply(Protocol):
    def __call__(
        self, text: str, options: Optional[list[ReplyOption]] = None
    ) -> Awaitable[None]: ...


# ─────────────────────────────────────────────
#  Resultado de una etapa
# ─────────────────────────────────────────────

@dataclass(frozen=True)
class Handled:
    """La etapa respondió; sus efectos ya se aplicaron."""
    stage: str


@dataclass(frozen=True)
class NotHandled:
    """La etapa no reconoce el mensaje; sigue la próxima."""


NOT_HANDLED = NotHandled()

HandledResult = Union[Handled, NotHandled]


# ─────────────────────────────────────────────
#  Contexto del mensaje
# ─────────────────────────────────────────────

def normalize_text(text: str) -> str:
    """
    Minúsculas, sin tildes y con espacios colapsados.
    "  /Planificación  CREAR " → "/planificacion crear"
    """
    decomposed = unicodedata.normalize("NFD", text.lower())
    stripped = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    return " ".join(stripped.split())


@dataclass
class MessageContext:
    user: User
    text: str            # texto original, para nombres y categorías
    normalized: str      # para comparar palabras clave
    reply: Reply

    @classmethod
    def build(cls, user: User, text: str, reply: Reply) -> "MessageContext":
        return cls(user=user, text=text.strip(), normalized=normalize_text(text), reply=reply)

    @property
    def is_slash_command(self) -> bool:
        return self.text.startswith("/")

    @property
    def words(self) -> list[str]:
        """Palabras normalizadas, sin la "/" inicial."""
        return self.normalized.lstrip("/").split()

    @property
    def keyword(self) -> str:
        words = self.words
        return words[0] if words else ""

    def word(self, index: int) -> str:
        words = self.words
        return words[index] if len(words) > index else ""

    def args(self, skip: int) -> list[str]:
        """Palabras del texto ORIGINAL a partir de la posición `skip`."""
        return self.text.lstrip("/").split()[skip:]


# ─────────────────────────────────────────────
#  Identidades por transporte
# ─────────────────────────────────────────────

TRANSPORT_PREFIXES = {
    "telegram": "tg",
    "web": "web",
    "whatsapp": "wa",
}


def transport_identifier(transport: str, raw_id: Union[str, int]) -> str:
    """
    Identificador interno estable: el mismo número en dos transportes
    son dos usuarios distintos. ("telegram", 123) → "tg_123"
    """
    try:
        prefix = TRANSPORT_PREFIXES[transport]
    except KeyError:
        raise ValueError(f"Transporte desconocido: {transport}") from None
    return f"{prefix}_{raw_id}"


Stage = Callable[[MessageContext], Awaitable[HandledResult]]
