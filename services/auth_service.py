"""
services/auth_service.py
─────────────────────────
Control de acceso por claves de un solo uso, lista de espera por e-mail
y token del dashboard personal.

Una clave se consume con un update condicional (is_used = false), así
dos usuarios que mandan la misma clave a la vez no pueden usarla ambos.
"""

from __future__ import annotations

import logging
import re
import secrets
import string

from config import DASHBOARD_URL
from database.models import User
from database.repositories import AccessKeyRepo, UserRepo
from services import billing_cycle
from services.exceptions import AccessKeyAlreadyUsed, NotFound

logger = logging.getLogger(__name__)

KEY_LENGTH = 8
KEY_ALPHABET = string.ascii_uppercase + string.digits

# Una palabra de 5 a 19 caracteres, sin espacios ni "@"
_RE_KEY_CANDIDATE = re.compile(r"^[^\s@]{5,19}$")
_RE_EMAIL = re.compile(r"^[\w.+-]+@[\w.-]+\.\w{2,}$")


def looks_like_key(text: str) -> bool:
    return bool(_RE_KEY_CANDIDATE.match(text.strip()))


def looks_like_email(text: str) -> bool:
    return bool(_RE_EMAIL.match(text.strip()))


class AuthService:

    @classmethod
    def check_access(cls, user: User) -> bool:
        return user.is_authorized

    @classmethod
    def validate_key(cls, user_id: str, key: str) -> User:
        """
        Consume la clave y autoriza al usuario.

        Raises:
            NotFound:             la clave no existe.
            AccessKeyAlreadyUsed: la clave ya fue consumida.
        """
        access_key = AccessKeyRepo.get_by_key(key.strip().upper())
        if access_key is None:
            raise NotFound("Clave inválida.")
        if access_key.is_used:
            raise AccessKeyAlreadyUsed("Esta clave ya fue utilizada.")

        if not AccessKeyRepo.mark_used(access_key.id, user_id, billing_cycle.now()):
            raise AccessKeyAlreadyUsed("Esta clave ya fue utilizada.")

        logger.info("Usuario %s autorizado con clave %s", user_id, access_key.id)
        return UserRepo.update(user_id, {"is_authorized": True})

    @classmethod
    def join_waitlist(cls, user_id: str, email: str) -> User:
        logger.info("Usuario %s se anotó en la lista de espera", user_id)
        return UserRepo.update(user_id, {"email": email.strip().lower()})

    @classmethod
    def generate_key(cls) -> str:
        """Crea y guarda una clave nueva de 8 caracteres."""
        key = "".join(secrets.choice(KEY_ALPHABET) for _ in range(KEY_LENGTH))
        return AccessKeyRepo.create(key).key

    # ── Dashboard ─────────────────────────────────────────

    @classmethod
    def get_dashboard_token(cls, user: User) -> str:
        """Token opaco del dashboard; se genera la primera vez y se reutiliza."""
        if user.dashboard_token:
            return user.dashboard_token
        token = secrets.token_urlsafe(24)
        UserRepo.update(user.id, {"dashboard_token": token})
        return token

    @staticmethod
    def dashboard_link(token: str) -> str:
        return f"{DASHBOARD_URL.rstrip('/')}/dashboard?token={token}"
