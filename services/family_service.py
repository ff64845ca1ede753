"""
services/family_service.py
───────────────────────────
Grupos familiares: creación, ingreso por código de invitación y la
transición de administrador.

Reglas:
  - Un usuario pertenece como máximo a una familia.
  - El creador es el primer miembro; la familia nace sin admin.
  - El primer miembro que crea un plan se convierte en admin
    (`promote_admin_if_unset`). Una vez seteado, el admin no cambia.
"""

from __future__ import annotations

import logging
import secrets
from typing import Optional

from database.models import FamilyGroup, User
from database.repositories import FamilyRepo, UserRepo
from services.exceptions import FamilyNotFound, UserNotFound, ValidationError

logger = logging.getLogger(__name__)

INVITE_CODE_BYTES = 3   # 6 caracteres hex


class FamilyService:
    """Gestiona grupos familiares y su administrador."""

    # ── Consultas ─────────────────────────────────────────

    @classmethod
    def load_member(cls, user_id: str) -> tuple[User, Optional[FamilyGroup]]:
        """
        Retorna (user, family). family es None si el usuario no tiene familia.

        Raises:
            UserNotFound: si el id no corresponde a ningún usuario.
        """
        user = UserRepo.get_by_id(user_id)
        if user is None:
            raise UserNotFound("Usuario no encontrado.")
        if not user.family_group_id:
            return user, None
        return user, FamilyRepo.get_by_id(user.family_group_id)

    @classmethod
    def list_members(cls, family: FamilyGroup) -> list[User]:
        return UserRepo.list_by_family(family.id)

    # ── Creación / ingreso ────────────────────────────────

    @classmethod
    def create_family(cls, user_id: str, name: Optional[str] = None) -> FamilyGroup:
        """
        Crea una familia con el usuario como primer miembro.

        Raises:
            ValidationError: si el usuario ya es parte de una familia.
        """
        user, family = cls.load_member(user_id)
        if family is not None:
            raise ValidationError("Ya sos parte de una familia.")

        invite_code = cls._unique_invite_code()
        family = FamilyRepo.create(
            name=name or f"Familia de {user.display_name}",
            invite_code=invite_code,
        )
        UserRepo.update(user_id, {"family_group_id": family.id})
        logger.info("Familia %s creada por %s", family.id, user_id)
        return family

    @classmethod
    def join_family(cls, user_id: str, invite_code: str) -> FamilyGroup:
        """
        Suma al usuario a la familia del código.

        Raises:
            ValidationError: si ya es parte de una familia.
            FamilyNotFound:  si el código no existe.
        """
        _, current = cls.load_member(user_id)
        if current is not None:
            raise ValidationError("Ya sos parte de una familia.")

        family = FamilyRepo.get_by_invite_code(invite_code.strip().upper())
        if family is None:
            raise FamilyNotFound("Código de invitación inválido.")

        UserRepo.update(user_id, {"family_group_id": family.id})
        logger.info("Usuario %s se unió a la familia %s", user_id, family.id)
        return family

    # ── Administrador ─────────────────────────────────────

    @classmethod
    def promote_admin_if_unset(cls, family: FamilyGroup, user_id: str) -> FamilyGroup:
        """
        Transición admin_id: None → user_id.

        Si la familia ya tiene admin no hace nada. Si dos miembros compiten,
        solo uno gana el update condicional; el otro recibe la familia con
        el admin ganador.
        """
        if family.admin_id is not None:
            return family
        if FamilyRepo.claim_admin(family.id, user_id):
            logger.info("Usuario %s promovido a admin de la familia %s", user_id, family.id)
            family.admin_id = user_id
            return family
        # Otro miembro ganó la carrera: releer
        return FamilyRepo.get_by_id(family.id) or family

    # ── Helpers ───────────────────────────────────────────

    @staticmethod
    def _unique_invite_code() -> str:
        while True:
            code = secrets.token_hex(INVITE_CODE_BYTES).upper()
            if FamilyRepo.get_by_invite_code(code) is None:
                return code
