"""
services/planning_service.py
─────────────────────────────
Planes de presupuesto por categoría (personales o familiares) y su flujo
de aprobación.

  - Sin familia: el plan nace ACTIVE y es solo del usuario.
  - Familia sin admin: quien crea el plan pasa a ser admin y el plan nace ACTIVE.
  - Familia con otro admin: el plan nace PENDING hasta que el admin lo apruebe.

La categoría se compara sin importar mayúsculas ("Lazer" == "LAZER");
se muestra con el casing con el que se creó. Borrar un plan es lógico:
pasa a REJECTED.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Optional

from database.models import BudgetPlan, FamilyGroup, PlanType, User, normalize_category
from database.repositories import PlanRepo
from services.exceptions import Forbidden, PlanNotFound, ValidationError
from services.family_service import FamilyService

logger = logging.getLogger(__name__)

PLAN_TYPES: tuple[str, ...] = ("FIXED", "PERCENTAGE")


@dataclass
class PlanListing:
    active_plans: list[BudgetPlan] = field(default_factory=list)
    pending_plans: list[BudgetPlan] = field(default_factory=list)


class PlanningService:
    """Creación, aprobación, edición y borrado de planes."""

    # ── Creación ──────────────────────────────────────────

    @classmethod
    def create_plan(
        cls,
        user_id: str,
        category: str,
        plan_type: PlanType,
        amount: float,
    ) -> tuple[BudgetPlan, bool]:
        """
        Crea un plan.

        Returns:
            (plan, is_pending). is_pending=True si espera aprobación del admin.

        Raises:
            UserNotFound:    el usuario no existe.
            ValidationError: datos inválidos o ya existe un plan propio
                             abierto para esa categoría.
        """
        category = cls._clean_category(category)
        cls._validate_value(plan_type, amount)

        user, family = FamilyService.load_member(user_id)
        family_id = family.id if family else None

        duplicated = [
            p for p in PlanRepo.find_open_by_category(user_id, family_id, category)
            if p.user_id == user_id and p.family_group_id == family_id
        ]
        if duplicated:
            raise ValidationError(
                f"Ya tenés un plan para {duplicated[0].category}. "
                f"Usá /plan editar para cambiarlo."
            )

        status = "ACTIVE"
        if family is not None:
            family = FamilyService.promote_admin_if_unset(family, user_id)
            if not family.is_admin(user_id):
                status = "PENDING"
        if status == "ACTIVE":
            cls._check_active_clash(user_id, family_id, category)

        plan = PlanRepo.create(BudgetPlan(
            user_id=user_id,
            family_group_id=family_id,
            category=category,
            type=plan_type,
            amount=float(amount),
            status=status,
        ))
        logger.info("Plan %s (%s) creado por %s con estado %s", plan.id, category, user_id, status)
        return plan, status == "PENDING"

    # ── Consultas ─────────────────────────────────────────

    @classmethod
    def get_plans(cls, user_id: str) -> PlanListing:
        """
        Planes visibles para el usuario.
        Los pendientes solo se listan para el admin de la familia.
        """
        user, family = FamilyService.load_member(user_id)
        if family is None:
            return PlanListing(active_plans=PlanRepo.list_personal(user_id, ["ACTIVE"]))

        listing = PlanListing(active_plans=PlanRepo.list_by_family(family.id, ["ACTIVE"]))
        if family.is_admin(user_id):
            listing.pending_plans = PlanRepo.list_by_family(family.id, ["PENDING"])
        return listing

    @classmethod
    def find_plan(cls, user_id: str, category: str) -> BudgetPlan:
        """Resuelve el plan abierto de una categoría. Raises PlanNotFound."""
        user, family = FamilyService.load_member(user_id)
        return cls._resolve(user, family, category)

    # ── Aprobación ────────────────────────────────────────

    @classmethod
    def approve_plan(cls, user_id: str, plan_id: str, approve: bool) -> BudgetPlan:
        """
        PENDING → ACTIVE (approve=True) o PENDING → REJECTED (approve=False).

        Una sugerencia no se aprueba si la familia ya tiene un plan activo
        para la misma categoría: se edita el existente o se rechaza.

        Raises:
            PlanNotFound:    el plan no existe o no es de la familia del usuario.
            Forbidden:       el usuario no es el admin de la familia.
            ValidationError: el plan ya no está pendiente o su categoría ya
                             tiene un plan activo.
        """
        user, family = FamilyService.load_member(user_id)
        plan = PlanRepo.get_by_id(plan_id) if _is_plan_id(plan_id) else None
        if plan is None or family is None or plan.family_group_id != family.id:
            raise PlanNotFound("Plan no encontrado.")
        if not family.is_admin(user_id):
            raise Forbidden("Solo el administrador de la familia puede aprobar planes.")
        if plan.status != "PENDING":
            raise ValidationError("Este plan ya no está pendiente de aprobación.")
        if approve:
            cls._check_active_clash(plan.user_id, family.id, plan.category, exclude_id=plan.id)

        new_status = "ACTIVE" if approve else "REJECTED"
        updated = PlanRepo.update_if_status(plan.id, "PENDING", {"status": new_status})
        if updated is None:
            raise ValidationError("Este plan ya no está pendiente de aprobación.")
        logger.info("Plan %s → %s por admin %s", plan.id, new_status, user_id)
        return updated

    # ── Edición / borrado ─────────────────────────────────

    @classmethod
    def update_plan(
        cls,
        user_id: str,
        current_category: str,
        new_amount: Optional[float] = None,
        new_category: Optional[str] = None,
        new_type: Optional[PlanType] = None,
    ) -> BudgetPlan:
        """
        Actualización parcial: solo se tocan los campos recibidos.

        Raises:
            PlanNotFound:    no hay plan abierto para esa categoría.
            Forbidden:       el usuario no puede editar ese plan.
            ValidationError: nada para actualizar o valores inválidos.
        """
        user, family = FamilyService.load_member(user_id)
        plan = cls._resolve(user, family, current_category)
        cls._check_permission(user, family, plan)

        fields: dict = {}
        if new_amount is not None or new_type is not None:
            cls._validate_value(new_type or plan.type, new_amount if new_amount is not None else plan.amount)
        if new_amount is not None:
            fields["amount"] = float(new_amount)
        if new_type is not None:
            fields["type"] = new_type
        if new_category is not None:
            new_category = cls._clean_category(new_category)
            cls._check_rename_collision(plan, new_category)
            if plan.status == "ACTIVE":
                cls._check_active_clash(plan.user_id, plan.family_group_id, new_category, exclude_id=plan.id)
            fields["category"] = new_category
        if not fields:
            raise ValidationError("No hay nada para actualizar.")

        return cls._apply(plan, fields)

    @classmethod
    def delete_plan(cls, user_id: str, category: str) -> BudgetPlan:
        """Borrado lógico (status REJECTED). Mismas reglas que update_plan."""
        user, family = FamilyService.load_member(user_id)
        plan = cls._resolve(user, family, category)
        cls._check_permission(user, family, plan)
        return cls._apply(plan, {"status": "REJECTED"})

    # ── Reglas internas ───────────────────────────────────

    @staticmethod
    def _resolve(user: User, family: Optional[FamilyGroup], category: str) -> BudgetPlan:
        """
        Elige el plan de la categoría. Orden de preferencia:
        plan de la familia > propio > ACTIVE > más antiguo.
        """
        family_id = family.id if family else None
        candidates = PlanRepo.find_open_by_category(user.id, family_id, category)
        if not candidates:
            raise PlanNotFound(f"No encontré un plan para *{category.strip()}*.")

        def rank(plan: BudgetPlan) -> tuple[int, int, int]:
            return (
                0 if family_id and plan.family_group_id == family_id else 1,
                0 if plan.user_id == user.id else 1,
                0 if plan.status == "ACTIVE" else 1,
            )

        # sorted() es estable: a igual rango gana el más antiguo
        return sorted(candidates, key=rank)[0]

    @staticmethod
    def _check_permission(user: User, family: Optional[FamilyGroup], plan: BudgetPlan) -> None:
        is_admin = (
            family is not None
            and plan.family_group_id == family.id
            and family.is_admin(user.id)
        )
        is_owner = plan.user_id == user.id

        if plan.is_family_plan and plan.status == "ACTIVE" and not is_admin:
            raise Forbidden("Solo el administrador de la familia puede modificar planes activos.")
        if not is_owner and not is_admin:
            raise Forbidden("No tenés permiso para modificar este plan.")

    @staticmethod
    def _check_rename_collision(plan: BudgetPlan, new_category: str) -> None:
        if normalize_category(new_category) == plan.category_key:
            return
        clash = [
            p for p in PlanRepo.find_open_by_category(plan.user_id, plan.family_group_id, new_category)
            if p.user_id == plan.user_id and p.family_group_id == plan.family_group_id
        ]
        if clash:
            raise ValidationError(f"Ya existe un plan para {clash[0].category}.")

    @staticmethod
    def _check_active_clash(
        user_id: str,
        family_id: Optional[str],
        category: str,
        exclude_id: Optional[str] = None,
    ) -> None:
        """Una familia tiene a lo sumo un plan ACTIVE por categoría."""
        if family_id is None:
            return
        clash = [
            p for p in PlanRepo.find_open_by_category(user_id, family_id, category)
            if p.id != exclude_id and p.status == "ACTIVE" and p.family_group_id == family_id
        ]
        if clash:
            raise ValidationError(
                f"La familia ya tiene un plan activo para {clash[0].category}. "
                f"Usá /plan editar para cambiarlo."
            )

    @staticmethod
    def _apply(plan: BudgetPlan, fields: dict) -> BudgetPlan:
        updated = PlanRepo.update_if_status(plan.id, plan.status, fields)
        if updated is None:
            # El admin lo aprobó/rechazó (u otro lo borró) entre la lectura y el update
            raise PlanNotFound("El plan cambió mientras lo modificabas. Intentá de nuevo.")
        logger.info("Plan %s actualizado: %s", plan.id, fields)
        return updated

    @staticmethod
    def _clean_category(category: str) -> str:
        cleaned = " ".join((category or "").split())
        if not cleaned:
            raise ValidationError("La categoría no puede estar vacía.")
        return cleaned

    @staticmethod
    def _validate_value(plan_type: str, amount: float) -> None:
        if plan_type not in PLAN_TYPES:
            raise ValidationError(f"Tipo de plan inválido: {plan_type}")
        if amount is None or amount < 0:
            raise ValidationError("El valor del plan no puede ser negativo.")

    # ── Formato para chat ─────────────────────────────────

    @staticmethod
    def format_target(plan_type: str, amount: float) -> str:
        """"10%" para porcentuales, "$500.00" para montos fijos."""
        if plan_type == "PERCENTAGE":
            return f"{amount:g}%"
        return f"${amount:,.2f}"

    @classmethod
    def format_plans(cls, listing: PlanListing) -> str:
        lines = ["🎯 *Planificación financiera*\n"]

        if not listing.active_plans and not listing.pending_plans:
            lines.append("No hay planes activos.")
        if listing.active_plans:
            lines.append("*Metas activas:*")
            for p in listing.active_plans:
                lines.append(f"• {p.category}: {cls.format_target(p.type, p.amount)}")
        if listing.pending_plans:
            lines.append("\n⏳ *Pendientes de aprobación:*")
            for p in listing.pending_plans:
                lines.append(
                    f"• {p.category} ({p.owner_name or 'Miembro'}): "
                    f"{cls.format_target(p.type, p.amount)}\n"
                    f"  _Aprobar:_ `/plan aprobar {p.id}`\n"
                    f"  _Rechazar:_ `/plan rechazar {p.id}`"
                )

        lines.append("\n──────────────────")
        lines.append("⚙️ *Gestionar metas:*")
        lines.append("• *Crear:* `/plan crear [Categoría] [Valor]`")
        lines.append("• *Editar:* `/plan editar [Categoría] [Valor]`")
        lines.append("• *Renombrar:* `/plan renombrar [Actual] [Nueva]`")
        lines.append("• *Borrar:* `/plan borrar [Categoría]`")
        lines.append("_Ej: /plan crear Ocio 500 o /plan crear Ocio 10%_")
        return "\n".join(lines)


def _is_plan_id(plan_id: str) -> bool:
    """Los ids de plan son UUIDs; cualquier otra cosa no existe."""
    try:
        uuid.UUID(str(plan_id))
    except ValueError:
        return False
    return True
