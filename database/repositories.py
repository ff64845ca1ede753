"""
database/repositories.py
─────────────────────────
Capa de acceso a datos (Repository Pattern).
Cada clase encapsula las operaciones de una tabla de Supabase.

Las secuencias "leer → validar → escribir" sobre estado compartido de la
familia se resuelven con updates condicionales (compare-and-set): la
condición va en el WHERE y Postgres la evalúa de forma atómica por fila.
Si el update no devuelve filas, otro actor ganó la carrera.

Uso:
    from database.repositories import UserRepo, PlanRepo

    user, created = UserRepo.get_or_create("tg_123456", name="Juan")
    plans = PlanRepo.list_by_family(user.family_group_id, ["ACTIVE"])
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from database.client import get_client
from database.encryption import decrypt_or_raw, encrypt
from database.models import (
    OPEN_PLAN_STATUSES,
    AccessKey,
    Budget,
    BudgetPlan,
    FamilyGroup,
    Transaction,
    User,
    normalize_category,
)


# ─────────────────────────────────────────────
#  UserRepo
# ─────────────────────────────────────────────

class UserRepo:
    TABLE = "users"

    @classmethod
    def get_by_id(cls, user_id: str) -> Optional[User]:
        db = get_client()
        result = (
            db.table(cls.TABLE)
            .select("*")
            .eq("id", user_id)
            .maybe_single()
            .execute()
        )
        if result is None or result.data is None:
            return None
        return User.from_dict(result.data)

    @classmethod
    def get_by_identifier(cls, identifier: str) -> Optional[User]:
        db = get_client()
        result = (
            db.table(cls.TABLE)
            .select("*")
            .eq("identifier", identifier)
            .maybe_single()
            .execute()
        )
        if result is None or result.data is None:
            return None
        return User.from_dict(result.data)

    @classmethod
    def create(cls, identifier: str, name: Optional[str] = None) -> User:
        db = get_client()
        user = User(identifier=identifier, name=name)
        result = db.table(cls.TABLE).insert(user.to_dict()).execute()
        return User.from_dict(result.data[0])

    @classmethod
    def get_or_create(cls, identifier: str, name: Optional[str] = None) -> tuple[User, bool]:
        """
        Retorna (user, created).
        created=True si el usuario fue creado ahora.
        """
        user = cls.get_by_identifier(identifier)
        if user:
            return user, False
        return cls.create(identifier, name), True

    @classmethod
    def update(cls, user_id: str, fields: dict) -> User:
        db = get_client()
        payload = {
            k: (v.isoformat() if isinstance(v, datetime) else v)
            for k, v in fields.items()
        }
        result = db.table(cls.TABLE).update(payload).eq("id", user_id).execute()
        return User.from_dict(result.data[0])

    @classmethod
    def list_by_family(cls, family_group_id: str) -> list[User]:
        db = get_client()
        result = (
            db.table(cls.TABLE)
            .select("*")
            .eq("family_group_id", family_group_id)
            .execute()
        )
        return [User.from_dict(row) for row in result.data]


# ─────────────────────────────────────────────
#  FamilyRepo
# ─────────────────────────────────────────────

class FamilyRepo:
    TABLE = "family_groups"

    @classmethod
    def get_by_id(cls, family_id: str) -> Optional[FamilyGroup]:
        db = get_client()
        result = (
            db.table(cls.TABLE)
            .select("*")
            .eq("id", family_id)
            .maybe_single()
            .execute()
        )
        if result is None or result.data is None:
            return None
        return FamilyGroup.from_dict(result.data)

    @classmethod
    def get_by_invite_code(cls, invite_code: str) -> Optional[FamilyGroup]:
        db = get_client()
        result = (
            db.table(cls.TABLE)
            .select("*")
            .eq("invite_code", invite_code)
            .maybe_single()
            .execute()
        )
        if result is None or result.data is None:
            return None
        return FamilyGroup.from_dict(result.data)

    @classmethod
    def create(cls, name: str, invite_code: str) -> FamilyGroup:
        db = get_client()
        family = FamilyGroup(name=name, invite_code=invite_code)
        result = db.table(cls.TABLE).insert(family.to_dict()).execute()
        return FamilyGroup.from_dict(result.data[0])

    @classmethod
    def claim_admin(cls, family_id: str, user_id: str) -> bool:
        """
        Setea admin_id solo si todavía no hay admin.
        Retorna True si este usuario quedó como admin.
        """
        db = get_client()
        result = (
            db.table(cls.TABLE)
            .update({"admin_id": user_id})
            .eq("id", family_id)
            .is_("admin_id", "null")
            .execute()
        )
        return len(result.data) > 0


# ─────────────────────────────────────────────
#  PlanRepo
# ─────────────────────────────────────────────

class PlanRepo:
    TABLE = "budget_plans"
    # Join con el dueño para mostrar quién sugirió cada plan
    SELECT = "*, owner:users(name, identifier)"

    @classmethod
    def create(cls, plan: BudgetPlan) -> BudgetPlan:
        db = get_client()
        result = db.table(cls.TABLE).insert(plan.to_dict()).execute()
        return BudgetPlan.from_dict(result.data[0])

    @classmethod
    def get_by_id(cls, plan_id: str) -> Optional[BudgetPlan]:
        db = get_client()
        result = (
            db.table(cls.TABLE)
            .select(cls.SELECT)
            .eq("id", plan_id)
            .maybe_single()
            .execute()
        )
        if result is None or result.data is None:
            return None
        return BudgetPlan.from_dict(result.data)

    @classmethod
    def list_by_family(cls, family_group_id: str, statuses: Iterable[str]) -> list[BudgetPlan]:
        db = get_client()
        result = (
            db.table(cls.TABLE)
            .select(cls.SELECT)
            .eq("family_group_id", family_group_id)
            .in_("status", list(statuses))
            .order("created_at")
            .execute()
        )
        return [BudgetPlan.from_dict(row) for row in result.data]

    @classmethod
    def list_personal(cls, user_id: str, statuses: Iterable[str]) -> list[BudgetPlan]:
        """Planes del usuario que no pertenecen a ninguna familia."""
        db = get_client()
        result = (
            db.table(cls.TABLE)
            .select(cls.SELECT)
            .eq("user_id", user_id)
            .is_("family_group_id", "null")
            .in_("status", list(statuses))
            .order("created_at")
            .execute()
        )
        return [BudgetPlan.from_dict(row) for row in result.data]

    @classmethod
    def find_open_by_category(
        cls,
        user_id: str,
        family_group_id: Optional[str],
        category: str,
    ) -> list[BudgetPlan]:
        """
        Planes ACTIVE o PENDING de la categoría (sin importar mayúsculas)
        que son del usuario o de su familia.
        """
        db = get_client()
        query = (
            db.table(cls.TABLE)
            .select(cls.SELECT)
            .eq("category_key", normalize_category(category))
            .in_("status", list(OPEN_PLAN_STATUSES))
        )
        if family_group_id:
            query = query.or_(f"user_id.eq.{user_id},family_group_id.eq.{family_group_id}")
        else:
            query = query.eq("user_id", user_id)
        result = query.order("created_at").execute()
        return [BudgetPlan.from_dict(row) for row in result.data]

    @classmethod
    def update_if_status(
        cls,
        plan_id: str,
        expected_status: str,
        fields: dict,
    ) -> Optional[BudgetPlan]:
        """
        Aplica `fields` solo si el plan sigue en `expected_status`.
        Retorna el plan actualizado, o None si alguien lo cambió antes.
        """
        payload = dict(fields)
        if "category" in payload:
            payload["category_key"] = normalize_category(payload["category"])
        db = get_client()
        result = (
            db.table(cls.TABLE)
            .update(payload)
            .eq("id", plan_id)
            .eq("status", expected_status)
            .execute()
        )
        if not result.data:
            return None
        return BudgetPlan.from_dict(result.data[0])


# ─────────────────────────────────────────────
#  TransactionRepo
# ─────────────────────────────────────────────

class TransactionRepo:
    TABLE = "transactions"

    @classmethod
    def create(cls, tx: Transaction) -> Transaction:
        db = get_client()
        payload = tx.to_dict()
        # Encriptamos la descripción antes de guardar
        payload["description"] = encrypt(payload["description"])
        result = db.table(cls.TABLE).insert(payload).execute()
        return Transaction.from_dict(_decrypt_tx(result.data[0]))

    @classmethod
    def list_in_range(
        cls,
        user_ids: list[str],
        start: datetime,
        end: datetime,
        tx_type: Optional[str] = None,
    ) -> list[Transaction]:
        """
        Transacciones de los usuarios con start <= date < end.
        """
        if not user_ids:
            return []
        db = get_client()
        query = (
            db.table(cls.TABLE)
            .select("*")
            .in_("user_id", user_ids)
            .gte("date", start.isoformat())
            .lt("date", end.isoformat())
        )
        if tx_type:
            query = query.eq("type", tx_type)
        result = query.order("date").execute()
        return [Transaction.from_dict(_decrypt_tx(row)) for row in result.data]

    @classmethod
    def list_amounts(cls, user_id: str) -> list[dict]:
        """Solo tipo y monto de todas las transacciones (para el saldo)."""
        db = get_client()
        result = (
            db.table(cls.TABLE)
            .select("type, amount")
            .eq("user_id", user_id)
            .execute()
        )
        return result.data

    @classmethod
    def count_by_user(cls, user_id: str) -> int:
        db = get_client()
        result = (
            db.table(cls.TABLE)
            .select("id", count="exact")
            .eq("user_id", user_id)
            .execute()
        )
        return result.count or 0


# ─────────────────────────────────────────────
#  BudgetRepo
# ─────────────────────────────────────────────

class BudgetRepo:
    TABLE = "budgets"

    @classmethod
    def set_budget(cls, user_id: str, category: str, limit_amount: float, month: str) -> Budget:
        """Crea o actualiza el límite personal de una categoría para un mes."""
        db = get_client()
        budget = Budget(
            user_id=user_id,
            category=category,
            limit_amount=limit_amount,
            month=month,
        )
        result = (
            db.table(cls.TABLE)
            .upsert(budget.to_dict(), on_conflict="user_id,category_key,month")
            .execute()
        )
        return Budget.from_dict(result.data[0])

    @classmethod
    def get(cls, user_id: str, category: str, month: str) -> Optional[Budget]:
        db = get_client()
        result = (
            db.table(cls.TABLE)
            .select("*")
            .eq("user_id", user_id)
            .eq("category_key", normalize_category(category))
            .eq("month", month)
            .maybe_single()
            .execute()
        )
        if result is None or result.data is None:
            return None
        return Budget.from_dict(result.data)


# ─────────────────────────────────────────────
#  AccessKeyRepo
# ─────────────────────────────────────────────

class AccessKeyRepo:
    TABLE = "access_keys"

    @classmethod
    def get_by_key(cls, key: str) -> Optional[AccessKey]:
        db = get_client()
        result = (
            db.table(cls.TABLE)
            .select("*")
            .eq("key", key)
            .maybe_single()
            .execute()
        )
        if result is None or result.data is None:
            return None
        return AccessKey.from_dict(result.data)

    @classmethod
    def create(cls, key: str) -> AccessKey:
        db = get_client()
        result = db.table(cls.TABLE).insert({"key": key, "is_used": False}).execute()
        return AccessKey.from_dict(result.data[0])

    @classmethod
    def mark_used(cls, key_id: str, user_id: str, used_at: datetime) -> bool:
        """Consume la clave solo si nadie la usó antes. True si la consumimos."""
        db = get_client()
        result = (
            db.table(cls.TABLE)
            .update({
                "is_used": True,
                "used_at": used_at.isoformat(),
                "used_by_user_id": user_id,
            })
            .eq("id", key_id)
            .eq("is_used", False)
            .execute()
        )
        return len(result.data) > 0


# ─────────────────────────────────────────────
#  AchievementRepo
# ─────────────────────────────────────────────

class AchievementRepo:
    TABLE = "user_achievements"

    @classmethod
    def list_names(cls, user_id: str) -> list[str]:
        db = get_client()
        result = (
            db.table(cls.TABLE)
            .select("name")
            .eq("user_id", user_id)
            .execute()
        )
        return [row["name"] for row in result.data]

    @classmethod
    def unlock(cls, user_id: str, name: str) -> bool:
        """
        Registra el logro. Retorna False si ya estaba desbloqueado
        (el unique (user_id, name) descarta el duplicado).
        """
        db = get_client()
        result = (
            db.table(cls.TABLE)
            .upsert(
                {"user_id": user_id, "name": name},
                on_conflict="user_id,name",
                ignore_duplicates=True,
            )
            .execute()
        )
        return len(result.data) > 0


# ─────────────────────────────────────────────
#  Helpers privados
# ─────────────────────────────────────────────

def _decrypt_tx(row: dict) -> dict:
    """Desencripta la descripción de una fila de transacciones."""
    row["description"] = decrypt_or_raw(row.get("description"))
    return row
