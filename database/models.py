"""
database/models.py
──────────────────
Modelos de datos (dataclasses) que representan las tablas de Supabase.
Sirven como contratos entre capas, sin ORM pesado.

Tablas esperadas en Supabase:
  - users              (id, identifier, name, email, is_authorized,
                        family_group_id, xp, level, streak, last_activity,
                        dashboard_token, created_at)
  - family_groups      (id, name, invite_code, admin_id, created_at)
  - budget_plans       (id, user_id, family_group_id, category, category_key,
                        type, amount, status, created_at)
  - transactions       (id, user_id, amount, type, category, description,
                        date, created_at)
  - budgets            (id, user_id, category, category_key, limit_amount,
                        month)
  - access_keys        (id, key, is_used, used_at, used_by_user_id)
  - user_achievements  (id, user_id, name, unlocked_at)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal, Optional

from dateutil.parser import isoparse

TransactionType = Literal["INCOME", "EXPENSE"]
PlanType = Literal["FIXED", "PERCENTAGE"]
PlanStatus = Literal["ACTIVE", "PENDING", "REJECTED"]

# Estados en los que un plan sigue "vivo" (REJECTED es el borrado lógico)
OPEN_PLAN_STATUSES: tuple[str, ...] = ("ACTIVE", "PENDING")


def normalize_category(category: str) -> str:
    """
    Clave canónica de una categoría: sin espacios sobrantes y en minúsculas.
    "  Lazer " y "LAZER" son la misma categoría.
    """
    return " ".join(category.split()).lower()


def _parse_dt(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return isoparse(value)


# ─────────────────────────────────────────────
#  Users
# ─────────────────────────────────────────────

@dataclass
class User:
    identifier: str                      # "tg_123", "web_5511...", "wa_..."
    id: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    is_authorized: bool = False
    family_group_id: Optional[str] = None
    xp: int = 0
    level: int = 1
    streak: int = 0
    last_activity: Optional[datetime] = None
    dashboard_token: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def display_name(self) -> str:
        """Nombre visible en la familia; cae al identificador si no hay nombre."""
        return self.name or self.identifier

    @classmethod
    def from_dict(cls, data: dict) -> "User":
        return cls(
            id=data.get("id"),
            identifier=data["identifier"],
            name=data.get("name"),
            email=data.get("email"),
            is_authorized=bool(data.get("is_authorized", False)),
            family_group_id=data.get("family_group_id"),
            xp=int(data.get("xp") or 0),
            level=int(data.get("level") or 1),
            streak=int(data.get("streak") or 0),
            last_activity=_parse_dt(data.get("last_activity")),
            dashboard_token=data.get("dashboard_token"),
            created_at=_parse_dt(data.get("created_at")),
        )

    def to_dict(self) -> dict:
        return {
            "identifier": self.identifier,
            "name": self.name,
            "is_authorized": self.is_authorized,
            "xp": self.xp,
            "level": self.level,
            "streak": self.streak,
        }


# ─────────────────────────────────────────────
#  Family groups
# ─────────────────────────────────────────────

@dataclass
class FamilyGroup:
    name: str
    invite_code: str
    id: Optional[str] = None
    admin_id: Optional[str] = None
    created_at: Optional[datetime] = None

    def is_admin(self, user_id: str) -> bool:
        return self.admin_id is not None and self.admin_id == user_id

    @classmethod
    def from_dict(cls, data: dict) -> "FamilyGroup":
        return cls(
            id=data.get("id"),
            name=data["name"],
            invite_code=data["invite_code"],
            admin_id=data.get("admin_id"),
            created_at=_parse_dt(data.get("created_at")),
        )

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "invite_code": self.invite_code,
            "admin_id": self.admin_id,
        }


# ─────────────────────────────────────────────
#  Budget plans
# ─────────────────────────────────────────────

@dataclass
class BudgetPlan:
    user_id: str
    category: str                        # casing original (para mostrar)
    type: PlanType
    amount: float
    status: PlanStatus = "ACTIVE"
    family_group_id: Optional[str] = None
    id: Optional[str] = None
    created_at: Optional[datetime] = None
    owner_name: Optional[str] = None     # solo lectura, viene del join con users

    @property
    def category_key(self) -> str:
        return normalize_category(self.category)

    @property
    def is_family_plan(self) -> bool:
        return self.family_group_id is not None

    @classmethod
    def from_dict(cls, data: dict) -> "BudgetPlan":
        owner = data.get("owner") or {}
        return cls(
            id=data.get("id"),
            user_id=data["user_id"],
            family_group_id=data.get("family_group_id"),
            category=data["category"],
            type=data["type"],
            amount=float(data["amount"]),
            status=data["status"],
            created_at=_parse_dt(data.get("created_at")),
            owner_name=owner.get("name") or owner.get("identifier"),
        )

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "family_group_id": self.family_group_id,
            "category": self.category,
            "category_key": self.category_key,
            "type": self.type,
            "amount": self.amount,
            "status": self.status,
        }


# ─────────────────────────────────────────────
#  Transactions
# ─────────────────────────────────────────────

@dataclass
class Transaction:
    user_id: str
    amount: float                        # siempre positivo
    type: TransactionType                # "INCOME" | "EXPENSE"
    category: str
    date: datetime
    description: str = ""
    id: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: dict) -> "Transaction":
        return cls(
            id=data.get("id"),
            user_id=data["user_id"],
            amount=float(data["amount"]),
            type=data["type"],
            category=data["category"],
            description=data.get("description") or "",
            date=_parse_dt(data["date"]),
            created_at=_parse_dt(data.get("created_at")),
        )

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "amount": self.amount,
            "type": self.type,
            "category": self.category,
            "description": self.description,
            "date": self.date.isoformat(),
        }


# ─────────────────────────────────────────────
#  Personal monthly budgets
# ─────────────────────────────────────────────

@dataclass
class Budget:
    user_id: str
    category: str
    limit_amount: float
    month: str                           # formato "YYYY-MM"
    id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "Budget":
        return cls(
            id=data.get("id"),
            user_id=data["user_id"],
            category=data["category"],
            limit_amount=float(data["limit_amount"]),
            month=data["month"],
        )

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "category": self.category,
            "category_key": normalize_category(self.category),
            "limit_amount": self.limit_amount,
            "month": self.month,
        }


# ─────────────────────────────────────────────
#  Access keys
# ─────────────────────────────────────────────

@dataclass
class AccessKey:
    key: str
    is_used: bool = False
    id: Optional[str] = None
    used_at: Optional[datetime] = None
    used_by_user_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "AccessKey":
        return cls(
            id=data.get("id"),
            key=data["key"],
            is_used=bool(data.get("is_used", False)),
            used_at=_parse_dt(data.get("used_at")),
            used_by_user_id=data.get("used_by_user_id"),
        )


# ─────────────────────────────────────────────
#  Sessions (no se persisten)
# ─────────────────────────────────────────────

@dataclass
class Session:
    state: str
    data: dict = field(default_factory=dict)
