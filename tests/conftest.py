"""
tests/conftest.py
──────────────────
Configuración global de pytest.
Las variables de entorno se inyectan aquí ANTES de que
cualquier módulo del proyecto sea importado.

Además de las variables, expone `fake_db`: una base en memoria con la
misma interfaz que los repositorios de database/repositories.py. Se
parcha en cada módulo que importa un repo, así los servicios y el
pipeline corren completos sin tocar Supabase.
"""

import os
from cryptography.fernet import Fernet

# ── Generar clave Fernet válida para todos los tests ─────
VALID_FERNET_KEY = Fernet.generate_key().decode()

# ── Inyectar variables de entorno mínimas ─────────────────
#    Se hace a nivel de módulo para que estén disponibles
#    antes de la primera importación de config.py
os.environ.setdefault("GROQ_API_KEY", "gsk-fake-groq-key-for-testing")
os.environ.setdefault("GROQ_MODEL", "llama-3.3-70b-versatile")
os.environ.setdefault("SUPABASE_URL", "https://fake.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "fake-supabase-service-key")
os.environ.setdefault("ENCRYPTION_KEY", VALID_FERNET_KEY)
os.environ.setdefault("TIMEZONE", "America/Sao_Paulo")
os.environ.setdefault("ENV", "test")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import itertools
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Iterable, Optional

import pytest

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


@pytest.fixture(autouse=True)
def patch_fernet_key():
    """
    Asegura que el módulo de encriptación use la clave de test,
    incluso si ya fue importado anteriormente.
    """
    import database.encryption as enc_module
    enc_module._fernet = Fernet(VALID_FERNET_KEY.encode())
    yield


@pytest.fixture(autouse=True)
def reset_sessions():
    """Cada test arranca sin asistentes activos ni locks de usuarios."""
    from chat import pipeline
    from services.session_service import session_store

    session_store._sessions.clear()
    pipeline._user_locks.clear()
    yield
    session_store._sessions.clear()
    pipeline._user_locks.clear()


# ─────────────────────────────────────────────
#  Base en memoria
# ─────────────────────────────────────────────

class _Users:
    def __init__(self, db: "FakeDB"):
        self.db = db

    def get_by_id(self, user_id: str) -> Optional[User]:
        user = self.db.users.get(user_id)
        return replace(user) if user else None

    def get_by_identifier(self, identifier: str) -> Optional[User]:
        for user in self.db.users.values():
            if user.identifier == identifier:
                return replace(user)
        return None

    def create(self, identifier: str, name: Optional[str] = None) -> User:
        user = User(identifier=identifier, name=name, id=self.db.next_id())
        self.db.users[user.id] = user
        return replace(user)

    def get_or_create(self, identifier: str, name: Optional[str] = None) -> tuple[User, bool]:
        user = self.get_by_identifier(identifier)
        if user:
            return user, False
        return self.create(identifier, name), True

    def update(self, user_id: str, fields: dict) -> User:
        user = self.db.users[user_id]
        for key, value in fields.items():
            setattr(user, key, value)
        return replace(user)

    def list_by_family(self, family_group_id: str) -> list[User]:
        return [replace(u) for u in self.db.users.values() if u.family_group_id == family_group_id]


class _Families:
    def __init__(self, db: "FakeDB"):
        self.db = db

    def get_by_id(self, family_id: str) -> Optional[FamilyGroup]:
        family = self.db.families.get(family_id)
        return replace(family) if family else None

    def get_by_invite_code(self, invite_code: str) -> Optional[FamilyGroup]:
        for family in self.db.families.values():
            if family.invite_code == invite_code:
                return replace(family)
        return None

    def create(self, name: str, invite_code: str) -> FamilyGroup:
        family = FamilyGroup(name=name, invite_code=invite_code, id=self.db.next_id())
        self.db.families[family.id] = family
        return replace(family)

    def claim_admin(self, family_id: str, user_id: str) -> bool:
        family = self.db.families[family_id]
        if family.admin_id is not None:
            return False
        family.admin_id = user_id
        return True


class _Plans:
    def __init__(self, db: "FakeDB"):
        self.db = db

    def _with_owner(self, plan: BudgetPlan) -> BudgetPlan:
        owner = self.db.users.get(plan.user_id)
        return replace(plan, owner_name=owner.display_name if owner else None)

    def create(self, plan: BudgetPlan) -> BudgetPlan:
        stored = replace(plan, id=self.db.next_id(), created_at=datetime.now())
        self.db.plans[stored.id] = stored
        return self._with_owner(stored)

    def get_by_id(self, plan_id: str) -> Optional[BudgetPlan]:
        plan = self.db.plans.get(plan_id)
        return self._with_owner(plan) if plan else None

    def list_by_family(self, family_group_id: str, statuses: Iterable[str]) -> list[BudgetPlan]:
        statuses = set(statuses)
        return [
            self._with_owner(p) for p in self.db.plans.values()
            if p.family_group_id == family_group_id and p.status in statuses
        ]

    def list_personal(self, user_id: str, statuses: Iterable[str]) -> list[BudgetPlan]:
        statuses = set(statuses)
        return [
            self._with_owner(p) for p in self.db.plans.values()
            if p.user_id == user_id and p.family_group_id is None and p.status in statuses
        ]

    def find_open_by_category(self, user_id: str, family_group_id: Optional[str], category: str) -> list[BudgetPlan]:
        key = normalize_category(category)
        return [
            self._with_owner(p) for p in self.db.plans.values()
            if p.category_key == key
            and p.status in OPEN_PLAN_STATUSES
            and (p.user_id == user_id or (family_group_id and p.family_group_id == family_group_id))
        ]

    def update_if_status(self, plan_id: str, expected_status: str, fields: dict) -> Optional[BudgetPlan]:
        plan = self.db.plans.get(plan_id)
        if plan is None or plan.status != expected_status:
            return None
        for key, value in fields.items():
            setattr(plan, key, value)
        return self._with_owner(plan)


class _Transactions:
    def __init__(self, db: "FakeDB"):
        self.db = db

    def create(self, tx: Transaction) -> Transaction:
        stored = replace(tx, id=self.db.next_id())
        self.db.transactions.append(stored)
        return replace(stored)

    def list_in_range(self, user_ids: list[str], start: datetime, end: datetime, tx_type: Optional[str] = None) -> list[Transaction]:
        return sorted(
            (
                replace(tx) for tx in self.db.transactions
                if tx.user_id in user_ids
                and start <= tx.date < end
                and (tx_type is None or tx.type == tx_type)
            ),
            key=lambda tx: tx.date,
        )

    def list_amounts(self, user_id: str) -> list[dict]:
        return [
            {"type": tx.type, "amount": tx.amount}
            for tx in self.db.transactions if tx.user_id == user_id
        ]

    def count_by_user(self, user_id: str) -> int:
        return sum(1 for tx in self.db.transactions if tx.user_id == user_id)


class _Budgets:
    def __init__(self, db: "FakeDB"):
        self.db = db

    def set_budget(self, user_id: str, category: str, limit_amount: float, month: str) -> Budget:
        budget = Budget(user_id=user_id, category=category, limit_amount=limit_amount, month=month)
        self.db.budgets[(user_id, normalize_category(category), month)] = budget
        return replace(budget)

    def get(self, user_id: str, category: str, month: str) -> Optional[Budget]:
        budget = self.db.budgets.get((user_id, normalize_category(category), month))
        return replace(budget) if budget else None


class _AccessKeys:
    def __init__(self, db: "FakeDB"):
        self.db = db

    def get_by_key(self, key: str) -> Optional[AccessKey]:
        access_key = self.db.access_keys.get(key)
        return replace(access_key) if access_key else None

    def create(self, key: str) -> AccessKey:
        access_key = AccessKey(key=key, id=self.db.next_id())
        self.db.access_keys[key] = access_key
        return replace(access_key)

    def mark_used(self, key_id: str, user_id: str, used_at: datetime) -> bool:
        for access_key in self.db.access_keys.values():
            if access_key.id == key_id and not access_key.is_used:
                access_key.is_used = True
                access_key.used_at = used_at
                access_key.used_by_user_id = user_id
                return True
        return False


class _Achievements:
    def __init__(self, db: "FakeDB"):
        self.db = db

    def list_names(self, user_id: str) -> list[str]:
        return sorted(name for uid, name in self.db.achievements if uid == user_id)

    def unlock(self, user_id: str, name: str) -> bool:
        if (user_id, name) in self.db.achievements:
            return False
        self.db.achievements.add((user_id, name))
        return True


class FakeDB:
    """Tablas en memoria + repos con la misma interfaz que los reales."""

    def __init__(self):
        self._ids = itertools.count(1)
        self.users: dict[str, User] = {}
        self.families: dict[str, FamilyGroup] = {}
        self.plans: dict[str, BudgetPlan] = {}
        self.transactions: list[Transaction] = []
        self.budgets: dict[tuple, Budget] = {}
        self.access_keys: dict[str, AccessKey] = {}
        self.achievements: set[tuple[str, str]] = set()

        self.UserRepo = _Users(self)
        self.FamilyRepo = _Families(self)
        self.PlanRepo = _Plans(self)
        self.TransactionRepo = _Transactions(self)
        self.BudgetRepo = _Budgets(self)
        self.AccessKeyRepo = _AccessKeys(self)
        self.AchievementRepo = _Achievements(self)

    def next_id(self) -> str:
        # UUIDs como los de Postgres, en orden de creación
        return str(uuid.UUID(int=next(self._ids)))

    # ── Helpers para armar escenarios ─────────────────────

    def add_user(self, name: str, *, authorized: bool = True, family: Optional[FamilyGroup] = None, **fields) -> User:
        user = User(
            identifier=f"web_{name.lower()}",
            id=self.next_id(),
            name=name,
            is_authorized=authorized,
            family_group_id=family.id if family else None,
            **fields,
        )
        self.users[user.id] = user
        return replace(user)

    def add_family(self, name: str = "Silva", invite_code: str = "ABC123", admin: Optional[User] = None) -> FamilyGroup:
        family = FamilyGroup(
            name=name,
            invite_code=invite_code,
            id=self.next_id(),
            admin_id=admin.id if admin else None,
        )
        self.families[family.id] = family
        return replace(family)

    def add_tx(self, user: User, amount: float, tx_type: str, category: str, when: datetime, description: str = "") -> Transaction:
        tx = Transaction(
            user_id=user.id,
            amount=amount,
            type=tx_type,
            category=category,
            date=when,
            description=description,
            id=self.next_id(),
        )
        self.transactions.append(tx)
        return tx

    def plans_by_category(self, category: str) -> list[BudgetPlan]:
        key = normalize_category(category)
        return [p for p in self.plans.values() if p.category_key == key]


# Módulo → repos que importa
_REPO_TARGETS = {
    "services.family_service": ("UserRepo", "FamilyRepo"),
    "services.planning_service": ("PlanRepo",),
    "services.report_service": ("PlanRepo", "TransactionRepo"),
    "services.budget_service": ("BudgetRepo", "TransactionRepo"),
    "services.gamification_service": ("AchievementRepo", "TransactionRepo", "UserRepo"),
    "services.transaction_service": ("TransactionRepo",),
    "services.auth_service": ("AccessKeyRepo", "UserRepo"),
    "chat.commands.system": ("UserRepo",),
    "chat.pipeline": ("UserRepo",),
}


@pytest.fixture
def fake_db(monkeypatch):
    """Base en memoria parchada en todos los consumidores de los repos."""
    import importlib

    db = FakeDB()
    for module_name, repos in _REPO_TARGETS.items():
        module = importlib.import_module(module_name)
        for repo in repos:
            monkeypatch.setattr(module, repo, getattr(db, repo))
    return db


class ReplyRecorder:
    """Reemplazo de la función `reply` de los transportes."""

    def __init__(self):
        self.messages: list[tuple[str, list]] = []

    async def __call__(self, text, options=None):
        self.messages.append((text, list(options or [])))

    @property
    def texts(self) -> list[str]:
        return [text for text, _ in self.messages]

    @property
    def last(self) -> str:
        return self.messages[-1][0]


@pytest.fixture
def replies():
    return ReplyRecorder()


@pytest.fixture
def reply_factory():
    """Para tests con más de un usuario conversando a la vez."""
    return ReplyRecorder
