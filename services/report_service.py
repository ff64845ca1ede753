"""
services/report_service.py
───────────────────────────
Agregaciones de solo lectura sobre las transacciones.

  - Saldo histórico del usuario.
  - Gastos personales de un mes CALENDARIO.
  - Reporte familiar del CICLO de facturación actual (día 9 al 8),
    con el avance de cada plan FIXED activo de la familia.

Nada de esto escribe en la base. El formato para chat vive en los
métodos format_* al final.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional, Union

from database.models import Transaction, normalize_category
from database.repositories import PlanRepo, TransactionRepo
from services import billing_cycle
from services.billing_cycle import CycleRange
from services.budget_service import BudgetService
from services.family_service import FamilyService

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────
#  Resultados
# ─────────────────────────────────────────────

@dataclass
class MonthlyExpenses:
    total: float = 0.0
    by_category: dict[str, float] = field(default_factory=dict)
    count: int = 0


@dataclass
class BudgetStatus:
    limit: float
    spent: float
    remaining: float
    percentage: float


@dataclass
class FamilyReport:
    family_name: str
    invite_code: str
    cycle: CycleRange
    total_income: float
    total_expense: float
    total_available: float
    by_member: dict[str, float]
    by_category: dict[str, float]
    budgets: dict[str, BudgetStatus]
    percentage_targets: dict[str, float]
    member_count: int


@dataclass(frozen=True)
class NoFamily:
    """El usuario no pertenece a ninguna familia (no es un error)."""
    message: str = "Todavía no sos parte de una familia."


FamilyReportResult = Union[FamilyReport, NoFamily]


class _CategoryTotals:
    """
    Suma por categoría canónica conservando el primer casing visto
    para mostrar ("Lazer" y "LAZER" suman juntos y se muestran "Lazer").
    """

    def __init__(self) -> None:
        self._display: dict[str, str] = {}
        self._totals: dict[str, float] = {}

    def add(self, category: str, amount: float) -> None:
        key = normalize_category(category)
        self._display.setdefault(key, " ".join(category.split()))
        self._totals[key] = self._totals.get(key, 0.0) + amount

    def spent(self, key: str) -> float:
        return self._totals.get(key, 0.0)

    def display(self, key: str) -> Optional[str]:
        return self._display.get(key)

    def as_dict(self) -> dict[str, float]:
        ordered = sorted(self._totals.items(), key=lambda kv: kv[1], reverse=True)
        return {self._display[k]: round(v, 2) for k, v in ordered}


def budget_status(limit: float, spent: float) -> BudgetStatus:
    """Avance de un tope fijo. Con tope 0, cualquier gasto es 100%."""
    if limit > 0:
        percentage = min(100.0, spent / limit * 100)
    else:
        percentage = 100.0 if spent > 0 else 0.0
    return BudgetStatus(
        limit=limit,
        spent=round(spent, 2),
        remaining=round(max(0.0, limit - spent), 2),
        percentage=percentage,
    )


class ReportService:
    """Saldo, resumen mensual y reporte familiar."""

    # ── Personales ────────────────────────────────────────

    @classmethod
    def get_balance(cls, user_id: str) -> float:
        """Ingresos menos gastos de toda la historia del usuario."""
        balance = 0.0
        for row in TransactionRepo.list_amounts(user_id):
            amount = float(row["amount"])
            balance += amount if row["type"] == "INCOME" else -amount
        return round(balance, 2)

    @classmethod
    def get_monthly_expenses(cls, user_id: str, month: int, year: int) -> MonthlyExpenses:
        """Gastos del usuario en el mes calendario (mes, año)."""
        start, end = billing_cycle.month_range(month, year)
        txs = TransactionRepo.list_in_range([user_id], start, end, tx_type="EXPENSE")

        totals = _CategoryTotals()
        for tx in txs:
            totals.add(tx.category, tx.amount)

        return MonthlyExpenses(
            total=round(sum(tx.amount for tx in txs), 2),
            by_category=totals.as_dict(),
            count=len(txs),
        )

    # ── Familia ───────────────────────────────────────────

    @classmethod
    def get_family_report(
        cls,
        user_id: str,
        reference: Optional[date | datetime] = None,
    ) -> FamilyReportResult:
        """
        Reporte del ciclo que contiene `reference` (por defecto, hoy).

        Retorna NoFamily si el usuario no está en una familia.
        """
        _, family = FamilyService.load_member(user_id)
        if family is None:
            return NoFamily()

        cycle = billing_cycle.cycle_for(reference)
        members = FamilyService.list_members(family)
        names = {m.id: m.display_name for m in members}

        txs: list[Transaction] = TransactionRepo.list_in_range(
            list(names), cycle.start, cycle.end
        )

        total_income = 0.0
        total_expense = 0.0
        by_member: dict[str, float] = {}
        categories = _CategoryTotals()

        for tx in txs:
            if tx.type == "INCOME":
                total_income += tx.amount
                continue
            total_expense += tx.amount
            member = names.get(tx.user_id, tx.user_id)
            by_member[member] = by_member.get(member, 0.0) + tx.amount
            categories.add(tx.category, tx.amount)

        budgets: dict[str, BudgetStatus] = {}
        percentage_targets: dict[str, float] = {}
        for plan in PlanRepo.list_by_family(family.id, ["ACTIVE"]):
            label = categories.display(plan.category_key) or plan.category
            if plan.type == "PERCENTAGE":
                percentage_targets[label] = plan.amount
            else:
                budgets[label] = budget_status(plan.amount, categories.spent(plan.category_key))

        total_income = round(total_income, 2)
        total_expense = round(total_expense, 2)
        logger.debug(
            "Reporte familia %s ciclo %02d/%d: %d transacciones",
            family.id, cycle.month, cycle.year, len(txs),
        )
        return FamilyReport(
            family_name=family.name,
            invite_code=family.invite_code,
            cycle=cycle,
            total_income=total_income,
            total_expense=total_expense,
            total_available=total_income - total_expense,
            by_member={k: round(v, 2) for k, v in by_member.items()},
            by_category=categories.as_dict(),
            budgets=budgets,
            percentage_targets=percentage_targets,
            member_count=len(members),
        )

    # ── Formato para chat ─────────────────────────────────

    @staticmethod
    def format_monthly_summary(expenses: MonthlyExpenses, month: int, year: int) -> str:
        lines = [
            f"📊 *Resumen de {month:02d}/{year}*\n",
            f"💸 Total gastado: `${expenses.total:,.2f}`",
            f"📝 Transacciones: {expenses.count}",
        ]
        if expenses.by_category:
            lines.append("\n📂 *Por categoría:*")
            for cat, amount in expenses.by_category.items():
                lines.append(f"  • {_escape_md(cat)}: `${amount:,.2f}`")
        return "\n".join(lines)

    @staticmethod
    def format_family_report(report: FamilyReport) -> str:
        lines = [
            f"👨‍👩‍👧‍👦 *Familia: {_escape_md(report.family_name)}*",
            f"🔑 Código: `{report.invite_code}`",
            f"👥 {report.member_count} miembros · ciclo {report.cycle.month:02d}/{report.cycle.year}\n",
            f"💰 *Ingresos: ${report.total_income:,.2f}*",
            f"💸 *Gastos: ${report.total_expense:,.2f}*",
            f"✅ *Disponible: ${report.total_available:,.2f}*",
            "──────────────────",
            "👤 *Por miembro:*",
        ]
        if not report.by_member:
            lines.append("_Sin gastos en este ciclo._")
        for name, amount in report.by_member.items():
            lines.append(f"• {_escape_md(name)}: ${amount:,.2f}")

        lines.append("──────────────────")
        lines.append("📊 *Por categoría:*\n")

        shown = set()
        for category, spent in report.by_category.items():
            shown.add(category)
            lines.append(f"*{_escape_md(category)}*")
            budget = report.budgets.get(category)
            if budget is None:
                lines.append(f"${spent:,.2f}")
                lines.append("_(Sin meta)_\n")
                continue
            lines.extend(_budget_lines(budget, BudgetService._progress_bar))

        # Metas fijas sin gastos todavía
        for category, budget in report.budgets.items():
            if category in shown:
                continue
            lines.append(f"*{_escape_md(category)}*")
            lines.extend(_budget_lines(budget, BudgetService._progress_bar))

        if report.percentage_targets:
            lines.append("🎯 *Metas porcentuales:*")
            for category, pct in report.percentage_targets.items():
                lines.append(f"• {_escape_md(category)}: {pct:g}% de los ingresos")

        return "\n".join(lines).rstrip()

    @staticmethod
    def format_family_teaser(report: FamilyReport) -> str:
        return (
            f"\n👨‍👩‍👧‍👦 *Familia: {_escape_md(report.family_name)}*\n"
            f"💸 Total familiar: `${report.total_expense:,.2f}`\n"
            f"ℹ️ Escribí */familia* para ver el detalle"
        )

    @staticmethod
    def format_no_family() -> str:
        return (
            "👨‍👩‍👧‍👦 *Cuenta familiar*\n\n"
            "Todavía no sos parte de una familia.\n\n"
            "*Comandos:*\n"
            "• `/familia crear [nombre]` - Crear una familia nueva\n"
            "• `/familia unirse [código]` - Entrar a una familia existente"
        )


# ─────────────────────────────────────────────
#  Helpers privados
# ─────────────────────────────────────────────

def _budget_lines(budget: BudgetStatus, progress_bar) -> list[str]:
    lines = [
        f"${budget.spent:,.2f} de ${budget.limit:,.2f}",
        f"{progress_bar(budget.percentage)} {budget.percentage:.0f}%",
    ]
    if budget.spent > budget.limit:
        lines.append(f"🚨 *Excedido: ${budget.spent - budget.limit:,.2f}*\n")
    else:
        lines.append(f"💰 Quedan: ${budget.remaining:,.2f}\n")
    return lines


def _escape_md(text: str) -> str:
    """Escapa los caracteres especiales del Markdown de Telegram."""
    for ch in ("_", "*", "[", "]", "`"):
        text = text.replace(ch, f"\\{ch}")
    return text
