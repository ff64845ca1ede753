"""
services/budget_service.py
───────────────────────────
Lógica de negocio para presupuestos mensuales personales.
Permite definir límites por categoría y avisar cuando el gasto del
mes calendario llega al 90% del límite.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from database.models import Budget, normalize_category
from database.repositories import BudgetRepo, TransactionRepo
from services import billing_cycle
from services.exceptions import ValidationError

logger = logging.getLogger(__name__)

ALERT_THRESHOLD = 90.0   # % del límite


class BudgetService:
    """Gestiona presupuestos y alertas de gasto."""

    # ── Creación / actualización ──────────────────────────

    @classmethod
    def set_budget(
        cls,
        user_id: str,
        category: str,
        limit_amount: float,
        month: str | None = None,
    ) -> Budget:
        """
        Define o actualiza el presupuesto de una categoría.

        Args:
            user_id:      UUID del usuario.
            category:     Nombre de la categoría.
            limit_amount: Monto máximo en el mes.
            month:        "YYYY-MM". Si es None usa el mes actual.
        """
        category = " ".join((category or "").split())
        if not category:
            raise ValidationError("Indicá la categoría del límite.")
        if not month:
            month = billing_cycle.month_key()
        return BudgetRepo.set_budget(user_id, category, abs(limit_amount), month)

    # ── Alertas ───────────────────────────────────────────

    @classmethod
    def check_budget_alert(
        cls,
        user_id: str,
        category: str,
        now: Optional[datetime] = None,
    ) -> Optional[str]:
        """
        Si el gasto del mes en la categoría llegó al 90% del límite,
        retorna el texto de alerta. Si no hay límite o está lejos, None.
        """
        now = now or billing_cycle.now()
        budget = BudgetRepo.get(user_id, category, billing_cycle.month_key(now))
        if budget is None or budget.limit_amount <= 0:
            return None

        start, end = billing_cycle.month_range(now.month, now.year)
        key = normalize_category(category)
        spent = sum(
            tx.amount
            for tx in TransactionRepo.list_in_range([user_id], start, end, tx_type="EXPENSE")
            if normalize_category(tx.category) == key
        )
        pct = spent / budget.limit_amount * 100
        if pct < ALERT_THRESHOLD:
            return None

        logger.info("Alerta de presupuesto para %s en %s (%.0f%%)", user_id, key, pct)
        return cls.format_alert(budget.category, spent, budget.limit_amount, pct)

    # ── Formato para chat ─────────────────────────────────

    @staticmethod
    def format_alert(category: str, spent: float, limit: float, pct: float) -> str:
        emoji = "🚨" if pct >= 100 else "⚠️"
        return (
            f"{emoji} *Alerta de presupuesto:* llevás gastado "
            f"${spent:,.2f} de ${limit:,.2f} en *{category}* ({pct:.0f}%)"
        )

    @staticmethod
    def format_budget_set(budget: Budget) -> str:
        return (
            f"✅ Límite de *{budget.category}* para {budget.month}: "
            f"`${budget.limit_amount:,.2f}`\n"
            f"Te aviso cuando llegues al {ALERT_THRESHOLD:.0f}%."
        )

    @staticmethod
    def _progress_bar(percentage: float, length: int = 10) -> str:
        """Genera una barra de progreso ASCII."""
        filled = min(int(percentage / 100 * length), length)
        return "█" * filled + "░" * (length - filled)
