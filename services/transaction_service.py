"""
services/transaction_service.py
────────────────────────────────
Lógica de negocio para el registro de transacciones.
Orquesta NLP/OCR → validación → persistencia en DB → XP.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from database.models import Transaction, TransactionType
from database.repositories import TransactionRepo
from services import billing_cycle
from services.exceptions import ValidationError
from services.gamification_service import XP_PER_TRANSACTION, GamificationService

logger = logging.getLogger(__name__)


class TransactionService:
    """Gestiona el alta de transacciones financieras."""

    # ── Creación ──────────────────────────────────────────

    @classmethod
    def add_transaction(
        cls,
        user_id: str,
        amount: float,
        tx_type: TransactionType,
        category: str,
        description: str = "",
        tx_date: Optional[datetime] = None,
    ) -> tuple[Transaction, int]:
        """
        Persiste la transacción y suma XP al usuario.

        Returns:
            (transaction, xp_gained)
        """
        if tx_type not in ("INCOME", "EXPENSE"):
            raise ValidationError(f"Tipo de transacción inválido: {tx_type}")
        if amount is None or amount <= 0:
            raise ValidationError("El monto tiene que ser mayor a cero.")

        tx = TransactionRepo.create(Transaction(
            user_id=user_id,
            amount=abs(float(amount)),
            type=tx_type,
            category=" ".join((category or "otros").split()),
            description=description or "",
            date=tx_date or billing_cycle.now(),
        ))
        GamificationService.add_xp(user_id, XP_PER_TRANSACTION)
        logger.info("Transacción %s registrada para %s (%s %.2f)", tx.id, user_id, tx_type, tx.amount)
        return tx, XP_PER_TRANSACTION

    @classmethod
    def add_from_parsed(cls, user_id: str, parsed: dict[str, Any]) -> tuple[Transaction, int]:
        """
        Crea una transacción a partir del dict retornado por el NLP/OCR.

        Args:
            user_id: UUID del usuario en Supabase.
            parsed:  dict con amount, type, category, description.
        """
        return cls.add_transaction(
            user_id=user_id,
            amount=float(parsed["amount"]),
            tx_type=parsed["type"],
            category=parsed.get("category") or "otros",
            description=parsed.get("description") or "",
        )

    # ── Formato para chat ─────────────────────────────────

    @staticmethod
    def format_confirmation(tx: Transaction, xp_gained: int) -> str:
        """Confirmación de una transacción registrada."""
        emoji = "💰" if tx.type == "INCOME" else "💸"
        kind = "Ingreso" if tx.type == "INCOME" else "Gasto"
        lines = [
            f"✅ *{kind} registrado*\n",
            f"{emoji} Monto: `${tx.amount:,.2f}`",
            f"📂 Categoría: {tx.category}",
        ]
        if tx.description:
            lines.append(f"📝 {tx.description}")
        lines.append(f"\n+{xp_gained} XP")
        return "\n".join(lines)
