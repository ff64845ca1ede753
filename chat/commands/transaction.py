"""
chat/commands/transaction.py
─────────────────────────────
Última etapa: si ningún comando reconoció el mensaje, se lo pasamos al
NLP. Si describe un gasto o ingreso se registra, suma XP, revisa logros
y avisa si el gasto del mes se acerca al límite de la categoría.

También es el camino de escritura de los comprobantes (fotos).
"""

import asyncio
import logging
from typing import Any, Awaitable, Optional

from ai.nlp import parse_transaction
from chat.context import Handled, HandledResult, MessageContext
from config import AI_TIMEOUT_SECONDS
from services.budget_service import BudgetService
from services.gamification_service import GamificationService
from services.transaction_service import TransactionService

logger = logging.getLogger(__name__)

STAGE = "ai"

NOT_UNDERSTOOD = (
    "🤔 No entendí. Probá con algo como: _\"Gasté 50 en pizza\"_ "
    "o escribí *ayuda*."
)


async def with_timeout(call: Awaitable[Any], what: str) -> Optional[Any]:
    """Espera al colaborador de IA como máximo AI_TIMEOUT_SECONDS. Si vence, None."""
    try:
        return await asyncio.wait_for(call, timeout=AI_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        logger.warning("Timeout de %ss esperando %s", AI_TIMEOUT_SECONDS, what)
        return None


async def handle(ctx: MessageContext) -> HandledResult:
    parsed = await with_timeout(parse_transaction(ctx.text), "parse_transaction")
    if not parsed:
        await ctx.reply(NOT_UNDERSTOOD)
        return Handled(STAGE)

    await ctx.reply(record(ctx.user.id, parsed))
    return Handled(STAGE)


def record(user_id: str, parsed: dict, header: Optional[str] = None) -> str:
    """Registra la transacción y arma la respuesta con XP, logros y alerta."""
    tx, xp_gained = TransactionService.add_from_parsed(user_id, parsed)

    parts = [TransactionService.format_confirmation(tx, xp_gained)]
    if header:
        parts.insert(0, header)

    achievements = GamificationService.check_achievements(user_id)
    if achievements:
        parts.append("\n".join(achievements))

    if tx.type == "EXPENSE":
        alert = BudgetService.check_budget_alert(user_id, tx.category)
        if alert:
            parts.append(alert)

    return "\n\n".join(parts)
