"""
chat/wizard.py
───────────────
Asistentes paso a paso para crear, editar y borrar planes.

    PLAN_CREATE_CATEGORY → PLAN_CREATE_AMOUNT → (crear plan)
    PLAN_DELETE_CATEGORY → (borrar plan)
    PLAN_EDIT_CATEGORY → PLAN_EDIT_OPTION → PLAN_EDIT_NEW_VALUE → (actualizar valor)
                                          → PLAN_EDIT_NEW_NAME  → (renombrar)

Reglas:
  - Un valor inválido o una categoría vacía repiten la pregunta sin
    cambiar de estado ni de datos.
  - Todo desenlace (éxito, plan inexistente, sin permiso) borra la sesión.
    La sesión se borra ANTES de llamar al servicio: si el servicio falla,
    el error llega al pipeline con la sesión ya cerrada.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

from chat import states
from chat.amounts import parse_amount
from chat.commands.planning import AMOUNT_PROMPT, reply_created, reply_deleted, reply_updated
from chat.context import Handled, HandledResult, MessageContext, ReplyOption
from database.models import Session
from services.exceptions import NotFound, ValidationError
from services.planning_service import PlanningService
from services.session_service import session_store

logger = logging.getLogger(__name__)

STAGE = "wizard"

EDIT_OPTIONS = [
    ReplyOption("1️⃣ Cambiar valor", "1"),
    ReplyOption("2️⃣ Cambiar nombre", "2"),
]
EDIT_OPTION_VALUE = {"1", "valor"}
EDIT_OPTION_NAME = {"2", "nombre", "renombrar"}

CANCEL_WORDS = {"cancelar", "salir"}


def is_cancel(ctx: MessageContext) -> bool:
    return ctx.normalized.lstrip("/") in CANCEL_WORDS


async def cancel(ctx: MessageContext) -> HandledResult:
    had_session = session_store.get(ctx.user.id) is not None
    session_store.clear(ctx.user.id)
    if had_session:
        await ctx.reply("👌 Operación cancelada.")
    else:
        await ctx.reply("No hay ninguna operación en curso.")
    return Handled(STAGE)


async def handle_session(ctx: MessageContext, session: Session) -> HandledResult:
    """Consume el mensaje según el estado de la sesión activa."""
    step = _STEPS.get(session.state)
    if step is None:
        # Estado desconocido (ej: sesión de una versión anterior): se descarta
        logger.warning("Estado de sesión desconocido %r para %s", session.state, ctx.user.id)
        session_store.clear(ctx.user.id)
        await ctx.reply("⚠️ La operación en curso expiró. Empezá de nuevo.")
        return Handled(STAGE)
    await step(ctx, session)
    return Handled(STAGE)


def _transition(ctx: MessageContext, state: str, data: dict) -> None:
    session_store.set(ctx.user.id, state, data)
    logger.info("Asistente de %s → %s", ctx.user.id, state)


def _finish(ctx: MessageContext) -> None:
    session_store.clear(ctx.user.id)
    logger.info("Asistente de %s finalizado", ctx.user.id)


def _clean(text: str) -> str:
    return " ".join(text.split())


# ── Crear ────────────────────────────────────────────────

async def _create_category(ctx: MessageContext, session: Session) -> None:
    category = _clean(ctx.text)
    if not category:
        await ctx.reply("¿Para qué categoría es el plan?")
        return
    _transition(ctx, states.PLAN_CREATE_AMOUNT, {**session.data, "category": category})
    await ctx.reply(f"Categoría: *{category}*\n\n{AMOUNT_PROMPT}")


async def _create_amount(ctx: MessageContext, session: Session) -> None:
    try:
        amount, plan_type = parse_amount(ctx.text)
    except ValidationError as e:
        await ctx.reply(f"❌ {e.message}")
        return
    _finish(ctx)
    plan, is_pending = PlanningService.create_plan(
        ctx.user.id, session.data["category"], plan_type, amount
    )
    await reply_created(ctx, plan, is_pending)


# ── Borrar ───────────────────────────────────────────────

async def _delete_category(ctx: MessageContext, session: Session) -> None:
    category = _clean(ctx.text)
    if not category:
        await ctx.reply("¿De qué categoría querés borrar el plan?")
        return
    _finish(ctx)
    plan = PlanningService.delete_plan(ctx.user.id, category)
    await reply_deleted(ctx, plan)


# ── Editar ───────────────────────────────────────────────

async def _edit_category(ctx: MessageContext, session: Session) -> None:
    category = _clean(ctx.text)
    if not category:
        await ctx.reply("¿Qué categoría querés editar?")
        return
    try:
        plan = PlanningService.find_plan(ctx.user.id, category)
    except NotFound:
        _finish(ctx)
        raise
    _transition(ctx, states.PLAN_EDIT_OPTION, {**session.data, "category": plan.category})
    target = PlanningService.format_target(plan.type, plan.amount)
    await ctx.reply(
        f"Plan de *{plan.category}*: {target}\n\n"
        "¿Qué querés cambiar?\n1️⃣ Valor\n2️⃣ Nombre",
        EDIT_OPTIONS,
    )


async def _edit_option(ctx: MessageContext, session: Session) -> None:
    choice = ctx.normalized.lstrip("/")
    if choice in EDIT_OPTION_VALUE:
        _transition(ctx, states.PLAN_EDIT_NEW_VALUE, session.data)
        await ctx.reply(AMOUNT_PROMPT)
    elif choice in EDIT_OPTION_NAME:
        _transition(ctx, states.PLAN_EDIT_NEW_NAME, session.data)
        await ctx.reply("¿Cuál es el nuevo nombre de la categoría?")
    else:
        await ctx.reply("Elegí *1* para cambiar el valor o *2* para cambiar el nombre.", EDIT_OPTIONS)


async def _edit_new_value(ctx: MessageContext, session: Session) -> None:
    try:
        amount, plan_type = parse_amount(ctx.text)
    except ValidationError as e:
        await ctx.reply(f"❌ {e.message}")
        return
    _finish(ctx)
    plan = PlanningService.update_plan(
        ctx.user.id, session.data["category"], new_amount=amount, new_type=plan_type
    )
    await reply_updated(ctx, plan)


async def _edit_new_name(ctx: MessageContext, session: Session) -> None:
    new_name = _clean(ctx.text)
    if not new_name:
        await ctx.reply("¿Cuál es el nuevo nombre de la categoría?")
        return
    _finish(ctx)
    current = session.data["category"]
    plan = PlanningService.update_plan(ctx.user.id, current, new_category=new_name)
    await reply_updated(ctx, plan, renamed_from=current)


_STEPS: dict[str, Callable[[MessageContext, Session], Awaitable[None]]] = {
    states.PLAN_CREATE_CATEGORY: _create_category,
    states.PLAN_CREATE_AMOUNT: _create_amount,
    states.PLAN_DELETE_CATEGORY: _delete_category,
    states.PLAN_EDIT_CATEGORY: _edit_category,
    states.PLAN_EDIT_OPTION: _edit_option,
    states.PLAN_EDIT_NEW_VALUE: _edit_new_value,
    states.PLAN_EDIT_NEW_NAME: _edit_new_name,
}
