"""
chat/commands/planning.py
──────────────────────────
Etapa de planificación: `plan` / `planes` / `planificacion`.

    plan                              → lista metas activas (+ pendientes si sos admin)
    plan crear [Categoría] [Valor]    → crea; sin argumentos abre el asistente
    plan editar [Categoría] [Valor]   → cambia el valor; sin argumentos abre el asistente
    plan renombrar [Actual] [Nueva]   → cambia el nombre de la categoría
    plan borrar|eliminar [Categoría]  → borra; sin argumentos abre el asistente
    plan aprobar|rechazar [ID]        → solo el admin de la familia

Las respuestas de resultado (creado, actualizado, borrado) las comparte
con el asistente paso a paso (chat/wizard.py).
"""

import logging

from chat import states
from chat.amounts import parse_amount
from chat.context import NOT_HANDLED, Handled, HandledResult, MessageContext, ReplyOption
from database.models import BudgetPlan
from services.planning_service import PlanningService
from services.session_service import session_store

logger = logging.getLogger(__name__)

KEYWORDS = {"plan", "planes", "planificacion"}
ACTIONS = {"crear", "editar", "renombrar", "borrar", "eliminar", "aprobar", "rechazar"}
STAGE = "planning"

CREATE_PROMPT = "🎯 *Nuevo plan*\n\n¿Para qué categoría? (ej: `Ocio`)\n_Escribí `cancelar` para salir._"
DELETE_PROMPT = "🗑️ *Borrar plan*\n\n¿De qué categoría?\n_Escribí `cancelar` para salir._"
EDIT_PROMPT = "✏️ *Editar plan*\n\n¿Qué categoría querés editar?\n_Escribí `cancelar` para salir._"
AMOUNT_PROMPT = "¿Cuál es el valor? Escribí un monto (`500`) o un porcentaje de los ingresos (`10%`)."

MENU_OPTIONS = [
    ReplyOption("➕ Crear", "/plan crear"),
    ReplyOption("✏️ Editar", "/plan editar"),
    ReplyOption("🗑️ Borrar", "/plan borrar"),
]


# ── Respuestas compartidas con el asistente ──────────────

async def reply_created(ctx: MessageContext, plan: BudgetPlan, is_pending: bool) -> None:
    target = PlanningService.format_target(plan.type, plan.amount)
    if is_pending:
        await ctx.reply(
            f"📝 *¡Sugerencia enviada!* El administrador de la familia tiene que "
            f"aprobar la meta de {target} para *{plan.category}*."
        )
    else:
        await ctx.reply(f"✅ *¡Plan creado!* Meta de {target} para *{plan.category}*.")


async def reply_updated(ctx: MessageContext, plan: BudgetPlan, renamed_from: str | None = None) -> None:
    if renamed_from is not None:
        await ctx.reply(f"✅ Categoría renombrada de *{renamed_from}* a *{plan.category}*.")
        return
    target = PlanningService.format_target(plan.type, plan.amount)
    await ctx.reply(f"✅ Plan de *{plan.category}* actualizado a {target}.")


async def reply_deleted(ctx: MessageContext, plan: BudgetPlan) -> None:
    await ctx.reply(f"✅ Plan de *{plan.category}* eliminado.")


def start_wizard(ctx: MessageContext, state: str) -> None:
    session_store.set(ctx.user.id, state)
    logger.info("Asistente %s iniciado por %s", state, ctx.user.id)


# ── Etapa ────────────────────────────────────────────────

async def handle(ctx: MessageContext) -> HandledResult:
    if ctx.keyword not in KEYWORDS:
        return NOT_HANDLED

    action = ctx.word(1)
    # "plan celular 3000" es un gasto: sin "/" solo valen las acciones conocidas
    if action and action not in ACTIONS and not ctx.is_slash_command:
        return NOT_HANDLED

    user_id = ctx.user.id

    if action == "crear":
        args = ctx.args(2)
        if not args:
            start_wizard(ctx, states.PLAN_CREATE_CATEGORY)
            await ctx.reply(CREATE_PROMPT)
            return Handled(STAGE)
        if len(args) < 2:
            await ctx.reply(
                "⚠️ Usá: `/plan crear [Categoría] [Valor]`\n"
                "Ej: `/plan crear Alimentación 500` o `/plan crear Ocio 10%`"
            )
            return Handled(STAGE)
        amount, plan_type = parse_amount(args[-1])
        plan, is_pending = PlanningService.create_plan(user_id, " ".join(args[:-1]), plan_type, amount)
        await reply_created(ctx, plan, is_pending)
        return Handled(STAGE)

    if action in ("aprobar", "rechazar"):
        args = ctx.args(2)
        if not args:
            await ctx.reply(f"⚠️ Usá: `/plan {action} [ID]`")
            return Handled(STAGE)
        approve = action == "aprobar"
        plan = PlanningService.approve_plan(user_id, args[0], approve=approve)
        if approve:
            await ctx.reply(f"✅ ¡Plan de *{plan.category}* aprobado!")
        else:
            await ctx.reply(f"🚫 Plan de *{plan.category}* rechazado.")
        return Handled(STAGE)

    if action == "editar":
        args = ctx.args(2)
        if not args:
            start_wizard(ctx, states.PLAN_EDIT_CATEGORY)
            await ctx.reply(EDIT_PROMPT)
            return Handled(STAGE)
        if len(args) < 2:
            await ctx.reply("⚠️ Usá: `/plan editar [Categoría] [Nuevo valor]`")
            return Handled(STAGE)
        amount, plan_type = parse_amount(args[-1])
        category = " ".join(args[:-1])
        plan = PlanningService.update_plan(user_id, category, new_amount=amount, new_type=plan_type)
        await reply_updated(ctx, plan)
        return Handled(STAGE)

    if action == "renombrar":
        args = ctx.args(2)
        if len(args) < 2:
            await ctx.reply("⚠️ Usá: `/plan renombrar [Categoría actual] [Nuevo nombre]`")
            return Handled(STAGE)
        current, new_name = args[0], " ".join(args[1:])
        plan = PlanningService.update_plan(user_id, current, new_category=new_name)
        await reply_updated(ctx, plan, renamed_from=current)
        return Handled(STAGE)

    if action in ("borrar", "eliminar"):
        args = ctx.args(2)
        if not args:
            start_wizard(ctx, states.PLAN_DELETE_CATEGORY)
            await ctx.reply(DELETE_PROMPT)
            return Handled(STAGE)
        plan = PlanningService.delete_plan(user_id, " ".join(args))
        await reply_deleted(ctx, plan)
        return Handled(STAGE)

    # Listado (default)
    listing = PlanningService.get_plans(user_id)
    await ctx.reply(PlanningService.format_plans(listing), MENU_OPTIONS)
    return Handled(STAGE)
