"""
chat/commands/family.py
────────────────────────
Cuenta familiar:

    familia                          → reporte del ciclo actual
    familia crear [Nombre]           → crea la familia y muestra el código
    familia unirse|entrar [Código]   → entra a una familia existente
"""

from chat.context import NOT_HANDLED, Handled, HandledResult, MessageContext
from services.family_service import FamilyService
from services.report_service import NoFamily, ReportService

STAGE = "family"

KEYWORDS = {"familia", "family"}
ACTIONS = {"crear", "unirse", "entrar"}


async def handle(ctx: MessageContext) -> HandledResult:
    if ctx.keyword not in KEYWORDS:
        return NOT_HANDLED

    action = ctx.word(1)
    if action and action not in ACTIONS and not ctx.is_slash_command:
        return NOT_HANDLED

    if action == "crear":
        name = " ".join(ctx.args(2)) or None
        family = FamilyService.create_family(ctx.user.id, name)
        await ctx.reply(
            f"🎉 *¡Familia {family.name} creada!*\n\n"
            f"Código de invitación: `{family.invite_code}`\n\n"
            "Compartilo con quien quieras sumar. Se unen con "
            f"`/familia unirse {family.invite_code}`."
        )
        return Handled(STAGE)

    if action in ("unirse", "entrar"):
        args = ctx.args(2)
        code = args[0].strip("[]") if args else ""
        if not code:
            await ctx.reply("⚠️ Usá: `/familia unirse [código]`")
            return Handled(STAGE)
        family = FamilyService.join_family(ctx.user.id, code)
        await ctx.reply(f"🎉 *¡Te uniste a la familia {family.name}!*")
        return Handled(STAGE)

    report = ReportService.get_family_report(ctx.user.id)
    if isinstance(report, NoFamily):
        await ctx.reply(ReportService.format_no_family())
    else:
        await ctx.reply(ReportService.format_family_report(report))
    return Handled(STAGE)
