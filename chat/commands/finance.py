"""
chat/commands/finance.py
─────────────────────────
Comandos financieros personales:

    saldo                        → ingresos - gastos de toda la historia
    dashboard | panel            → link personal al dashboard
    resumen                      → gastos del mes calendario + gamificación
                                   (+ resumen familiar si corresponde)
    limite [Categoría] [Monto]   → límite mensual personal (alerta al 90%)
"""

from chat.amounts import parse_amount
from chat.context import NOT_HANDLED, Handled, HandledResult, MessageContext
from services import billing_cycle
from services.auth_service import AuthService
from services.budget_service import BudgetService
from services.exceptions import ValidationError
from services.gamification_service import GamificationService
from services.report_service import FamilyReport, ReportService

STAGE = "finance"


async def handle(ctx: MessageContext) -> HandledResult:
    keyword = ctx.keyword
    words = ctx.words

    if keyword == "saldo" and len(words) == 1:
        balance = ReportService.get_balance(ctx.user.id)
        await ctx.reply(f"💰 *Tu saldo actual:* `${balance:,.2f}`")
        return Handled(STAGE)

    if keyword in ("dashboard", "panel") and len(words) == 1:
        token = AuthService.get_dashboard_token(ctx.user)
        await ctx.reply(
            "📊 *Tu dashboard personal*\n\n"
            "Entrá a tu panel exclusivo con este link:\n\n"
            f"{AuthService.dashboard_link(token)}\n\n"
            "⚠️ *Atención:* no compartas este link con nadie."
        )
        return Handled(STAGE)

    if keyword == "resumen" and len(words) == 1:
        await ctx.reply(_monthly_summary(ctx.user.id))
        return Handled(STAGE)

    if keyword == "limite":
        args = ctx.args(1)
        if len(args) < 2:
            await ctx.reply("⚠️ Usá: `/limite [Categoría] [Monto]`\nEj: `/limite Alimentación 50000`")
            return Handled(STAGE)
        amount, plan_type = parse_amount(args[-1])
        if plan_type != "FIXED":
            raise ValidationError("El límite mensual tiene que ser un monto, no un porcentaje.")
        budget = BudgetService.set_budget(ctx.user.id, " ".join(args[:-1]), amount)
        await ctx.reply(BudgetService.format_budget_set(budget))
        return Handled(STAGE)

    return NOT_HANDLED


def _monthly_summary(user_id: str) -> str:
    today = billing_cycle.now()
    expenses = ReportService.get_monthly_expenses(user_id, today.month, today.year)
    parts = [ReportService.format_monthly_summary(expenses, today.month, today.year)]

    stats = GamificationService.get_user_stats(user_id)
    if stats is not None:
        parts.append(GamificationService.format_stats(stats))

    family_report = ReportService.get_family_report(user_id, today)
    if isinstance(family_report, FamilyReport):
        parts.append(ReportService.format_family_teaser(family_report))

    return "\n".join(parts)
