"""
chat/commands/system.py
────────────────────────
Ayuda por temas y nombre visible.

    ayuda [finanzas|familia|planificacion|otros]
    nombre [Tu Nombre]
"""

from chat.context import NOT_HANDLED, Handled, HandledResult, MessageContext, ReplyOption
from database.repositories import UserRepo

STAGE = "system"

HELP_KEYWORDS = {"ayuda", "help", "start", "menu"}
NAME_KEYWORDS = {"nombre"}

HELP_MENU = """❓ *Centro de ayuda*

Elegí un tema para ver los comandos:

💰 */ayuda finanzas*
_Saldo, resumen, movimientos_

👨‍👩‍👧‍👦 */ayuda familia*
_Crear grupo, unirse, reportes_

🎯 */ayuda planificacion*
_Crear metas, editar, aprobar_

⚙️ */ayuda otros*
_Tu nombre, gamificación_"""

HELP_OPTIONS = [
    ReplyOption("💰 Finanzas", "/ayuda finanzas"),
    ReplyOption("👨‍👩‍👧‍👦 Familia", "/ayuda familia"),
    ReplyOption("🎯 Planificación", "/ayuda planificacion"),
    ReplyOption("⚙️ Otros", "/ayuda otros"),
]

HELP_TOPICS = {
    "finanzas": """💰 *Ayuda: Finanzas*

• *saldo*
  _Tu saldo actual._
• *resumen*
  _Gastos del mes por categoría._
• *dashboard*
  _Link a tu panel personal._
• */limite [Categoría] [Monto]*
  _Límite mensual; te aviso al llegar al 90%._
• *"Gasté 50 en pizza"*
  _Registrá movimientos escribiendo normalmente._
• *Foto o audio*
  _Mandá un ticket o un audio y lo registro solo._""",
    "familia": """👨‍👩‍👧‍👦 *Ayuda: Familia*

• *familia*
  _Panel de la familia: gastos por miembro y categoría._
• */familia crear [Nombre]*
  _Crea un grupo familiar nuevo._
• */familia unirse [código]*
  _Entrá a un grupo existente._""",
    "planificacion": """🎯 *Ayuda: Planificación*

• */plan*
  _Metas activas (y pendientes si sos admin)._
• */plan crear [Categoría] [Valor]*
  _Ej: /plan crear Ocio 500 o /plan crear Ocio 10%_
• */plan editar [Categoría] [Valor]*
  _Cambia el valor de la meta._
• */plan renombrar [Actual] [Nuevo]*
  _Cambia el nombre de la categoría._
• */plan borrar [Categoría]*
  _Elimina la meta._
• */plan aprobar [ID]* / */plan rechazar [ID]*
  _Solo el admin de la familia._

_Sin argumentos, crear/editar/borrar te guían paso a paso._""",
    "otros": """⚙️ *Ayuda: Otros*

• */nombre [Tu Nombre]*
  _Cómo aparecés en la familia._
• */cancelar*
  _Sale de cualquier operación paso a paso._
• *Gamificación*
  _Ganás XP con cada registro y logros por constancia._""",
}


async def handle(ctx: MessageContext) -> HandledResult:
    keyword = ctx.keyword

    if keyword in HELP_KEYWORDS:
        topic = ctx.word(1)
        if not topic:
            await ctx.reply(HELP_MENU, HELP_OPTIONS)
        elif topic in HELP_TOPICS:
            await ctx.reply(HELP_TOPICS[topic])
        else:
            await ctx.reply("❌ Tema no encontrado. Escribí */ayuda* para ver el menú.", HELP_OPTIONS)
        return Handled(STAGE)

    if keyword in NAME_KEYWORDS:
        # Texto original: se respeta el casing del nombre
        new_name = " ".join(ctx.args(1)).strip()
        if not new_name:
            await ctx.reply("⚠️ Usá: `/nombre [Tu Nombre]` para cambiar cómo aparecés en la familia.")
            return Handled(STAGE)
        UserRepo.update(ctx.user.id, {"name": new_name})
        await ctx.reply(f"✅ Nombre actualizado a *{new_name}*")
        return Handled(STAGE)

    return NOT_HANDLED
