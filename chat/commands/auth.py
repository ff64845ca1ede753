"""
chat/commands/auth.py
──────────────────────
Control de acceso: la primera etapa del pipeline.

Un usuario sin autorizar solo puede:
  - mandar una clave de acceso (se consume y lo habilita),
  - mandar su e-mail (queda en la lista de espera).
Cualquier otro mensaje recibe el aviso de acceso restringido.
Un usuario autorizado pasa siempre de largo.
"""

import logging

from chat.context import NOT_HANDLED, Handled, HandledResult, MessageContext
from services.auth_service import AuthService, looks_like_email, looks_like_key
from services.exceptions import AccessKeyAlreadyUsed, NotFound

logger = logging.getLogger(__name__)

STAGE = "auth"

RESTRICTED_PROMPT = (
    "🔒 *Acceso restringido*\n\n"
    "Este asistente es solo para invitados.\n\n"
    "1️⃣ Si tenés una clave, mandala ahora.\n"
    "2️⃣ Si no tenés, mandá tu *e-mail* para entrar en la lista de espera."
)


async def handle(ctx: MessageContext) -> HandledResult:
    if AuthService.check_access(ctx.user):
        return NOT_HANDLED

    text = ctx.text.strip()

    if looks_like_email(text):
        AuthService.join_waitlist(ctx.user.id, text)
        await ctx.reply(
            "✅ *¡Estás en la lista de espera!*\n\n"
            "Cuando habilitemos tu acceso te avisamos por acá."
        )
        return Handled(STAGE)

    if looks_like_key(text):
        try:
            AuthService.validate_key(ctx.user.id, text)
        except AccessKeyAlreadyUsed as e:
            await ctx.reply(f"❌ {e.message}")
            return Handled(STAGE)
        except NotFound:
            logger.debug("Clave desconocida de %s", ctx.user.id)
        else:
            await ctx.reply("🎉 *¡Acceso habilitado!* Bienvenido.\n\nEscribí */ayuda* para empezar.")
            return Handled(STAGE)

    await ctx.reply(RESTRICTED_PROMPT)
    return Handled(STAGE)
