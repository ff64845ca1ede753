"""
bot/app.py
───────────
Construye y configura la aplicación de python-telegram-bot.
Registra todos los handlers en el orden correcto.
"""

import logging

from telegram import Update
from telegram.ext import Application, ContextTypes

from bot.handlers import message_handler, option_callback_handler, photo_handler, voice_handler
from config import TELEGRAM_BOT_TOKEN

logger = logging.getLogger(__name__)


async def error_handler(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Captura cualquier excepción no manejada y responde al usuario sin caerse."""
    logger.error("Excepción no manejada:", exc_info=context.error)
    if not (isinstance(update, Update) and update.effective_message):
        return
    try:
        await update.effective_message.reply_text(
            "⚠️ Ocurrió un error inesperado. Por favor intentá de nuevo."
        )
    except Exception:
        logger.exception("No se pudo avisar del error al usuario")


def create_app() -> Application:
    """
    Crea y configura la aplicación Telegram.

    Returns:
        Application lista para ejecutar.

    Raises:
        EnvironmentError: si falta TELEGRAM_BOT_TOKEN.
    """
    if not TELEGRAM_BOT_TOKEN:
        raise EnvironmentError("TELEGRAM_BOT_TOKEN no configurado")

    app = Application.builder().token(TELEGRAM_BOT_TOKEN).build()

    # ── Botones inline ────────────────────────────────────
    app.add_handler(option_callback_handler)

    # ── Media ─────────────────────────────────────────────
    app.add_handler(voice_handler)
    app.add_handler(photo_handler)

    # ── Texto (comandos y lenguaje natural) ───────────────
    app.add_handler(message_handler)

    # ── Error handler global ──────────────────────────────
    app.add_error_handler(error_handler)

    logger.info("✅ Bot configurado con %d handlers", len(app.handlers[0]))
    return app
