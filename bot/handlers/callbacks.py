"""
bot/handlers/callbacks.py
──────────────────────────
Botones inline de las opciones de respuesta.

  - opt:<valor> → el valor entra al pipeline como si el usuario lo
    hubiera escrito, así botones y comandos escritos llevan al mismo lugar.
"""

from telegram import Update
from telegram.ext import CallbackQueryHandler, ContextTypes

from bot.handlers.common import make_reply, telegram_user
from bot.keyboards import OPTION_PREFIX, option_value
from chat.pipeline import process_user_message


async def handle_option_callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    query = update.callback_query
    await query.answer()

    value = option_value(query.data)
    if value is None:
        return

    # Se sacan los botones para que no se toquen dos veces
    await query.edit_message_reply_markup(reply_markup=None)

    user = telegram_user(update)
    await process_user_message(user, value, make_reply(query.message))


option_callback_handler = CallbackQueryHandler(
    handle_option_callback,
    pattern=rf"^{OPTION_PREFIX}",
)
