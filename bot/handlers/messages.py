"""
bot/handlers/messages.py
─────────────────────────
Handler de mensajes de texto (incluye comandos con "/": el motor de
chat los reconoce por su palabra clave).
"""

from telegram import Update
from telegram.ext import ContextTypes, MessageHandler, filters

from bot.handlers.common import make_reply, telegram_user
from chat.pipeline import process_user_message


async def handle_text(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    message = update.effective_message
    user = telegram_user(update)
    await message.chat.send_action("typing")
    await process_user_message(user, message.text, make_reply(message))


message_handler = MessageHandler(filters.TEXT, handle_text)
