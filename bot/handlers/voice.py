"""
bot/handlers/voice.py
──────────────────────
Handler para mensajes de voz.
Descarga el audio de Telegram en memoria y lo pasa al pipeline, que lo
transcribe con Whisper y lo procesa como texto.
"""

import logging

from telegram import Update
from telegram.ext import ContextTypes, MessageHandler, filters

from bot.handlers.common import make_reply, telegram_user
from chat.pipeline import process_voice_message

logger = logging.getLogger(__name__)


async def handle_voice(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    message = update.effective_message
    voice = message.voice or message.audio
    if not voice:
        await message.reply_text("❌ No pude procesar el audio.")
        return

    user = telegram_user(update)
    file = await context.bot.get_file(voice.file_id)
    audio_bytes = bytes(await file.download_as_bytearray())

    filename = getattr(voice, "file_name", None) or "voice.ogg"
    await process_voice_message(user, audio_bytes, make_reply(message), filename=filename)


voice_handler = MessageHandler(filters.VOICE | filters.AUDIO, handle_voice)
