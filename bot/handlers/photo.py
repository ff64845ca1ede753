"""
bot/handlers/photo.py
──────────────────────
Handler para fotos de comprobantes (tickets, facturas, recibos).
Descarga la imagen en memoria y la pasa al pipeline, que la lee con
OCR en dos pasos y registra el gasto.
"""

import logging

from telegram import Update
from telegram.ext import ContextTypes, MessageHandler, filters

from bot.handlers.common import make_reply, telegram_user
from chat.pipeline import process_receipt_image

logger = logging.getLogger(__name__)


async def handle_photo(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    message = update.effective_message

    # La foto de mayor resolución, o la imagen enviada como documento
    if message.photo:
        file_obj, mime = message.photo[-1], "image/jpeg"
    elif message.document:
        file_obj, mime = message.document, message.document.mime_type or "image/jpeg"
    else:
        await message.reply_text("❌ No pude procesar la imagen.")
        return

    user = telegram_user(update)
    file = await context.bot.get_file(file_obj.file_id)
    image_bytes = bytes(await file.download_as_bytearray())

    await process_receipt_image(user, image_bytes, make_reply(message), mime=mime)


photo_handler = MessageHandler(filters.PHOTO | filters.Document.IMAGE, handle_photo)
