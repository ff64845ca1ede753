"""
bot/handlers/common.py
───────────────────────
Puente entre Telegram y el motor de chat: identidad del usuario y
función `reply` que entiende las opciones como botones inline.
"""

import logging
from typing import Optional

from telegram import Message, Update
from telegram.constants import ParseMode
from telegram.error import BadRequest

from bot.keyboards import options_keyboard
from chat.context import Reply, ReplyOption, transport_identifier
from chat.pipeline import identify_user
from database.models import User

logger = logging.getLogger(__name__)


def telegram_user(update: Update) -> User:
    """Usuario interno del remitente (tg_<id>), creado si no existe."""
    tg_user = update.effective_user
    return identify_user(
        transport_identifier("telegram", tg_user.id),
        name=tg_user.full_name,
    )


def make_reply(message: Message) -> Reply:
    async def reply(text: str, options: Optional[list[ReplyOption]] = None) -> None:
        markup = options_keyboard(options)
        try:
            await message.reply_text(text, parse_mode=ParseMode.MARKDOWN, reply_markup=markup)
        except BadRequest as e:
            # Markdown roto (ej: un "_" suelto en un nombre): se manda sin formato
            logger.warning("Markdown inválido, reenviando como texto plano: %s", e)
            await message.reply_text(text, reply_markup=markup)

    return reply
