"""
bot/keyboards.py
─────────────────
Teclados inline de Telegram.

Las opciones de respuesta del motor de chat (ReplyOption) se muestran
como botones; el callback_data lleva el valor con el prefijo "opt:" y
el handler de callbacks lo reinyecta como texto.
"""

from typing import Optional

from telegram import InlineKeyboardButton, InlineKeyboardMarkup

from chat.context import ReplyOption

OPTION_PREFIX = "opt:"

# Telegram limita callback_data a 64 bytes
_MAX_CALLBACK_BYTES = 64


def options_keyboard(options: Optional[list[ReplyOption]], per_row: int = 2) -> Optional[InlineKeyboardMarkup]:
    """Teclado inline con las opciones, o None si no hay opciones."""
    if not options:
        return None

    buttons = []
    row = []
    for option in options:
        data = f"{OPTION_PREFIX}{option.value}"
        if len(data.encode("utf-8")) > _MAX_CALLBACK_BYTES:
            continue
        row.append(InlineKeyboardButton(option.label, callback_data=data))
        if len(row) == per_row:
            buttons.append(row)
            row = []
    if row:
        buttons.append(row)
    return InlineKeyboardMarkup(buttons) if buttons else None


def option_value(callback_data: str) -> Optional[str]:
    """Valor de una opción a partir del callback_data ("opt:1" → "1")."""
    if not callback_data or not callback_data.startswith(OPTION_PREFIX):
        return None
    return callback_data[len(OPTION_PREFIX):]
