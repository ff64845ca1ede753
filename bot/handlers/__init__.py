"""
bot/handlers/__init__.py
─────────────────────────
Exporta todos los handlers registrables en la aplicación.
"""

from .callbacks import option_callback_handler
from .messages import message_handler
from .photo import photo_handler
from .voice import voice_handler

__all__ = [
    "message_handler",
    "voice_handler",
    "photo_handler",
    "option_callback_handler",
]
