"""
ai/transcriber.py
─────────────────
Transcripción de mensajes de voz usando Whisper (vía Groq).
Recibe el audio en bytes tal como lo entrega el transporte
(ogg/opus en Telegram) y retorna el texto transcripto.

Uso:
    from ai.transcriber import transcribe_audio

    text = await transcribe_audio(audio_bytes, filename="voice.ogg")
"""

import logging
from pathlib import Path

from groq import AsyncGroq

from config import GROQ_API_KEY

logger = logging.getLogger(__name__)

_client = AsyncGroq(api_key=GROQ_API_KEY)

WHISPER_MODEL = "whisper-large-v3-turbo"
SUPPORTED_FORMATS = {".ogg", ".oga", ".mp3", ".wav", ".m4a", ".webm", ".flac"}


async def transcribe_audio(audio_bytes: bytes, filename: str = "audio.ogg") -> str | None:
    """
    Transcribe un audio.

    Args:
        audio_bytes: Contenido del archivo de audio.
        filename:    Nombre con extensión; Whisper lo usa para detectar el formato.

    Returns:
        Texto transcripto, o None si el audio está vacío o no se entendió nada.

    Raises:
        ValueError: Si el formato no es soportado.
    """
    suffix = Path(filename).suffix.lower()
    if suffix not in SUPPORTED_FORMATS:
        raise ValueError(
            f"Formato no soportado: {suffix or filename}. "
            f"Soportados: {', '.join(sorted(SUPPORTED_FORMATS))}"
        )
    if not audio_bytes:
        return None

    response = await _client.audio.transcriptions.create(
        model=WHISPER_MODEL,
        file=(filename, audio_bytes),
        language="es",
        response_format="text",
    )

    # Con response_format="text" el SDK devuelve el texto plano
    text = response if isinstance(response, str) else getattr(response, "text", "")
    text = (text or "").strip()
    if not text:
        logger.warning("Whisper retornó una transcripción vacía")
        return None
    return text
