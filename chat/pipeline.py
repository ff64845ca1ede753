"""
chat/pipeline.py
─────────────────
Punto de entrada de todo mensaje entrante, sea cual sea el transporte.

Orden:
  1. Control de acceso (usuarios sin autorizar no pasan de acá).
  2. `cancelar` cierra cualquier asistente activo.
  3. Si hay un asistente activo, él consume el mensaje. Un mensaje que
     empieza con "/" abandona el asistente y sigue como comando normal.
  4. Comandos: finanzas → familia → planificación → sistema → IA.

Cada etapa corre dentro de un borde de errores: un AgentError se responde
como "❌ <mensaje>", cualquier otra excepción se loguea y el usuario
recibe un mensaje genérico. Un mensaje que falla nunca tira abajo al resto.

Los mensajes de un mismo usuario se procesan de a uno (un asyncio.Lock
por usuario); usuarios distintos corren en paralelo.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from ai.ocr import analyze_receipt_image
from ai.transcriber import transcribe_audio
from chat.commands import COMMAND_STAGES, GATE
from chat.commands.auth import RESTRICTED_PROMPT
from chat.commands.transaction import record, with_timeout
from chat.context import NOT_HANDLED, Handled, HandledResult, MessageContext, Reply, Stage
from chat.wizard import cancel, handle_session, is_cancel
from database.models import User
from database.repositories import UserRepo
from services.exceptions import AgentError
from services.gamification_service import GamificationService
from services.session_service import session_store

logger = logging.getLogger(__name__)

GENERIC_ERROR = "❌ ¡Ups! Algo salió mal. Intentá de nuevo."


class _UserLock:
    """Lock de un usuario más la cantidad de mensajes que lo usan o esperan."""

    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.users = 0


_user_locks: dict[str, _UserLock] = {}


@asynccontextmanager
async def _serialized(user_id: str) -> AsyncIterator[None]:
    """Procesa de a un mensaje por usuario; el lock se descarta al quedar libre."""
    entry = _user_locks.setdefault(user_id, _UserLock())
    entry.users += 1
    try:
        async with entry.lock:
            yield
    finally:
        entry.users -= 1
        if entry.users == 0 and _user_locks.get(user_id) is entry:
            del _user_locks[user_id]


# ─────────────────────────────────────────────
#  Identidad
# ─────────────────────────────────────────────

def identify_user(identifier: str, name: Optional[str] = None) -> User:
    """
    Usuario interno del identificador de transporte (se crea la primera
    vez) con la racha diaria ya actualizada.
    """
    user, created = UserRepo.get_or_create(identifier, name)
    if created:
        logger.info("✨ Nuevo usuario %s (%s)", user.id, identifier)
    return GamificationService.update_streak(user)


# ─────────────────────────────────────────────
#  Texto
# ─────────────────────────────────────────────

async def process_user_message(user: User, text: str, reply: Reply) -> HandledResult:
    """Procesa un mensaje de texto y responde a través de `reply`."""
    async with _serialized(user.id):
        return await _dispatch(MessageContext.build(user, text, reply))


async def _dispatch(ctx: MessageContext) -> HandledResult:
    if not ctx.text:
        return NOT_HANDLED

    result = await _run_stage(GATE, ctx)
    if isinstance(result, Handled):
        return result

    if is_cancel(ctx):
        return await _run_stage(cancel, ctx)

    session = session_store.get(ctx.user.id)
    if session is not None:
        if ctx.is_slash_command:
            logger.info("Asistente %s abandonado por %s", session.state, ctx.user.id)
            session_store.clear(ctx.user.id)
        else:
            return await _run_stage(lambda c: handle_session(c, session), ctx, name="wizard")

    for stage in COMMAND_STAGES:
        result = await _run_stage(stage, ctx)
        if isinstance(result, Handled):
            logger.debug("Mensaje de %s resuelto por la etapa %s", ctx.user.id, result.stage)
            return result
    return NOT_HANDLED


async def _run_stage(stage: Stage, ctx: MessageContext, name: Optional[str] = None) -> HandledResult:
    """Borde de errores de cada etapa."""
    name = name or stage.__module__.rsplit(".", 1)[-1]
    try:
        return await stage(ctx)
    except AgentError as e:
        logger.info("Etapa %s rechazó el mensaje de %s: %s", name, ctx.user.id, e.message)
        await ctx.reply(f"❌ {e.message}")
    except Exception:
        logger.exception("Error en la etapa %s procesando un mensaje de %s", name, ctx.user.id)
        await ctx.reply(GENERIC_ERROR)
    return Handled(name)


# ─────────────────────────────────────────────
#  Audio
# ─────────────────────────────────────────────

async def process_voice_message(
    user: User,
    audio_bytes: bytes,
    reply: Reply,
    filename: str = "audio.ogg",
) -> HandledResult:
    """Transcribe el audio y procesa el texto como si se hubiera escrito."""
    await reply("🎤 Procesando audio…")
    try:
        text = await with_timeout(transcribe_audio(audio_bytes, filename), "transcribe_audio")
    except Exception:
        logger.exception("Error transcribiendo audio de %s", user.id)
        await reply(GENERIC_ERROR)
        return Handled("voice")

    if not text:
        await reply("❌ No pude entender el audio.")
        return Handled("voice")

    logger.info("Transcripción de %s: %s", user.id, text)
    await reply(f"🎙️ Entendí: _{text}_")
    return await process_user_message(user, text, reply)


# ─────────────────────────────────────────────
#  Comprobantes
# ─────────────────────────────────────────────

async def process_receipt_image(
    user: User,
    image_bytes: bytes,
    reply: Reply,
    mime: str = "image/jpeg",
) -> HandledResult:
    """Lee un comprobante y registra el gasto."""
    if not user.is_authorized:
        await reply(RESTRICTED_PROMPT)
        return Handled("auth")

    async def _receipt(ctx: MessageContext) -> HandledResult:
        await ctx.reply("🧾 Analizando el comprobante…")
        parsed = await with_timeout(analyze_receipt_image(image_bytes, mime), "analyze_receipt_image")
        if not parsed:
            await ctx.reply("❌ No pude leer el comprobante. Probá con una foto más clara.")
        else:
            await ctx.reply(record(ctx.user.id, parsed, header="🧾 *¡Comprobante procesado!*"))
        return Handled("receipt")

    async with _serialized(user.id):
        return await _run_stage(_receipt, MessageContext.build(user, "", reply), name="receipt")
