"""
chat_api.py
────────────
Canal HTTP de prueba: manda un mensaje al mismo pipeline que usa
Telegram y devuelve todas las respuestas juntas.

    POST /api/chat
    {"message": "saldo", "phone_number": "5511999999999"}
    → {"replies": [{"text": "...", "options": [{"label": ..., "value": ...}]}]}

Los usuarios de este canal son "web_<teléfono>". Si CHAT_API_SECRET está
configurado, el request tiene que traer el header `x-bot-secret`.

Uso:
    uvicorn chat_api:app --reload
"""

from __future__ import annotations

import logging
import secrets
from typing import Optional

from fastapi import FastAPI, Header, HTTPException
from pydantic import BaseModel

from chat.context import ReplyOption, transport_identifier
from chat.pipeline import identify_user, process_user_message
from config import CHAT_API_SECRET

logger = logging.getLogger(__name__)

DEFAULT_PHONE = "5511999999999"

app = FastAPI(title="Agente Familiar - canal de prueba")


class ChatRequest(BaseModel):
    message: str = ""
    phone_number: Optional[str] = None


class ReplyOptionPayload(BaseModel):
    label: str
    value: str


class ChatReply(BaseModel):
    text: str
    options: list[ReplyOptionPayload] = []


class ChatResponse(BaseModel):
    replies: list[ChatReply]


@app.post("/api/chat", response_model=ChatResponse)
async def chat(
    payload: ChatRequest,
    x_bot_secret: Optional[str] = Header(default=None),
) -> ChatResponse:
    if CHAT_API_SECRET and not secrets.compare_digest(x_bot_secret or "", CHAT_API_SECRET):
        raise HTTPException(status_code=403, detail="Forbidden")

    message = payload.message.strip()
    if not message:
        raise HTTPException(status_code=400, detail="Message is required")

    phone = (payload.phone_number or DEFAULT_PHONE).strip() or DEFAULT_PHONE
    user = identify_user(transport_identifier("web", phone))

    replies: list[ChatReply] = []

    async def collect(text: str, options: Optional[list[ReplyOption]] = None) -> None:
        replies.append(ChatReply(
            text=text,
            options=[ReplyOptionPayload(label=o.label, value=o.value) for o in options or []],
        ))

    await process_user_message(user, message, collect)
    return ChatResponse(replies=replies)
