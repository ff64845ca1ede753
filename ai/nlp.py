"""
ai/nlp.py
─────────
Procesamiento de lenguaje natural con Groq (Llama 3.3 70B).
Extrae transacciones a partir de texto libre (mensajes de chat,
transcripciones de audio).

Uso:
    from ai.nlp import parse_transaction

    data = await parse_transaction("gasté 50 en pizza")
    # {"amount": 50.0, "type": "EXPENSE", "category": "alimentación", ...}
"""

import json
import logging
import re
from typing import Any

from groq import AsyncGroq

from config import GROQ_API_KEY, GROQ_MODEL

logger = logging.getLogger(__name__)

_client = AsyncGroq(api_key=GROQ_API_KEY)

# ─────────────────────────────────────────────
#  Categorías sugeridas
# ─────────────────────────────────────────────

# Vocabulario curado pero abierto: si el modelo devuelve otra categoría
# se acepta tal cual (en minúsculas).
EXPENSE_CATEGORIES = [
    "alimentación",
    "transporte",
    "salud",
    "ocio",
    "educación",
    "vivienda",
    "servicios",
    "ropa",
    "otros",
]

INCOME_CATEGORIES = [
    "salario",
    "freelance",
    "inversiones",
    "ventas",
]

TRANSACTION_TYPES = ("INCOME", "EXPENSE")


# ─────────────────────────────────────────────
#  parse_transaction
# ─────────────────────────────────────────────

async def parse_transaction(text: str) -> dict[str, Any] | None:
    """
    Extrae los datos de una transacción a partir de texto libre.

    Args:
        text: Mensaje del usuario en lenguaje natural.

    Returns:
        dict con claves:
            - amount      (float, positivo)
            - type        ("INCOME" | "EXPENSE")
            - category    (str, en minúsculas)
            - description (str)
        None si no se detecta una transacción.
    """
    system_prompt = f"""Eres un asistente financiero. Extrae los datos de la transacción del mensaje del usuario.

Responde ÚNICAMENTE con un JSON válido con esta estructura exacta:
{{
  "amount": <número positivo, sin símbolo de moneda>,
  "type": "INCOME" | "EXPENSE",
  "category": "<categoría>",
  "description": "<descripción breve>"
}}

Categorías de gastos: {", ".join(EXPENSE_CATEGORIES)}
Categorías de ingresos: {", ".join(INCOME_CATEGORIES)}

Si el mensaje NO describe un gasto o un ingreso, responde exactamente: null
No incluyas explicaciones ni texto adicional."""

    response = await _client.chat.completions.create(
        model=GROQ_MODEL,
        messages=[
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": text},
        ],
        temperature=0,
        max_tokens=200,
    )

    raw = (response.choices[0].message.content or "").strip()
    return coerce_transaction(raw)


def coerce_transaction(raw: str, force_type: str | None = None) -> dict[str, Any] | None:
    """
    Convierte la respuesta cruda del modelo en el dict de transacción.
    Retorna None si no hay JSON, si el modelo dijo null o si el monto no sirve.
    """
    # Limpiar bloques de código markdown si el modelo los devuelve
    raw = re.sub(r"^```(?:json)?\s*|\s*```$", "", raw, flags=re.MULTILINE).strip()
    if not raw or raw.lower() == "null":
        return None

    match = re.search(r"\{[\s\S]*\}", raw)
    if not match:
        logger.debug("Respuesta sin JSON: %r", raw[:200])
        return None

    try:
        data = json.loads(match.group(0))
        amount = abs(float(data["amount"]))
    except (json.JSONDecodeError, KeyError, TypeError, ValueError):
        return None
    if amount <= 0:
        return None

    tx_type = force_type or str(data.get("type", "")).upper()
    if tx_type not in TRANSACTION_TYPES:
        tx_type = "EXPENSE"

    return {
        "amount": amount,
        "type": tx_type,
        "category": (str(data.get("category") or "otros")).strip().lower(),
        "description": (str(data.get("description") or "")).strip(),
    }
