"""
ai/ocr.py
─────────
Lectura de comprobantes (tickets, facturas, recibos) usando Groq Vision.

Flujo en dos pasos (privacy-first):
  1. extract_text_from_image():
     Manda la imagen al LLM de visión y extrae SOLO texto crudo, que se
     sanitiza antes de cualquier otro uso.

  2. _parse_text_to_receipt():
     Recibe solo texto plano (sin imagen) y extrae los campos financieros.
     En este paso NO se envía ningún dato visual a servicios externos.

Un comprobante siempre se registra como gasto (EXPENSE).

Uso:
    from ai.ocr import analyze_receipt_image

    data = await analyze_receipt_image(image_bytes, mime="image/jpeg")
    # {"amount": 450.0, "type": "EXPENSE", "category": "alimentación", ...}
"""

import base64
import logging
import re
from typing import Any

from groq import AsyncGroq

from ai.nlp import EXPENSE_CATEGORIES, coerce_transaction
from config import GROQ_API_KEY, GROQ_MODEL

logger = logging.getLogger(__name__)

_client = AsyncGroq(api_key=GROQ_API_KEY)

# Modelo de Groq con soporte de visión (solo se usa en el paso 1)
_VISION_MODEL = "meta-llama/llama-4-scout-17b-16e-instruct"

# ── Patrones de datos sensibles a eliminar del texto extraído ─────────────

_RE_CARD_NUMBER  = re.compile(r"\b(?:\d[ -]?){15}\d\b|\b\d{4}[\s\-]\d{4}[\s\-]\d{4}[\s\-]\d{4}\b")
_RE_CUIT         = re.compile(r"\b\d{2}-\d{8}-\d\b")
_RE_CPF          = re.compile(r"\b\d{3}\.\d{3}\.\d{3}-\d{2}\b")
_RE_CBU          = re.compile(r"\b\d{22}\b")
_RE_EMAIL        = re.compile(r"\b[\w.+-]+@[\w.-]+\.\w{2,}\b")
_RE_DNI          = re.compile(r"(?i)\b(dni|d\.n\.i\.?)[:\s#]*\d{7,8}\b")
_RE_CARD_PARTIAL = re.compile(r"(?i)(tarjeta|nro\.?\s*tarjeta|card\s*n[°º]?\.?)[:\s#]*[\dX*]{4,}")


def _sanitize_ocr_text(text: str) -> str:
    """
    Elimina datos sensibles del texto extraído de una imagen antes
    de enviarlo al LLM de análisis (paso 2).

    Quita: números de tarjeta, CUIT/CPF, CBU, emails, DNI.
    Conserva: monto total, nombre del comercio, fecha, items.
    """
    text = _RE_CARD_NUMBER.sub("[TARJETA ELIMINADA]", text)
    text = _RE_CARD_PARTIAL.sub(r"\1: [TARJETA ELIMINADA]", text)
    text = _RE_CUIT.sub("[CUIT ELIMINADO]", text)
    text = _RE_CPF.sub("[CPF ELIMINADO]", text)
    text = _RE_CBU.sub("[CBU ELIMINADO]", text)
    text = _RE_EMAIL.sub("[EMAIL ELIMINADO]", text)
    text = _RE_DNI.sub(r"\1: [DNI ELIMINADO]", text)
    return text


async def extract_text_from_image(image_bytes: bytes, mime: str = "image/jpeg") -> str:
    """
    PASO 1: Extrae el texto visible en una imagen usando el LLM de visión.

    Returns:
        Texto crudo extraído y sanitizado de la imagen.
    """
    b64 = base64.b64encode(image_bytes).decode("utf-8")

    response = await _client.chat.completions.create(
        model=_VISION_MODEL,
        messages=[
            {
                "role": "user",
                "content": [
                    {
                        "type": "text",
                        "text": (
                            "Extrae TODO el texto visible en esta imagen, tal como aparece. "
                            "No interpretes, solo transcribe. "
                            "No incluyas descripción de la imagen ni metadatos."
                        ),
                    },
                    {
                        "type": "image_url",
                        "image_url": {"url": f"data:{mime};base64,{b64}"},
                    },
                ],
            }
        ],
        max_tokens=1000,
    )

    raw_text = (response.choices[0].message.content or "").strip()
    return _sanitize_ocr_text(raw_text)


async def _parse_text_to_receipt(text: str) -> dict[str, Any] | None:
    """
    PASO 2: Extrae datos financieros estructurados a partir de texto plano.
    NO recibe ni envía ninguna imagen.
    """
    system_prompt = f"""Analiza el texto de un ticket o recibo y extrae la información financiera.

Responde ÚNICAMENTE con un JSON válido:
{{
  "amount": <monto total como número positivo>,
  "category": "<categoría del gasto>",
  "description": "<nombre del negocio o descripción breve, máximo 60 caracteres>"
}}

Categorías disponibles: {", ".join(EXPENSE_CATEGORIES)}

Reglas:
- El campo "amount" debe ser el TOTAL del ticket, no un subtotal.
- El campo "description" debe ser solo el nombre del negocio o tipo de compra, sin datos personales.
- Si el texto no corresponde a un ticket o no se puede determinar el monto, responde exactamente: null"""

    response = await _client.chat.completions.create(
        model=GROQ_MODEL,  # Modelo de texto, sin visión
        messages=[
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": f"Texto del ticket:\n\n{text}"},
        ],
        max_tokens=300,
        temperature=0,
    )

    raw = (response.choices[0].message.content or "").strip()
    return coerce_transaction(raw, force_type="EXPENSE")


async def analyze_receipt_image(image_bytes: bytes, mime: str = "image/jpeg") -> dict[str, Any] | None:
    """
    Analiza la foto de un comprobante y extrae los datos del gasto.

    Returns:
        dict con amount, type ("EXPENSE"), category, description.
        None si no se puede leer un comprobante válido.
    """
    if not image_bytes:
        return None

    # Paso 1: imagen -> texto (única vez que la imagen viaja a un LLM externo)
    logger.info("OCR paso 1: extrayendo texto de imagen (%d bytes)", len(image_bytes))
    extracted_text = await extract_text_from_image(image_bytes, mime)

    if not extracted_text.strip():
        logger.warning("OCR paso 1: no se pudo extraer texto de la imagen")
        return None

    logger.info(
        "OCR paso 1 OK: %d caracteres extraídos (imagen no reenviada en paso 2)",
        len(extracted_text),
    )

    # Paso 2: texto -> datos estructurados (sin imagen, sin datos sensibles)
    return await _parse_text_to_receipt(extracted_text)
