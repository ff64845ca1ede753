"""
chat/amounts.py
────────────────
Lectura de valores de planes escritos por el usuario.

    "500"      → (500.0, "FIXED")
    "$ 99,90"  → (99.9,  "FIXED")
    "R$500.5"  → (500.5, "FIXED")
    "10%"      → (10.0,  "PERCENTAGE")
    "12,5 %"   → (12.5,  "PERCENTAGE")
"""

import re

from database.models import PlanType
from services.exceptions import ValidationError

_RE_AMOUNT = re.compile(
    r"^(?:r\$|us\$|\$)?\s*(?P<number>\d+(?:[.,]\d+)?)\s*(?P<percent>%)?$",
    re.IGNORECASE,
)


def parse_amount(raw: str) -> tuple[float, PlanType]:
    """
    Retorna (valor, tipo). Un "%" al final indica PERCENTAGE.

    Raises:
        ValidationError: si el texto no es un número válido.
    """
    match = _RE_AMOUNT.match((raw or "").strip())
    if not match:
        raise ValidationError(
            "Valor inválido. Escribí un número (ej: `500` o `99,90`) "
            "o un porcentaje (ej: `10%`)."
        )
    value = float(match.group("number").replace(",", "."))
    plan_type: PlanType = "PERCENTAGE" if match.group("percent") else "FIXED"
    return value, plan_type


def looks_like_amount(raw: str) -> bool:
    return bool(_RE_AMOUNT.match((raw or "").strip()))
