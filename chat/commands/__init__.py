"""
chat/commands/__init__.py
──────────────────────────
Etapas del pipeline.

GATE va siempre primero (antes incluso de un asistente activo);
después se prueban COMMAND_STAGES en orden hasta que una responda.
"""

from . import auth, family, finance, planning, system, transaction

GATE = auth.handle

COMMAND_STAGES = [
    finance.handle,
    family.handle,
    planning.handle,
    system.handle,
    transaction.handle,
]

__all__ = ["GATE", "COMMAND_STAGES", "auth", "finance", "family", "planning", "system", "transaction"]
