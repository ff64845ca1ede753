"""
database/__init__.py
────────────────────
Expone los componentes principales del módulo de base de datos.
Se importa solo encryption para no crear el cliente Supabase al importar.
"""

from .encryption import decrypt, decrypt_or_raw, encrypt

__all__ = ["encrypt", "decrypt", "decrypt_or_raw"]
