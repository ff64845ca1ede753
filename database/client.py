"""
database/client.py
──────────────────
Singleton del cliente Supabase.
Los repositorios son los únicos que deberían importar la DB desde aquí.

Uso:
    from database.client import get_client

    db = get_client()
    result = db.table("budget_plans").select("*").eq("status", "ACTIVE").execute()
"""

from supabase import Client, create_client

from config import SUPABASE_SERVICE_KEY, SUPABASE_URL

_client: Client | None = None


def get_client() -> Client:
    """
    Retorna la instancia única del cliente Supabase (patrón singleton).
    Usa la service_role key: el asistente opera en nombre de todos los
    usuarios y los permisos de familia se validan en los servicios.
    """
    global _client
    if _client is None:
        _client = create_client(SUPABASE_URL, SUPABASE_SERVICE_KEY)
    return _client
