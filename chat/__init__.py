"""
chat/__init__.py
─────────────────
Motor de conversación independiente del transporte.

Uso:
    from chat.pipeline import process_user_message

    await process_user_message(user, "saldo", reply)
"""
