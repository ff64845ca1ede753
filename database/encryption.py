"""
database/encryption.py
──────────────────────
Cifrado de datos sensibles con Fernet (AES-128-CBC + HMAC-SHA256).
Hoy se usa para la descripción libre de las transacciones, que puede
contener nombres de comercios o personas.

Uso:
    from database.encryption import encrypt, decrypt_or_raw

    cifrado  = encrypt("Cena con Juan")
    original = decrypt_or_raw(cifrado)
"""

from cryptography.fernet import Fernet, InvalidToken

from config import ENCRYPTION_KEY

# Instancia única del motor de cifrado
_fernet = Fernet(ENCRYPTION_KEY.encode())


def encrypt(plain_text: str) -> str:
    """
    Encripta un texto plano y devuelve el token como string.

    Raises:
        TypeError: si no recibe un string.
    """
    if not isinstance(plain_text, str):
        raise TypeError("encrypt() espera un string")
    return _fernet.encrypt(plain_text.encode()).decode()


def decrypt(cipher_text: str) -> str:
    """
    Desencripta un texto previamente cifrado con encrypt().

    Raises:
        TypeError: si no recibe un string.
        cryptography.fernet.InvalidToken: si el token es inválido o fue alterado.
    """
    if not isinstance(cipher_text, str):
        raise TypeError("decrypt() espera un string")
    return _fernet.decrypt(cipher_text.encode()).decode()


def decrypt_or_raw(value: str | None) -> str | None:
    """
    Como decrypt(), pero devuelve el valor tal cual si no es un token
    Fernet válido (filas cargadas antes de activar el cifrado).
    """
    if not value:
        return value
    try:
        return decrypt(value)
    except InvalidToken:
        return value
