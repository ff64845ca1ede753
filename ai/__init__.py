"""
ai/__init__.py
──────────────
Colaboradores de inteligencia artificial (Groq).

No se importa nada a nivel de paquete: cada submódulo instancia su
cliente Groq al importarse y los tests lo reemplazan con un mock.
Los consumidores importan directamente desde el submódulo:
    from ai.nlp import parse_transaction
    from ai.transcriber import transcribe_audio
    from ai.ocr import analyze_receipt_image
"""

__all__ = [
    "parse_transaction",
    "transcribe_audio",
    "analyze_receipt_image",
]
