"""
tests/test_sanitizers.py
─────────────────────────
Tests unitarios para la sanitización de datos sensibles del texto
extraído de comprobantes (ai/ocr.py). No requieren conexión a APIs.
"""

from ai.ocr import _sanitize_ocr_text

# ── Datos de prueba ───────────────────────────────────────────

OCR_SAMPLE = """\
SUPERMERCADO CARREFOUR
CUIT: 30-68898256-8

Arroz x2          $1.200
Leche x4          $2.800
TOTAL             $5.929

Tarjeta Visa **** 5678
DNI: 12345678
"""

NOTA_FISCAL_SAMPLE = """\
PADARIA PÃO QUENTE
CPF consumidor: 123.456.789-09
Pão francês       R$ 12,50
TOTAL             R$ 12,50
cliente@gmail.com
Cartão 4509 1234 5678 9012
"""

CBU_SAMPLE = "CBU: 0110599520000012345678"   # 22 dígitos

# ── Tests ─────────────────────────────────────────────────────

def test_ocr_cuit_removed():
    r = _sanitize_ocr_text(OCR_SAMPLE)
    assert "30-68898256-8" not in r, "CUIT en ticket debe eliminarse"

def test_ocr_dni_removed():
    r = _sanitize_ocr_text(OCR_SAMPLE)
    assert "12345678" not in r, "DNI en ticket debe eliminarse"

def test_ocr_total_preserved():
    r = _sanitize_ocr_text(OCR_SAMPLE)
    assert "TOTAL" in r, "Total del ticket debe conservarse"
    assert "$5.929" in r, "Monto total debe conservarse"
    assert "CARREFOUR" in r, "Nombre del comercio debe conservarse"

def test_cpf_removed():
    r = _sanitize_ocr_text(NOTA_FISCAL_SAMPLE)
    assert "123.456.789-09" not in r, "CPF debe eliminarse"
    assert "[CPF ELIMINADO]" in r

def test_email_removed():
    r = _sanitize_ocr_text(NOTA_FISCAL_SAMPLE)
    assert "cliente@gmail.com" not in r, "Email debe eliminarse"

def test_card_number_removed():
    r = _sanitize_ocr_text(NOTA_FISCAL_SAMPLE)
    assert "4509 1234 5678 9012" not in r, "Número de tarjeta debe eliminarse"
    assert "PADARIA" in r
    assert "R$ 12,50" in r

def test_cbu_22_digits_removed():
    r = _sanitize_ocr_text(CBU_SAMPLE)
    assert "0110599520000012345678" not in r, "CBU de 22 digitos debe eliminarse"
