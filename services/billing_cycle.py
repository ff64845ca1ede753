"""
services/billing_cycle.py
──────────────────────────
Ciclos de facturación (corte) y meses calendario.

El ciclo (mes M, año A) va desde el día 9 del mes anterior a las 00:00
hasta el día 8 de M inclusive; lo representamos como el rango semiabierto
[9/(M-1) 00:00, 9/M 00:00).

El reporte familiar usa ciclos; el resumen personal usa meses calendario.
Las dos definiciones conviven a propósito (ver DESIGN.md) y este módulo es
la única fuente de verdad de ambas.

Todas las fechas se calculan en la zona horaria de config.TIMEZONE.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, tzinfo
from typing import Optional

from dateutil import tz
from dateutil.relativedelta import relativedelta

from config import TIMEZONE

CYCLE_START_DAY = 9

TZ: tzinfo = tz.gettz(TIMEZONE)


@dataclass(frozen=True)
class CycleRange:
    month: int
    year: int
    start: datetime          # inclusivo
    end: datetime            # exclusivo


def now() -> datetime:
    """Momento actual en la zona horaria del sistema."""
    return datetime.now(TZ)


def _as_local(reference: date | datetime) -> datetime:
    if isinstance(reference, datetime):
        if reference.tzinfo is None:
            return reference.replace(tzinfo=TZ)
        return reference.astimezone(TZ)
    return datetime(reference.year, reference.month, reference.day, tzinfo=TZ)


def local_date(reference: date | datetime) -> date:
    """Día calendario de la fecha en la zona horaria del sistema."""
    return _as_local(reference).date()


def current_cycle(reference: Optional[date | datetime] = None) -> tuple[int, int]:
    """
    Retorna (mes, año) del ciclo al que pertenece la fecha.

    Del 9 en adelante ya corre el ciclo del mes siguiente:
    8/ene → (1, A); 9/ene → (2, A); 9/dic → (1, A+1).
    """
    ref = _as_local(reference or now())
    month, year = ref.month, ref.year
    if ref.day >= CYCLE_START_DAY:
        month += 1
        if month > 12:
            month, year = 1, year + 1
    return month, year


def cycle_range(month: int, year: int) -> CycleRange:
    """Rango [inicio, fin) del ciclo (mes, año)."""
    if not 1 <= month <= 12:
        raise ValueError(f"Mes inválido: {month}")
    end = datetime(year, month, CYCLE_START_DAY, tzinfo=TZ)
    start = end - relativedelta(months=1)
    return CycleRange(month=month, year=year, start=start, end=end)


def cycle_for(reference: Optional[date | datetime] = None) -> CycleRange:
    """Atajo: rango del ciclo que contiene la fecha (por defecto, ahora)."""
    return cycle_range(*current_cycle(reference))


def month_range(month: int, year: int) -> tuple[datetime, datetime]:
    """Mes calendario como rango [día 1 00:00, día 1 del mes siguiente 00:00)."""
    if not 1 <= month <= 12:
        raise ValueError(f"Mes inválido: {month}")
    start = datetime(year, month, 1, tzinfo=TZ)
    return start, start + relativedelta(months=1)


def month_key(reference: Optional[date | datetime] = None) -> str:
    """Mes calendario en formato "YYYY-MM"."""
    return _as_local(reference or now()).strftime("%Y-%m")
