# zatca/utils.py

"""
Utilidades de formato para comprobantes ZATCA:

- to_decimal / format_amount: montos con 2 decimales (ROUND_HALF_UP).
- format_quantity: cantidades sin ceros sobrantes.
- to_utc / format_date / format_time / format_iso_datetime: fechas UTC.

Estas funciones NO dependen del resto del paquete para evitar imports
circulares; solo usan django.utils para parsear fechas en texto.
"""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

from django.utils.dateparse import parse_date, parse_datetime

Numero = Union[Decimal, float, int, str]
FechaTipo = Union[date, datetime, str]

TWO_PLACES = Decimal("0.01")


def to_decimal(value: Numero) -> Decimal:
    """
    Convierte un número (float, int, str o Decimal) a Decimal.

    Los float pasan por str() para no arrastrar la representación binaria
    (0.1 -> Decimal('0.1') y no 0.1000000000000000055...).
    """
    if isinstance(value, bool) or value is None:
        raise ValueError(f"Valor numérico inválido: {value!r}")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError) as exc:
            raise ValueError(f"Valor numérico inválido: {value!r}") from exc
    if not result.is_finite():
        raise ValueError(f"Valor numérico inválido: {value!r}")
    return result


def round_amount(value: Numero) -> Decimal:
    return to_decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def format_amount(value: Numero) -> str:
    """Monto con exactamente dos decimales (ej. 1150 -> '1150.00')."""
    amount = round_amount(value)
    if amount == 0:
        # evita '-0.00'
        amount = abs(amount)
    return f"{amount:.2f}"


def format_quantity(value: Numero) -> str:
    """Cantidad sin ceros a la derecha (1.0 -> '1', 2.50 -> '2.5')."""
    qty = to_decimal(value)
    if qty == qty.to_integral_value():
        return str(qty.quantize(Decimal("1")))
    return format(qty.normalize(), "f")


def to_utc(value: FechaTipo) -> datetime:
    """
    Normaliza una fecha a datetime aware en UTC.

    - datetime naive: se asume UTC.
    - date: medianoche UTC.
    - str: ISO-8601 (fecha o fecha-hora).
    """
    if isinstance(value, str):
        parsed = parse_datetime(value)
        if parsed is None:
            parsed_date = parse_date(value)
            if parsed_date is None:
                raise ValueError(f"Fecha inválida: {value!r}")
            parsed = datetime.combine(parsed_date, time.min)
        value = parsed

    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)

    raise TypeError(
        f"La fecha debe ser date, datetime o str ISO-8601, no {type(value)!r}"
    )


def format_date(value: FechaTipo) -> str:
    """YYYY-MM-DD en UTC."""
    return to_utc(value).strftime("%Y-%m-%d")


def format_time(value: FechaTipo) -> str:
    """HH:MM:SS en UTC."""
    return to_utc(value).strftime("%H:%M:%S")


def format_iso_datetime(value: FechaTipo) -> str:
    """ISO-8601 UTC sin fracciones de segundo (ej. 2023-04-15T12:00:00Z)."""
    return to_utc(value).strftime("%Y-%m-%dT%H:%M:%SZ")
