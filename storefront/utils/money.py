"""
Helpers monétaires: Decimal partout, 2 décimales ROUND_HALF_UP, chaînes "%.2f" au format fil.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

def to_decimal(value: Any) -> Decimal:
    """
    Convertit str|int|float|Decimal en Decimal.
    - Les float passent par str() pour éviter 0.1 -> 0.1000000000000000055...
    - None/"" -> 0
    """
    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"Montant invalide: {value!r}") from e

def quantize(value: Any) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)

def format_amount(value: Any) -> str:
    """Sérialise un montant en chaîne à 2 décimales ("12.50")."""
    return f"{quantize(value):.2f}"

def as_number(value: Any) -> float:
    # MercadoPago type unit_price en nombre: on quantize avant la conversion
    return float(quantize(value))
