"""
Codes promo: table en mémoire code -> pourcentage.
Aucune validation serveur (confiance client, comme le front d'origine): le code
envoyé est simplement recherché ici.
"""
from decimal import Decimal
from typing import Dict, Optional

from storefront.utils.money import ZERO, quantize, to_decimal

PROMO_CODES: Dict[str, Decimal] = {
    "WELCOME10": Decimal("0.10"),
}

def normalize_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()

def discount_rate(code: Optional[str]) -> Decimal:
    """Taux de remise du code (0 si inconnu ou vide)."""
    return PROMO_CODES.get(normalize_code(code), ZERO)

def is_known_code(code: Optional[str]) -> bool:
    return normalize_code(code) in PROMO_CODES

def discount_for(code: Optional[str], subtotal) -> Decimal:
    return quantize(to_decimal(subtotal) * discount_rate(code))
