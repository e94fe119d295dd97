"""
Module 'cart' (feature-first): point d'entrée public.
Réunit le calcul pur du panier, les codes promo et la session panier.
"""

from .models import CartItem, CartTotals
from .calculator import effective_unit_price, compute_subtotal, shipping_for, calculate_totals
from .promos import PROMO_CODES, discount_rate, discount_for
from .session import Cart

__all__ = [
    # models
    "CartItem",
    "CartTotals",
    # calculator
    "effective_unit_price",
    "compute_subtotal",
    "shipping_for",
    "calculate_totals",
    # promos
    "PROMO_CODES",
    "discount_rate",
    "discount_for",
    # session
    "Cart",
]
