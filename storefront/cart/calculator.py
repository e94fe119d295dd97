"""
Calcul pur du panier (pas de DB, pas de fournisseur).
"""
from decimal import Decimal
from typing import Iterable, Optional

import storefront.config as config
from storefront.errors import ValidationError
from storefront.shipping.models import ShippingSettings
from storefront.utils.money import ZERO, quantize, to_decimal
from .models import CartItem, CartTotals

# module storefront.cart.calculator
def effective_unit_price(item: CartItem) -> Decimal:
    """Prix promo s'il existe et est inférieur au prix, sinon le prix catalogue."""
    price = to_decimal(item.price)
    sale = item.sale_price
    if sale is not None and ZERO < sale < price:
        return to_decimal(sale)
    return price

def compute_subtotal(items: Iterable[CartItem]) -> Decimal:
    return quantize(sum((effective_unit_price(it) * it.quantity for it in items), ZERO))

def shipping_for(subtotal, settings: ShippingSettings) -> Decimal:
    if to_decimal(subtotal) >= settings.free_shipping_threshold:
        return ZERO
    return quantize(settings.standard_shipping_cost)

def calculate_totals(
    items: Iterable[CartItem],
    settings: ShippingSettings,
    discount=ZERO,
    tax_rate: Optional[Decimal] = None,
) -> CartTotals:
    """
    Calcule {subtotal, discount, shipping, tax, total}.
    - shipping = 0 si subtotal >= seuil, sinon coût forfaitaire
    - tax = (subtotal - discount) * taux (IGV)
    - total = subtotal - discount + shipping + tax, sur les composantes arrondies
    Soulève ValidationError si la remise est négative ou dépasse le sous-total.
    """
    items = list(items)
    rate = config.TAX_RATE if tax_rate is None else to_decimal(tax_rate)
    subtotal = compute_subtotal(items)
    discount = quantize(discount)
    if discount < ZERO or discount > subtotal:
        raise ValidationError(f"Remise invalide: {discount}")
    shipping = shipping_for(subtotal, settings)
    tax = quantize((subtotal - discount) * rate)
    total = subtotal - discount + shipping + tax
    return CartTotals(
        subtotal=subtotal,
        discount=discount,
        shipping=shipping,
        tax=tax,
        total=total,
        currency=settings.currency,
    )
