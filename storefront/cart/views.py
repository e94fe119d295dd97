from typing import Any, Dict, List, Optional

from fastapi import APIRouter
from pydantic import BaseModel, Field

from storefront.shipping import service as shipping_service
from storefront.utils.money import format_amount
from . import calculator, promos
from .models import CartItem

router = APIRouter(prefix="/api/v1/cart", tags=["Cart API"])


class CartTotalsRequest(BaseModel):
    items: List[CartItem] = Field(min_length=1)
    promo_code: Optional[str] = None


@router.post("/totals")
def cart_totals(req: CartTotalsRequest) -> Dict[str, Any]:
    """
    Calcule les totaux d'un panier avec les réglages de livraison actifs.
    - promo_code inconnu: ignoré (remise 0), signalé par promo_applied=false
    """
    settings = shipping_service.get_shipping_resolver().current
    subtotal = calculator.compute_subtotal(req.items)
    discount = promos.discount_for(req.promo_code, subtotal)
    totals = calculator.calculate_totals(req.items, settings, discount=discount)
    return {
        **totals.to_wire(),
        "promo_applied": promos.is_known_code(req.promo_code),
        "is_free_shipping": shipping_service.is_free_shipping(settings, totals.subtotal),
        "amount_needed_for_free_shipping": format_amount(
            shipping_service.amount_needed_for_free_shipping(settings, totals.subtotal)
        ),
    }
