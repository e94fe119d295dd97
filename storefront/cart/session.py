"""
Session panier en mémoire: reproduit les opérations du panier client
(ajout, +/-, suppression, vidage, code promo) au-dessus du calculateur.
"""
from decimal import Decimal
from typing import List, Optional

from storefront.shipping.models import ShippingSettings
from storefront.utils.money import ZERO
from . import calculator, promos
from .models import CartItem, CartTotals


class Cart:
    def __init__(self, items: Optional[List[CartItem]] = None):
        self.items: List[CartItem] = list(items or [])
        self.promo_code: Optional[str] = None

    def _find(self, item_id: str) -> Optional[CartItem]:
        return next((it for it in self.items if it.id == item_id), None)

    def add(self, item: CartItem) -> None:
        existing = self._find(item.id)
        if existing:
            existing.quantity += 1
        else:
            self.items.append(item.model_copy(update={"quantity": 1}))

    def remove(self, item_id: str) -> None:
        self.items = [it for it in self.items if it.id != item_id]

    def update_quantity(self, item_id: str, quantity: int) -> None:
        if quantity <= 0:
            self.remove(item_id)
            return
        existing = self._find(item_id)
        if existing:
            existing.quantity = quantity

    def increase(self, item_id: str) -> None:
        existing = self._find(item_id)
        if existing:
            existing.quantity += 1

    def decrease(self, item_id: str) -> None:
        existing = self._find(item_id)
        if existing:
            self.update_quantity(item_id, existing.quantity - 1)

    def clear(self) -> None:
        self.items = []
        self.promo_code = None

    def get_item_quantity(self, item_id: str) -> int:
        existing = self._find(item_id)
        return existing.quantity if existing else 0

    def is_in_cart(self, item_id: str) -> bool:
        return self._find(item_id) is not None

    @property
    def total_items(self) -> int:
        return sum(it.quantity for it in self.items)

    def apply_promo(self, code: str) -> bool:
        """Applique le code s'il est connu; retourne False sinon (code ignoré)."""
        if not promos.is_known_code(code):
            return False
        self.promo_code = promos.normalize_code(code)
        return True

    def remove_promo(self) -> None:
        self.promo_code = None

    def discount(self) -> Decimal:
        if not self.promo_code:
            return ZERO
        return promos.discount_for(self.promo_code, calculator.compute_subtotal(self.items))

    def summary(self, settings: ShippingSettings) -> CartTotals:
        return calculator.calculate_totals(self.items, settings, discount=self.discount())
