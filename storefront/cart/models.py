from decimal import Decimal
from typing import Optional, Dict
from pydantic import BaseModel, ConfigDict, Field, AliasChoices

from storefront.utils.money import format_amount


class CartItem(BaseModel):
    """Ligne de panier telle qu'envoyée par le front (snake_case ou camelCase)."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(min_length=1)
    name: str = Field(min_length=1, validation_alias=AliasChoices("name", "title"))
    price: Decimal = Field(gt=0, validation_alias=AliasChoices("price", "unit_price"))
    sale_price: Optional[Decimal] = Field(default=None, ge=0)
    quantity: int = Field(default=1, ge=1)
    selected_size: Optional[str] = Field(default=None, validation_alias=AliasChoices("selected_size", "selectedSize"))
    selected_material: Optional[str] = Field(default=None, validation_alias=AliasChoices("selected_material", "selectedMaterial"))
    image: Optional[str] = None
    slug: Optional[str] = None
    sku: Optional[str] = None


class CartTotals(BaseModel):
    model_config = ConfigDict(frozen=True)

    subtotal: Decimal
    discount: Decimal
    shipping: Decimal
    tax: Decimal
    total: Decimal
    currency: str

    def to_wire(self) -> Dict[str, str]:
        return {
            "subtotal": format_amount(self.subtotal),
            "discount": format_amount(self.discount),
            "shipping": format_amount(self.shipping),
            "tax": format_amount(self.tax),
            "total": format_amount(self.total),
            "currency": self.currency,
        }
