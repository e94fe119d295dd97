from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional
from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from storefront.cart.models import CartItem
from storefront.utils.money import format_amount, quantize
from storefront.utils.validators import EMAIL_MAX_LENGTH, sanitize_text

PaymentMethod = Literal["paypal", "mercadopago"]

# Ordre de progression des statuts de paiement: une mise à jour ne recule jamais
PAYMENT_STATUS_RANK: Dict[str, int] = {
    "pending": 0,
    "in_process": 1,
    "authorized": 1,
    "approved": 2,
    "completed": 3,
    "rejected": 4,
    "cancelled": 4,
    "refunded": 5,
    "charged_back": 5,
}


class CustomerInfo(BaseModel):
    email: EmailStr = Field(max_length=EMAIL_MAX_LENGTH)
    name: str = Field(min_length=1)
    phone: Optional[str] = None
    dni: Optional[str] = None

    @field_validator("name", "phone", "dni")
    @classmethod
    def _sanitize(cls, v):
        return sanitize_text(v)


class ShippingAddress(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    street: Optional[str] = None
    number: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = Field(default=None, validation_alias=AliasChoices("zip_code", "zipCode", "postal_code"))
    country: str = "PE"

    @field_validator("street", "number", "city", "state", "zip_code")
    @classmethod
    def _sanitize(cls, v):
        return sanitize_text(v)


class PaymentDetails(BaseModel):
    id: str = Field(min_length=1)
    method: PaymentMethod
    external_reference: Optional[str] = None


class CreateOrderRequest(BaseModel):
    """Corps de POST /api/v1/orders (création après paiement côté client)."""
    payment_details: PaymentDetails = Field(validation_alias=AliasChoices("payment_details", "paymentDetails"))
    cart_items: List[CartItem] = Field(min_length=1, validation_alias=AliasChoices("cart_items", "cartItems"))
    customer_info: CustomerInfo = Field(validation_alias=AliasChoices("customer_info", "customerInfo"))
    shipping_address: ShippingAddress = Field(
        default_factory=ShippingAddress, validation_alias=AliasChoices("shipping_address", "shippingAddress")
    )
    promo_code: Optional[str] = Field(default=None, validation_alias=AliasChoices("promo_code", "promoCode"))


class OrderItemDraft(BaseModel):
    product_id: Optional[str] = None
    product_name: str = Field(min_length=1)
    product_image: Optional[str] = None
    product_sku: Optional[str] = None
    selected_size: Optional[str] = None
    selected_material: Optional[str] = None
    unit_price: Decimal = Field(ge=0)
    quantity: int = Field(ge=1)

    @property
    def subtotal(self) -> Decimal:
        return quantize(self.unit_price * self.quantity)

    def to_row(self) -> Dict[str, Any]:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "product_image": self.product_image,
            "product_sku": self.product_sku,
            "selected_size": self.selected_size,
            "selected_material": self.selected_material,
            "unit_price": format_amount(self.unit_price),
            "quantity": self.quantity,
            "subtotal": format_amount(self.subtotal),
        }


class OrderDraft(BaseModel):
    """
    Commande prête à persister, quelle que soit sa provenance
    (checkout, capture PayPal, webhook PayPal/MercadoPago).
    Invariant: total = subtotal - discount + shipping_cost + tax.
    """
    payment_method: PaymentMethod
    payment_id: str = Field(min_length=1)
    payment_reference: Optional[str] = None

    customer_email: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_dni: Optional[str] = None

    shipping_street: Optional[str] = None
    shipping_number: Optional[str] = None
    shipping_city: Optional[str] = None
    shipping_state: Optional[str] = None
    shipping_zip_code: Optional[str] = None
    shipping_country: Optional[str] = None

    subtotal: Decimal = Field(ge=0)
    discount: Decimal = Field(default=Decimal("0"), ge=0)
    shipping_cost: Decimal = Field(default=Decimal("0"), ge=0)
    tax: Decimal = Field(default=Decimal("0"), ge=0)
    total: Decimal = Field(ge=0)
    currency: str

    status: str = "pending"
    payment_status: str = "pending"
    metadata: Dict[str, Any] = Field(default_factory=dict)
    paid_at: Optional[datetime] = None

    items: List[OrderItemDraft] = Field(default_factory=list)

    @field_validator(
        "customer_email", "customer_name", "customer_phone", "customer_dni",
        "shipping_street", "shipping_number", "shipping_city", "shipping_state", "shipping_zip_code",
    )
    @classmethod
    def _sanitize(cls, v):
        return sanitize_text(v)

    @model_validator(mode="after")
    def _check_total(self):
        expected = quantize(self.subtotal - self.discount + self.shipping_cost + self.tax)
        if quantize(self.total) != expected:
            raise ValueError(f"total {self.total} != subtotal - discount + shipping_cost + tax ({expected})")
        return self

    def to_row(self, order_number: str) -> Dict[str, Any]:
        row = self.model_dump(mode="json", exclude={"items", "subtotal", "discount", "shipping_cost", "tax", "total"})
        row.update({
            "order_number": order_number,
            "subtotal": format_amount(self.subtotal),
            "discount": format_amount(self.discount),
            "shipping_cost": format_amount(self.shipping_cost),
            "tax": format_amount(self.tax),
            "total": format_amount(self.total),
        })
        return row
