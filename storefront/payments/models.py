from typing import List, Optional
from pydantic import AliasChoices, BaseModel, Field

from storefront.cart.models import CartItem
from storefront.orders.models import CustomerInfo, ShippingAddress


class ReturnUrls(BaseModel):
    success: Optional[str] = None
    failure: Optional[str] = None
    pending: Optional[str] = None
    cancel: Optional[str] = None


class CheckoutRequest(BaseModel):
    """Panier + acheteur pour créer une préférence MercadoPago ou un ordre PayPal."""
    items: List[CartItem] = Field(min_length=1, validation_alias=AliasChoices("items", "cart_items", "cartItems"))
    customer: Optional[CustomerInfo] = Field(
        default=None, validation_alias=AliasChoices("customer", "customer_info", "customerInfo", "payer")
    )
    shipping_address: Optional[ShippingAddress] = Field(
        default=None, validation_alias=AliasChoices("shipping_address", "shippingAddress")
    )
    promo_code: Optional[str] = Field(default=None, validation_alias=AliasChoices("promo_code", "promoCode"))
    return_urls: ReturnUrls = Field(default_factory=ReturnUrls, validation_alias=AliasChoices("return_urls", "back_urls"))


class CaptureRequest(BaseModel):
    """Corps optionnel de la capture: infos client saisies au checkout."""
    customer: Optional[CustomerInfo] = Field(
        default=None, validation_alias=AliasChoices("customer", "customer_info", "customerInfo")
    )
    shipping_address: Optional[ShippingAddress] = Field(
        default=None, validation_alias=AliasChoices("shipping_address", "shippingAddress")
    )


class PaymentLookupRequest(BaseModel):
    payment_id: str = Field(min_length=1, validation_alias=AliasChoices("payment_id", "paymentId", "id"))
