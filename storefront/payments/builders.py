"""
Construction des requêtes fournisseurs (transformation pure, aucun appel réseau).

- MercadoPago: préférence de paiement (items, payer, back_urls, notification_url...)
- PayPal: ordre "intent: CAPTURE" avec purchase_units, breakdown et items
Les montants sont des Decimal arrondis à 2 décimales; PayPal reçoit des chaînes,
MercadoPago des nombres déjà arrondis (son API type unit_price en nombre).
"""
import secrets
import time
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

import storefront.config as config
from storefront.cart.calculator import effective_unit_price
from storefront.cart.models import CartItem, CartTotals
from storefront.errors import ValidationError
from storefront.orders.models import CustomerInfo, ShippingAddress
from storefront.utils.money import ZERO, as_number, format_amount, quantize, to_decimal
from storefront.utils.validators import is_valid_email
from .models import ReturnUrls

MP_TITLE_MAX = 256
PAYPAL_TEXT_MAX = 127
SHIPPING_LINE_ID = "shipping"
TAX_LINE_ID = "tax"
BUNDLE_LINE_ID = "bundle"

def new_external_reference(now_ms: Optional[int] = None) -> str:
    """Référence de corrélation: <prefix>_<timestamp ms>_<8 hex>."""
    ts = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"{config.REFERENCE_PREFIX}_{ts}_{secrets.token_hex(4)}"

def resolve_return_urls(urls: Optional[ReturnUrls] = None) -> Dict[str, str]:
    urls = urls or ReturnUrls()
    base = config.BASE_URL
    return {
        "success": urls.success or f"{base}{config.CHECKOUT_SUCCESS_PATH}",
        "failure": urls.failure or f"{base}{config.CHECKOUT_FAILURE_PATH}",
        "pending": urls.pending or f"{base}{config.CHECKOUT_PENDING_PATH}",
        "cancel": urls.cancel or f"{base}{config.CHECKOUT_CANCEL_PATH}",
    }

def split_name(full_name: Optional[str]) -> Tuple[str, str]:
    parts = (full_name or "").strip().split(" ", 1)
    first = parts[0] if parts else ""
    last = parts[1].strip() if len(parts) > 1 else ""
    return first, last

def _item_description(item: CartItem) -> str:
    details = []
    if item.selected_size:
        details.append(f"Talla: {item.selected_size}")
    if item.selected_material:
        details.append(f"Material: {item.selected_material}")
    return ", ".join(details)

def _validate_items(items: List[CartItem]) -> None:
    if not items:
        raise ValidationError("Se requiere al menos un item")
    for index, item in enumerate(items):
        if not item.name or to_decimal(item.price) <= ZERO or item.quantity <= 0:
            raise ValidationError(f"Item {index + 1} inválido: título, precio y cantidad son requeridos")


# --- MercadoPago ---------------------------------------------------------

def _needs_bundle(items: List[CartItem], totals: CartTotals) -> bool:
    # Remise ou article sous le minimum MercadoPago: une seule ligne groupée
    if totals.discount > ZERO:
        return True
    for item in items:
        price = effective_unit_price(item)
        if price < config.MIN_PRODUCT_PRICE or price != quantize(price):
            return True
    return False

def _mercadopago_lines(items: List[CartItem], totals: CartTotals) -> List[Dict[str, Any]]:
    currency = totals.currency
    if _needs_bundle(items, totals):
        names = ", ".join(f"{it.name} x{it.quantity}" for it in items)
        count = sum(it.quantity for it in items)
        lines = [{
            "id": BUNDLE_LINE_ID,
            "title": f"{config.STORE_BRAND} - {count} producto(s)"[:MP_TITLE_MAX],
            "description": names[:MP_TITLE_MAX],
            "quantity": 1,
            "currency_id": currency,
            "unit_price": as_number(totals.subtotal - totals.discount),
        }]
    else:
        lines = []
        for item in items:
            line = {
                "id": item.id,
                "title": item.name[:MP_TITLE_MAX],
                "description": _item_description(item) or item.name[:MP_TITLE_MAX],
                "quantity": item.quantity,
                "currency_id": currency,
                "unit_price": as_number(effective_unit_price(item)),
            }
            if item.image:
                line["picture_url"] = item.image
            lines.append(line)
    if totals.shipping > ZERO:
        lines.append({
            "id": SHIPPING_LINE_ID,
            "title": "Envío",
            "quantity": 1,
            "currency_id": currency,
            "unit_price": as_number(totals.shipping),
        })
    if totals.tax > ZERO:
        lines.append({
            "id": TAX_LINE_ID,
            "title": f"IGV {(config.TAX_RATE * 100).quantize(Decimal('1'))}%",
            "quantity": 1,
            "currency_id": currency,
            "unit_price": as_number(totals.tax),
        })
    return lines

def _mercadopago_payer(customer: CustomerInfo, address: Optional[ShippingAddress]) -> Dict[str, Any]:
    first, last = split_name(customer.name)
    payer: Dict[str, Any] = {"name": first, "surname": last, "email": str(customer.email)}
    if customer.phone:
        payer["phone"] = {"number": customer.phone}
    if customer.dni:
        payer["identification"] = {"type": "DNI", "number": customer.dni}
    if address and address.street:
        payer["address"] = {
            "street_name": address.street,
            "street_number": address.number or "",
            "zip_code": address.zip_code or "",
        }
    return payer

def build_mercadopago_preference(
    *,
    items: List[CartItem],
    totals: CartTotals,
    customer: Optional[CustomerInfo],
    shipping_address: Optional[ShippingAddress] = None,
    return_urls: Optional[ReturnUrls] = None,
    external_reference: Optional[str] = None,
    promo_code: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Construit la préférence MercadoPago.
    - Valide items, email du payeur et total minimum (ValidationError sinon)
    - La somme des lignes (produits ou lot, envoi, IGV) vaut exactement totals.total
    """
    _validate_items(items)
    if not customer or not is_valid_email(str(customer.email)):
        raise ValidationError("Email del pagador requerido y válido")
    if totals.total < config.MIN_ORDER_TOTAL:
        raise ValidationError(
            f"El monto mínimo de compra es {format_amount(config.MIN_ORDER_TOTAL)} {totals.currency}"
        )

    now = now or datetime.now(timezone.utc)
    urls = resolve_return_urls(return_urls)
    reference = external_reference or new_external_reference(int(now.timestamp() * 1000))

    preference: Dict[str, Any] = {
        "items": _mercadopago_lines(items, totals),
        "payer": _mercadopago_payer(customer, shipping_address),
        "back_urls": {"success": urls["success"], "failure": urls["failure"], "pending": urls["pending"]},
        "auto_return": "approved",
        "notification_url": f"{config.API_BASE_URL}/api/v1/webhooks/mercadopago",
        "statement_descriptor": config.STORE_BRAND,
        "external_reference": reference,
        "expires": True,
        "expiration_date_from": now.isoformat(timespec="milliseconds"),
        "expiration_date_to": (now + timedelta(hours=24)).isoformat(timespec="milliseconds"),
        "payment_methods": {"installments": 12},
        "metadata": {
            "external_reference": reference,
            "promo_code": promo_code,
            "customer_dni": customer.dni,
            **totals.to_wire(),
        },
    }
    if shipping_address and shipping_address.street:
        preference["shipments"] = {
            "mode": "not_specified",
            "receiver_address": {
                "street_name": shipping_address.street,
                "street_number": shipping_address.number or "",
                "zip_code": shipping_address.zip_code or "",
                "city_name": shipping_address.city or "",
                "state_name": shipping_address.state or "",
            },
        }
    return preference


# --- PayPal ---------------------------------------------------------------

def paypal_rate(store_currency: str) -> Decimal:
    if store_currency == config.PAYPAL_CURRENCY:
        return Decimal("1")
    return config.PAYPAL_EXCHANGE_RATE

def _money(value: Decimal, currency: str) -> Dict[str, str]:
    return {"currency_code": currency, "value": format_amount(value)}

def build_paypal_order(
    *,
    items: List[CartItem],
    totals: CartTotals,
    customer: Optional[CustomerInfo] = None,
    shipping_address: Optional[ShippingAddress] = None,
    return_urls: Optional[ReturnUrls] = None,
    reference_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Construit l'ordre PayPal (intent CAPTURE).
    Conversion ligne par ligne vers PAYPAL_CURRENCY pour garantir:
      item_total = somme(unit_amount * quantity)
      value = item_total - discount + shipping + tax_total
    """
    _validate_items(items)
    currency = config.PAYPAL_CURRENCY
    rate = paypal_rate(totals.currency)

    def convert(v) -> Decimal:
        return quantize(to_decimal(v) * rate)

    paypal_items = []
    item_total = ZERO
    for item in items:
        unit = convert(effective_unit_price(item))
        item_total += unit * item.quantity
        paypal_item = {
            "name": item.name[:PAYPAL_TEXT_MAX],
            "unit_amount": _money(unit, currency),
            "quantity": str(item.quantity),
            "sku": item.id[:PAYPAL_TEXT_MAX],
            "category": "PHYSICAL_GOODS",
        }
        description = _item_description(item)
        if description:
            paypal_item["description"] = description[:PAYPAL_TEXT_MAX]
        paypal_items.append(paypal_item)

    item_total = quantize(item_total)
    discount = min(convert(totals.discount), item_total)
    shipping = convert(totals.shipping)
    tax = convert(totals.tax)
    value = item_total - discount + shipping + tax

    breakdown = {
        "item_total": _money(item_total, currency),
        "shipping": _money(shipping, currency),
        "tax_total": _money(tax, currency),
    }
    if discount > ZERO:
        breakdown["discount"] = _money(discount, currency)

    unit: Dict[str, Any] = {
        "reference_id": reference_id or new_external_reference(),
        "description": f"Compra en {config.STORE_BRAND}",
        "amount": {**_money(value, currency), "breakdown": breakdown},
        "items": paypal_items,
    }
    if shipping_address and shipping_address.street:
        address = {
            "address_line_1": f"{shipping_address.street} {shipping_address.number or ''}".strip()[:300],
            "admin_area_2": shipping_address.city or "",
            "admin_area_1": shipping_address.state or "",
            "postal_code": shipping_address.zip_code or "",
            "country_code": shipping_address.country or config.SHIPPING_COUNTRY,
        }
        shipping_block: Dict[str, Any] = {"address": address}
        if customer and customer.name:
            shipping_block["name"] = {"full_name": customer.name[:300]}
        unit["shipping"] = shipping_block

    urls = resolve_return_urls(return_urls)
    return {
        "intent": "CAPTURE",
        "purchase_units": [unit],
        "application_context": {
            "brand_name": config.STORE_BRAND,
            "landing_page": "NO_PREFERENCE",
            "user_action": "PAY_NOW",
            "return_url": urls["success"],
            "cancel_url": urls["cancel"],
        },
    }
