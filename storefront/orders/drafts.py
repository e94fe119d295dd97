"""
Construction des OrderDraft selon la provenance:
- checkout client (POST /api/v1/orders)
- ordre PayPal (capture synchrone ou webhook)
- paiement MercadoPago (webhook)
Toutes les sources convergent ensuite vers orders.service.reconcile_payment.
"""
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

import storefront.config as config
from storefront.cart import calculator, promos
from storefront.shipping.models import ShippingSettings
from storefront.utils.money import ZERO, quantize, to_decimal
from storefront.utils.validators import is_valid_email
from .models import CreateOrderRequest, CustomerInfo, OrderDraft, OrderItemDraft, ShippingAddress

logger = logging.getLogger(__name__)

# Lignes techniques ajoutées aux préférences MercadoPago (pas des produits)
NON_PRODUCT_LINE_IDS = {"shipping", "tax"}

# statut fournisseur -> (status commande, payment_status)
MERCADOPAGO_STATUS_MAP: Dict[str, Tuple[str, str]] = {
    "approved": ("processing", "approved"),
    "authorized": ("pending", "authorized"),
    "pending": ("pending", "pending"),
    "in_process": ("pending", "in_process"),
    "in_mediation": ("processing", "in_process"),
    "rejected": ("cancelled", "rejected"),
    "cancelled": ("cancelled", "cancelled"),
    "refunded": ("refunded", "refunded"),
    "charged_back": ("refunded", "charged_back"),
}

PAYPAL_CAPTURED = ("processing", "completed")
PAYPAL_APPROVED = ("pending", "approved")


def _clean_email(email: Optional[str]) -> Optional[str]:
    return email if is_valid_email(email) else None

def _join_name(*parts: Optional[str]) -> Optional[str]:
    name = " ".join(p.strip() for p in parts if p and p.strip())
    return name or None


# --- checkout -------------------------------------------------------------

def draft_from_checkout(req: CreateOrderRequest, settings: ShippingSettings) -> OrderDraft:
    """
    Commande issue du front après paiement.
    Totaux recalculés côté serveur; statut 'pending' tant que le fournisseur
    (capture ou webhook) ne l'a pas confirmé.
    """
    subtotal = calculator.compute_subtotal(req.cart_items)
    discount = promos.discount_for(req.promo_code, subtotal)
    totals = calculator.calculate_totals(req.cart_items, settings, discount=discount)
    address = req.shipping_address
    items = [
        OrderItemDraft(
            product_id=item.id,
            product_name=item.name,
            product_image=item.image,
            product_sku=item.sku or item.slug,
            selected_size=item.selected_size,
            selected_material=item.selected_material,
            unit_price=calculator.effective_unit_price(item),
            quantity=item.quantity,
        )
        for item in req.cart_items
    ]
    return OrderDraft(
        payment_method=req.payment_details.method,
        payment_id=req.payment_details.id,
        payment_reference=req.payment_details.external_reference,
        customer_email=str(req.customer_info.email),
        customer_name=req.customer_info.name,
        customer_phone=req.customer_info.phone,
        customer_dni=req.customer_info.dni,
        shipping_street=address.street,
        shipping_number=address.number,
        shipping_city=address.city,
        shipping_state=address.state,
        shipping_zip_code=address.zip_code,
        shipping_country=address.country,
        subtotal=totals.subtotal,
        discount=totals.discount,
        shipping_cost=totals.shipping,
        tax=totals.tax,
        total=totals.total,
        currency=totals.currency,
        status="pending",
        payment_status="pending",
        metadata={
            "source": "checkout",
            "payment_details": req.payment_details.model_dump(),
            "promo_code": promos.normalize_code(req.promo_code) or None,
        },
        items=items,
    )


# --- PayPal ---------------------------------------------------------------

def _paypal_value(money: Optional[Dict[str, Any]]) -> Decimal:
    return quantize((money or {}).get("value") or 0)

def _paypal_amounts(unit: Dict[str, Any]) -> Dict[str, Any]:
    amount = unit.get("amount") or {}
    breakdown = amount.get("breakdown") or {}
    value = _paypal_value(amount)
    subtotal = _paypal_value(breakdown.get("item_total")) if breakdown.get("item_total") else value
    discount = _paypal_value(breakdown.get("discount"))
    shipping = _paypal_value(breakdown.get("shipping"))
    tax = _paypal_value(breakdown.get("tax_total"))
    total = subtotal - discount + shipping + tax
    if total != value:
        logger.warning("paypal amount breakdown mismatch value=%s computed=%s", value, total)
        subtotal, discount, shipping, tax, total = value, ZERO, ZERO, ZERO, value
    return {
        "subtotal": subtotal,
        "discount": discount,
        "shipping_cost": shipping,
        "tax": tax,
        "total": total,
        "currency": amount.get("currency_code") or config.PAYPAL_CURRENCY,
    }

def _paypal_items(unit: Dict[str, Any]) -> List[OrderItemDraft]:
    items = []
    for it in unit.get("items") or []:
        sku = it.get("sku")
        items.append(OrderItemDraft(
            product_id=sku,
            product_name=it.get("name") or "Producto",
            product_sku=sku,
            unit_price=_paypal_value(it.get("unit_amount")),
            quantity=int(it.get("quantity") or 1),
        ))
    return items

def _first_capture(order: Dict[str, Any]) -> Dict[str, Any]:
    for unit in order.get("purchase_units") or []:
        captures = (unit.get("payments") or {}).get("captures") or []
        if captures:
            return captures[0]
    return {}

def draft_from_paypal_order(
    order: Dict[str, Any],
    *,
    status: str,
    payment_status: str,
    customer: Optional[CustomerInfo] = None,
    shipping_address: Optional[ShippingAddress] = None,
) -> OrderDraft:
    """
    Commande à partir d'une ressource ordre PayPal (réponse de capture, GET ou webhook).
    La clé de déduplication est l'id de l'ordre PayPal.
    """
    units = order.get("purchase_units") or [{}]
    unit = units[0]
    payer = order.get("payer") or {}
    payer_name = payer.get("name") or {}
    capture = _first_capture(order)

    if shipping_address and shipping_address.street:
        street, number = shipping_address.street, shipping_address.number
        city, state = shipping_address.city, shipping_address.state
        zip_code, country = shipping_address.zip_code, shipping_address.country
    else:
        addr = (unit.get("shipping") or {}).get("address") or {}
        street, number = _join_name(addr.get("address_line_1"), addr.get("address_line_2")), None
        city, state = addr.get("admin_area_2"), addr.get("admin_area_1")
        zip_code, country = addr.get("postal_code"), addr.get("country_code") or config.SHIPPING_COUNTRY

    shipping_name = ((unit.get("shipping") or {}).get("name") or {}).get("full_name")
    return OrderDraft(
        payment_method="paypal",
        payment_id=str(order.get("id") or ""),
        payment_reference=unit.get("reference_id"),
        customer_email=str(customer.email) if customer else _clean_email(payer.get("email_address")),
        customer_name=customer.name if customer else (
            _join_name(payer_name.get("given_name"), payer_name.get("surname")) or shipping_name
        ),
        customer_phone=customer.phone if customer else None,
        customer_dni=customer.dni if customer else None,
        shipping_street=street,
        shipping_number=number,
        shipping_city=city,
        shipping_state=state,
        shipping_zip_code=zip_code,
        shipping_country=country,
        status=status,
        payment_status=payment_status,
        paid_at=capture.get("create_time") if payment_status == "completed" else None,
        metadata={
            "source": "paypal",
            "paypal_status": order.get("status"),
            "payer_id": payer.get("payer_id"),
            "capture_id": capture.get("id"),
            "provider_payload": order,
        },
        items=_paypal_items(unit),
        **_paypal_amounts(unit),
    )


# --- MercadoPago ----------------------------------------------------------

def mercadopago_statuses(provider_status: Optional[str]) -> Tuple[str, str]:
    return MERCADOPAGO_STATUS_MAP.get((provider_status or "").lower(), ("pending", "pending"))

def _mercadopago_amounts(payment: Dict[str, Any]) -> Dict[str, Any]:
    paid = quantize(payment.get("transaction_amount") or 0)
    currency = payment.get("currency_id") or config.STORE_CURRENCY
    meta = payment.get("metadata") or {}
    try:
        parts = {
            "subtotal": quantize(meta["subtotal"]),
            "discount": quantize(meta.get("discount") or 0),
            "shipping_cost": quantize(meta.get("shipping") or 0),
            "tax": quantize(meta.get("tax") or 0),
        }
        total = parts["subtotal"] - parts["discount"] + parts["shipping_cost"] + parts["tax"]
        if total == paid:
            return {**parts, "total": total, "currency": currency}
    except (KeyError, ValueError):
        pass
    # Métadonnées absentes ou incohérentes: le montant encaissé fait foi
    return {"subtotal": paid, "discount": ZERO, "shipping_cost": ZERO, "tax": ZERO, "total": paid, "currency": currency}

def _mercadopago_items(payment: Dict[str, Any]) -> List[OrderItemDraft]:
    items = []
    for it in ((payment.get("additional_info") or {}).get("items")) or []:
        item_id = str(it.get("id") or "")
        if item_id in NON_PRODUCT_LINE_IDS:
            continue
        items.append(OrderItemDraft(
            product_id=item_id or None,
            product_name=it.get("title") or "Producto",
            product_image=it.get("picture_url"),
            unit_price=quantize(to_decimal(it.get("unit_price"))),
            quantity=int(it.get("quantity") or 1),
        ))
    return items

def draft_from_mercadopago_payment(payment: Dict[str, Any]) -> OrderDraft:
    """Commande à partir d'un paiement MercadoPago (GET /v1/payments/{id})."""
    status, payment_status = mercadopago_statuses(payment.get("status"))
    payer = payment.get("payer") or {}
    info = payment.get("additional_info") or {}
    info_payer = info.get("payer") or {}
    receiver = ((info.get("shipments") or {}).get("receiver_address")) or {}
    phone = (payer.get("phone") or {}).get("number") or (info_payer.get("phone") or {}).get("number")
    return OrderDraft(
        payment_method="mercadopago",
        payment_id=str(payment.get("id") or ""),
        payment_reference=payment.get("external_reference"),
        customer_email=_clean_email(payer.get("email")),
        customer_name=_join_name(payer.get("first_name"), payer.get("last_name"))
        or _join_name(info_payer.get("first_name"), info_payer.get("last_name")),
        customer_phone=phone,
        customer_dni=(payer.get("identification") or {}).get("number"),
        shipping_street=receiver.get("street_name"),
        shipping_number=receiver.get("street_number"),
        shipping_city=receiver.get("city_name"),
        shipping_state=receiver.get("state_name"),
        shipping_zip_code=receiver.get("zip_code"),
        shipping_country=config.SHIPPING_COUNTRY,
        status=status,
        payment_status=payment_status,
        paid_at=payment.get("date_approved"),
        metadata={
            "source": "mercadopago",
            "payment_method_id": payment.get("payment_method_id"),
            "payment_type_id": payment.get("payment_type_id"),
            "installments": payment.get("installments"),
            "transaction_details": payment.get("transaction_details"),
            "provider_payload": payment,
        },
        items=_mercadopago_items(payment),
        **_mercadopago_amounts(payment),
    )
