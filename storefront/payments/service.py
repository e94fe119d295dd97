"""
Cas d'usage 'payments': orchestre calcul panier, builders, clients fournisseurs et commandes.
"""
import logging
from typing import Any, Dict, Optional, Tuple

from storefront.cart import calculator, promos
from storefront.cart.models import CartTotals
from storefront.errors import DatabaseUnavailable
from storefront.orders import service as orders_service
from storefront.orders.drafts import PAYPAL_CAPTURED, draft_from_paypal_order
from storefront.orders.service import OrderUpsertResult
from storefront.shipping.service import get_shipping_resolver
from . import builders, mercadopago_client, paypal_client
from .models import CaptureRequest, CheckoutRequest

logger = logging.getLogger(__name__)

def checkout_totals(req: CheckoutRequest) -> CartTotals:
    """Totaux recalculés côté serveur avec les réglages de livraison actifs."""
    settings = get_shipping_resolver().current
    subtotal = calculator.compute_subtotal(req.items)
    discount = promos.discount_for(req.promo_code, subtotal)
    return calculator.calculate_totals(req.items, settings, discount=discount)

def create_paypal_order(req: CheckoutRequest) -> Dict[str, Any]:
    client = paypal_client.get_paypal_client()
    totals = checkout_totals(req)
    reference = builders.new_external_reference()
    payload = builders.build_paypal_order(
        items=req.items,
        totals=totals,
        customer=req.customer,
        shipping_address=req.shipping_address,
        return_urls=req.return_urls,
        reference_id=reference,
    )
    created = client.create_order(payload, request_id=reference)
    return {
        "id": created["provider_id"],
        "status": created["status"],
        "redirect_urls": created["redirect_urls"],
        "approve_url": created["redirect_urls"].get("approve"),
        "reference_id": reference,
        "totals": totals.to_wire(),
        "amount": payload["purchase_units"][0]["amount"],
    }

def capture_paypal_order(
    order_id: str, req: Optional[CaptureRequest] = None
) -> Tuple[Dict[str, Any], Optional[OrderUpsertResult]]:
    """
    Capture l'ordre puis enregistre la commande via reconcile_payment.
    Une capture non COMPLETED (ex: PENDING) est renvoyée sans commande.
    """
    client = paypal_client.get_paypal_client()
    captured = client.capture_order(order_id)
    body: Dict[str, Any] = {
        "provider_id": order_id,
        "status": captured["status"],
        "payer_id": captured["payer_id"],
        "capture_id": captured["capture_id"],
    }
    if captured["status"] != "COMPLETED":
        logger.warning("payments.capture order=%s status=%s: no order recorded", order_id, captured["status"])
        return body, None

    status, payment_status = PAYPAL_CAPTURED
    draft = draft_from_paypal_order(
        captured["raw"],
        status=status,
        payment_status=payment_status,
        customer=req.customer if req else None,
        shipping_address=req.shipping_address if req else None,
    )
    try:
        result = orders_service.reconcile_payment(draft)
    except DatabaseUnavailable as e:
        raise DatabaseUnavailable(
            f"Pago capturado ({order_id}) pero el pedido no pudo registrarse",
            details={"paypal_order_id": order_id, "capture_id": captured["capture_id"]},
        ) from e
    body["order"] = {
        "id": result.order.get("id"),
        "order_number": result.order.get("order_number"),
        "created": result.created,
    }
    return body, result

def create_mercadopago_preference(req: CheckoutRequest) -> Dict[str, Any]:
    mercadopago_client.require_access_token()
    totals = checkout_totals(req)
    reference = builders.new_external_reference()
    payload = builders.build_mercadopago_preference(
        items=req.items,
        totals=totals,
        customer=req.customer,
        shipping_address=req.shipping_address,
        return_urls=req.return_urls,
        external_reference=reference,
        promo_code=promos.normalize_code(req.promo_code) or None,
    )
    created = mercadopago_client.create_preference(payload, idempotency_key=reference)
    return {**created, "totals": totals.to_wire()}

def get_mercadopago_payment(payment_id: str) -> Dict[str, Any]:
    return mercadopago_client.summarize_payment(mercadopago_client.get_payment(payment_id))
