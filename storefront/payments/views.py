import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, BackgroundTasks, Depends

from storefront.notifications.dispatch import dispatch_order_events
from storefront.utils.rate_limit import optional_rate_limit
from . import service as payments_service
from .models import CaptureRequest, CheckoutRequest, PaymentLookupRequest

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/payments", tags=["Payments API"])

# module storefront.payments.views
@router.post("/paypal/create-order", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def paypal_create_order(req: CheckoutRequest) -> Dict[str, Any]:
    """
    Crée un ordre PayPal (intent CAPTURE) à partir du panier.
    - Totaux recalculés côté serveur (livraison, IGV, code promo)
    - Montants convertis vers PAYPAL_CURRENCY
    - Réponse: {id, status, approve_url, reference_id, totals, amount}
    - Erreurs: 500 config_error (identifiants absents), 502 gateway_unavailable
    """
    return payments_service.create_paypal_order(req)

@router.post("/paypal/capture-order/{order_id}", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def paypal_capture_order(
    order_id: str,
    background_tasks: BackgroundTasks,
    req: Optional[CaptureRequest] = None,
) -> Dict[str, Any]:
    """
    Capture l'ordre PayPal approuvé et enregistre la commande (idempotent).
    - Corps optionnel: customer/shipping_address saisis au checkout
    - 503 database_unavailable si le paiement est capturé mais non enregistré
    """
    body, result = payments_service.capture_paypal_order(order_id, req)
    if result is not None:
        background_tasks.add_task(dispatch_order_events, result)
    return body

@router.post("/mercadopago/create-preference", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def mercadopago_create_preference(req: CheckoutRequest) -> Dict[str, Any]:
    """
    Crée une préférence MercadoPago.
    - Réponse: {id, init_point, sandbox_init_point, checkout_url, external_reference, mode, totals}
    - 400 validation_error: email payeur, items, montant minimum
    """
    return payments_service.create_mercadopago_preference(req)

@router.post("/mercadopago/get-payment")
def mercadopago_get_payment(req: PaymentLookupRequest) -> Dict[str, Any]:
    return payments_service.get_mercadopago_payment(req.payment_id)

@router.get("/mercadopago/payments/{payment_id}")
def mercadopago_get_payment_by_id(payment_id: str) -> Dict[str, Any]:
    return payments_service.get_mercadopago_payment(payment_id)
