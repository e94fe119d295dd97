"""
Cas d'usage 'webhooks': réconciliation des notifications fournisseurs.

Reçu -> validé -> dédupliqué | traité. Les commandes passent par
orders.service.reconcile_payment (même entrée que la capture synchrone).
"""
import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from storefront.orders import repository as orders_repository
from storefront.orders import service as orders_service
from storefront.orders.drafts import (
    PAYPAL_APPROVED,
    PAYPAL_CAPTURED,
    draft_from_mercadopago_payment,
    draft_from_paypal_order,
)
from storefront.orders.service import OrderUpsertResult
from storefront.payments import mercadopago_client, paypal_client
from . import events, forwarder

logger = logging.getLogger(__name__)

def _processed(result: OrderUpsertResult) -> Dict[str, Any]:
    return {
        "status": "processed",
        "order_number": result.order.get("order_number"),
        "created": result.created,
        "updated": result.updated,
    }

def handle_paypal_event(payload: Any) -> Tuple[Dict[str, Any], Optional[OrderUpsertResult]]:
    event = events.parse_paypal_event(payload)
    if isinstance(event, events.IgnoredEvent):
        logger.info("webhooks.paypal ignored event_type=%s", event.event_type)
        return {"status": "ignored", "message": "Event acknowledged but not processed",
                "event_type": event.event_type}, None

    if isinstance(event, events.PayPalOrderApproved):
        status, payment_status = PAYPAL_APPROVED
        result = orders_service.reconcile_payment(
            draft_from_paypal_order(event.resource, status=status, payment_status=payment_status)
        )
    else:
        status, payment_status = PAYPAL_CAPTURED
        existing = orders_repository.find_order_by_payment("paypal", event.order_id)
        if existing:
            result = orders_service.apply_payment_update(existing, payment_status, status)
        else:
            # Capture reçue avant toute commande locale: ordre complet chez PayPal
            order = paypal_client.get_paypal_client().get_order(event.order_id)
            result = orders_service.reconcile_payment(
                draft_from_paypal_order(order, status=status, payment_status=payment_status)
            )
    logger.info("webhooks.paypal %s order=%s created=%s updated=%s",
                event.kind, result.order.get("order_number"), result.created, result.updated)
    return _processed(result), result

def handle_mercadopago_event(payload: Any, query: Optional[Mapping[str, str]] = None) -> Tuple[Dict[str, Any], Optional[OrderUpsertResult]]:
    event = events.parse_mercadopago_event(payload, query)
    if isinstance(event, events.IgnoredEvent):
        logger.info("webhooks.mercadopago ignored type=%s", event.event_type)
        return {"received": True, "status": "ignored", "type": event.event_type}, None

    payment = mercadopago_client.get_payment(event.payment_id)
    draft = draft_from_mercadopago_payment(payment)
    if payment.get("status") == "approved":
        result = orders_service.reconcile_payment(draft)
    else:
        existing = orders_repository.find_order_by_payment("mercadopago", draft.payment_id)
        if not existing:
            logger.info("webhooks.mercadopago payment=%s status=%s: no order to update",
                        event.payment_id, payment.get("status"))
            return {"received": True, "status": "ignored", "type": "payment",
                    "payment_status": payment.get("status")}, None
        result = orders_service.apply_payment_update(existing, draft.payment_status, draft.status)
    logger.info("webhooks.mercadopago payment=%s status=%s order=%s created=%s",
                event.payment_id, payment.get("status"), result.order.get("order_number"), result.created)
    return {"received": True, **_processed(result)}, result

def _relay_types(event: events.AutomationRelayEvent) -> List[Tuple[str, Dict[str, Any]]]:
    record = event.record or {}
    old = event.old_record or {}
    if event.type == "INSERT":
        return [("order.created", {})]
    if event.type != "UPDATE":
        return []
    types = []
    if old.get("status") != record.get("status"):
        types.append(("order.status_changed",
                      {"status_change": {"from": old.get("status"), "to": record.get("status")}}))
    if old.get("payment_status") != record.get("payment_status"):
        types.append(("order.payment_updated",
                      {"payment_change": {"from": old.get("payment_status"), "to": record.get("payment_status")}}))
    return types

def relay_database_event(payload: Any) -> Dict[str, Any]:
    """
    Relais des changements de la table orders vers l'automatisation.
    INSERT -> order.created; UPDATE -> order.status_changed et/ou order.payment_updated.
    """
    event = events.parse_relay_event(payload)
    if event.table != "orders":
        return {"success": True, "webhook_types": [], "forwarded": False, "reason": "table ignored"}
    kinds = _relay_types(event)
    if not kinds:
        return {"success": True, "webhook_types": [], "forwarded": False, "reason": "no relevant change"}
    record = event.record or {}
    items = orders_repository.get_order_items(record["id"]) if record.get("id") else []
    forwarded = []
    for webhook_type, extra in kinds:
        body = forwarder.build_order_event(webhook_type, record, items, event=event.type, **extra)
        forwarded.append(forwarder.forward(webhook_type, body))
    return {
        "success": True,
        "webhook_types": [k for k, _ in kinds],
        "forwarded": any(forwarded),
    }
