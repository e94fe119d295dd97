"""
Effets de bord après enregistrement d'une commande, exécutés en tâche de fond
(BackgroundTasks): relais d'automatisation et email de confirmation.
Aucune erreur ne remonte: la réponse au fournisseur/au client est déjà partie.
"""
import logging

from storefront.orders import repository as orders_repository
from storefront.orders.service import OrderUpsertResult
from storefront.webhooks import forwarder
from . import mailer

logger = logging.getLogger(__name__)

def dispatch_order_events(result: OrderUpsertResult) -> None:
    order = result.order
    if not result.created and not result.updated:
        return
    try:
        items = orders_repository.get_order_items(order["id"]) if order.get("id") else []
        if result.created:
            forwarder.forward("order.created", forwarder.build_order_event("order.created", order, items, event="INSERT"))
            mailer.send_order_confirmation(order, items)
            return
        if result.payment_status_changed:
            forwarder.forward("order.payment_updated", forwarder.build_order_event(
                "order.payment_updated", order, items,
                payment_change={"from": result.previous_payment_status, "to": order.get("payment_status")},
            ))
        if result.status_changed:
            forwarder.forward("order.status_changed", forwarder.build_order_event(
                "order.status_changed", order, items,
                status_change={"from": result.previous_status, "to": order.get("status")},
            ))
    except Exception:
        logger.exception("notifications.dispatch_order_events failed order=%s", order.get("order_number"))
