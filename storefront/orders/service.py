"""
Cas d'usage 'orders': point d'entrée unique d'enregistrement des paiements.

La capture synchrone (PayPal), la création côté client et les webhooks passent
tous par upsert_order / reconcile_payment: au plus une commande par
(payment_method, payment_id).
"""
import logging
import secrets
import string
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from storefront.errors import DatabaseUnavailable, NotFound, ValidationError
from storefront.shipping.models import ShippingSettings
from . import repository
from .drafts import draft_from_checkout
from .models import PAYMENT_STATUS_RANK, CreateOrderRequest, OrderDraft

logger = logging.getLogger(__name__)

ORDER_NUMBER_PREFIXES = {"paypal": "PP", "mercadopago": "MP"}
ORDER_STATUSES = ("pending", "processing", "shipped", "delivered", "completed", "cancelled", "refunded")
_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits


@dataclass
class OrderUpsertResult:
    order: Dict[str, Any]
    created: bool
    updated: bool = False
    previous_status: Optional[str] = None
    previous_payment_status: Optional[str] = None

    @property
    def status_changed(self) -> bool:
        return self.updated and self.previous_status != self.order.get("status")

    @property
    def payment_status_changed(self) -> bool:
        return self.updated and self.previous_payment_status != self.order.get("payment_status")


def generate_order_number(payment_method: str, now_ms: Optional[int] = None) -> str:
    """<PP|MP>-<timestamp ms>-<9 caractères aléatoires>."""
    prefix = ORDER_NUMBER_PREFIXES.get(payment_method, payment_method[:2].upper())
    ts = now_ms if now_ms is not None else int(time.time() * 1000)
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(9))
    return f"{prefix}-{ts}-{suffix}"

def _alert_unpersisted(draft: OrderDraft) -> None:
    # Paiement encaissé côté fournisseur mais pas en base: réconciliation manuelle
    logger.critical(
        "orders.payment_not_persisted method=%s payment_id=%s reference=%s total=%s %s email=%s",
        draft.payment_method, draft.payment_id, draft.payment_reference,
        draft.total, draft.currency, draft.customer_email,
    )

def upsert_order(draft: OrderDraft) -> OrderUpsertResult:
    """
    Enregistre la commande de façon idempotente.
    1) commande existante pour ce paiement -> renvoyée telle quelle
    2) sinon insertion commande + lignes (transaction unique côté SQL)
    DatabaseUnavailable est propagée après une alerte CRITICAL.
    """
    try:
        existing = repository.find_order_by_payment(draft.payment_method, draft.payment_id)
        if existing:
            logger.info("orders.upsert dedup method=%s payment_id=%s order=%s",
                        draft.payment_method, draft.payment_id, existing.get("order_number"))
            return OrderUpsertResult(order=existing, created=False)
        order_number = generate_order_number(draft.payment_method)
        order, created = repository.upsert_order_with_items(
            draft.to_row(order_number), [item.to_row() for item in draft.items]
        )
    except DatabaseUnavailable:
        _alert_unpersisted(draft)
        raise
    logger.info("orders.upsert method=%s payment_id=%s order=%s created=%s",
                draft.payment_method, draft.payment_id, order.get("order_number"), created)
    return OrderUpsertResult(order=order, created=created)

def apply_payment_update(order: Dict[str, Any], payment_status: str, status: str) -> OrderUpsertResult:
    """
    Fait progresser payment_status/status d'une commande existante.
    Un statut de rang inférieur ou égal (ex: 'approved' après 'completed') est ignoré.
    """
    current = order.get("payment_status")
    if PAYMENT_STATUS_RANK.get(payment_status, -1) <= PAYMENT_STATUS_RANK.get(current, -1):
        return OrderUpsertResult(order=order, created=False)
    changes: Dict[str, Any] = {"payment_status": payment_status, "status": status}
    if payment_status in ("approved", "completed") and not order.get("paid_at"):
        changes["paid_at"] = datetime.now(timezone.utc).isoformat()
    updated = repository.update_order(order["id"], changes) or {**order, **changes}
    logger.info("orders.payment_update order=%s payment_status %s -> %s",
                order.get("order_number"), current, payment_status)
    return OrderUpsertResult(
        order=updated,
        created=False,
        updated=True,
        previous_status=order.get("status"),
        previous_payment_status=current,
    )

def reconcile_payment(draft: OrderDraft) -> OrderUpsertResult:
    """Entrée unique capture/webhook: upsert puis progression du statut si la commande existait."""
    result = upsert_order(draft)
    if result.created:
        return result
    try:
        return apply_payment_update(result.order, draft.payment_status, draft.status)
    except DatabaseUnavailable:
        _alert_unpersisted(draft)
        raise

def create_order_from_checkout(req: CreateOrderRequest, settings: ShippingSettings) -> OrderUpsertResult:
    return upsert_order(draft_from_checkout(req, settings))

def update_order_status(order_id: str, status: str) -> OrderUpsertResult:
    """Changement de statut logistique (admin)."""
    if status not in ORDER_STATUSES:
        raise ValidationError(f"Statut inconnu: {status}")
    order = repository.get_order(order_id)
    if not order:
        raise NotFound(f"Commande introuvable: {order_id}")
    if order.get("status") == status:
        return OrderUpsertResult(order=order, created=False)
    updated = repository.update_order(order_id, {"status": status}) or {**order, "status": status}
    return OrderUpsertResult(
        order=updated,
        created=False,
        updated=True,
        previous_status=order.get("status"),
        previous_payment_status=order.get("payment_status"),
    )

def list_orders(limit: int = 100, status: Optional[str] = None) -> List[Dict[str, Any]]:
    return repository.list_orders(limit=limit, status=status)
