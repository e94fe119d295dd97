import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from pydantic import BaseModel, Field

from storefront.notifications.dispatch import dispatch_order_events
from storefront.shipping.service import get_shipping_resolver
from storefront.utils.rate_limit import optional_rate_limit
from storefront.utils.security import require_admin_token
from .models import CreateOrderRequest
from . import service as orders_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/orders", tags=["Orders API"])
admin_router = APIRouter(
    prefix="/api/v1/admin/orders",
    tags=["Admin"],
    dependencies=[Depends(require_admin_token)],
)


class OrderStatusUpdate(BaseModel):
    status: str = Field(min_length=1)


def _order_summary(result: orders_service.OrderUpsertResult) -> Dict[str, Any]:
    order = result.order
    return {
        "id": order.get("id"),
        "order_number": order.get("order_number"),
        "status": order.get("status"),
        "payment_status": order.get("payment_status"),
        "created": result.created,
    }

# module storefront.orders.views
@router.post("", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def create_order(req: CreateOrderRequest, background_tasks: BackgroundTasks) -> Dict[str, Any]:
    """
    Enregistre la commande envoyée par le front après paiement.
    - Totaux recalculés côté serveur; statut initial pending/pending
    - Idempotent sur (payment_method, payment_id): un rejeu renvoie created=false
    - Confirmation (automatisation, email) après la réponse
    """
    settings = get_shipping_resolver().current
    result = orders_service.create_order_from_checkout(req, settings)
    if result.created:
        background_tasks.add_task(dispatch_order_events, result)
    return {"success": True, "order": _order_summary(result)}

@admin_router.get("")
def admin_list_orders(
    limit: int = Query(100, ge=1, le=500),
    status: Optional[str] = None,
) -> Dict[str, Any]:
    orders = orders_service.list_orders(limit=limit, status=status)
    return {"orders": orders, "count": len(orders)}

@admin_router.patch("/{order_id}/status")
def admin_update_order_status(
    order_id: str, body: OrderStatusUpdate, background_tasks: BackgroundTasks
) -> Dict[str, Any]:
    """Changement de statut logistique; notifie l'automatisation si le statut change."""
    result = orders_service.update_order_status(order_id, body.status)
    if result.updated:
        background_tasks.add_task(dispatch_order_events, result)
    return {"success": True, "order": _order_summary(result)}
