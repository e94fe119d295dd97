"""
Accès aux données pour la feature 'orders' (tables orders / order_items).

Écritures via service-role (webhooks, capture). L'insertion commande + lignes
passe par la fonction SQL upsert_order_with_items (une transaction, ON CONFLICT
sur (payment_method, payment_id)): voir sql/schema.sql.
"""
from typing import Any, Dict, List, Optional, Tuple
import logging
import storefront.infra.supabase_client as supabase_client
from storefront.errors import DatabaseUnavailable

logger = logging.getLogger(__name__)

ORDERS = "orders"
ORDER_ITEMS = "order_items"
UPSERT_RPC = "upsert_order_with_items"

# module storefront.orders.repository
def find_order_by_payment(payment_method: str, payment_id: str) -> Optional[Dict[str, Any]]:
    """
    Cherche la commande associée à (payment_method, payment_id).
    Lève DatabaseUnavailable: une lecture ratée ne doit pas passer pour une absence.
    """
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(ORDERS)
            .select("*")
            .eq("payment_method", payment_method)
            .eq("payment_id", str(payment_id))
            .limit(1)
            .execute()
        )
        rows = res.data or []
        return rows[0] if rows else None
    except Exception as e:
        logger.exception("orders.repository.find_order_by_payment failed method=%s payment_id=%s", payment_method, payment_id)
        raise DatabaseUnavailable("Lecture des commandes impossible") from e

def upsert_order_with_items(order_row: Dict[str, Any], item_rows: List[Dict[str, Any]]) -> Tuple[Dict[str, Any], bool]:
    """
    Insère la commande et ses lignes dans une seule transaction.
    Retour: (commande, created); created=False si une commande existait déjà
    pour le même paiement (course capture/webhook).
    """
    try:
        res = (
            supabase_client.get_service_supabase()
            .rpc(UPSERT_RPC, {"p_order": order_row, "p_items": item_rows})
            .execute()
        )
        data = res.data or {}
        if isinstance(data, list):
            data = data[0] if data else {}
        order = data.get("order") or {}
        if not order:
            raise RuntimeError(f"{UPSERT_RPC} returned no order: {data!r}")
        return order, bool(data.get("created"))
    except Exception as e:
        logger.exception(
            "orders.repository.upsert_order_with_items failed method=%s payment_id=%s",
            order_row.get("payment_method"), order_row.get("payment_id"),
        )
        raise DatabaseUnavailable("Enregistrement de la commande impossible") from e

def update_order(order_id: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(ORDERS)
            .update(changes)
            .eq("id", order_id)
            .execute()
        )
        rows = res.data or []
        return rows[0] if rows else None
    except Exception as e:
        logger.exception("orders.repository.update_order failed id=%s", order_id)
        raise DatabaseUnavailable("Mise à jour de la commande impossible") from e

def get_order(order_id: str) -> Optional[Dict[str, Any]]:
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(ORDERS)
            .select("*")
            .eq("id", order_id)
            .limit(1)
            .execute()
        )
        rows = res.data or []
        return rows[0] if rows else None
    except Exception as e:
        logger.exception("orders.repository.get_order failed id=%s", order_id)
        raise DatabaseUnavailable("Lecture de la commande impossible") from e

def list_orders(limit: int = 100, status: Optional[str] = None) -> List[Dict[str, Any]]:
    """Liste admin (plus récentes d'abord); [] en cas d'erreur."""
    try:
        query = supabase_client.get_service_supabase().table(ORDERS).select("*")
        if status:
            query = query.eq("status", status)
        res = query.order("created_at", desc=True).limit(limit).execute()
        return res.data or []
    except Exception:
        logger.exception("orders.repository.list_orders failed limit=%s status=%s", limit, status)
        return []

def get_order_items(order_id: str) -> List[Dict[str, Any]]:
    """Lignes d'une commande; [] en cas d'erreur (enrichissement best-effort)."""
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(ORDER_ITEMS)
            .select("*")
            .eq("order_id", order_id)
            .execute()
        )
        return res.data or []
    except Exception:
        logger.exception("orders.repository.get_order_items failed order_id=%s", order_id)
        return []
