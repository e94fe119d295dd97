"""
Accès aux données pour la feature 'shipping' (table shipping_settings).
"""
from typing import Any, Dict, Optional
import logging
import storefront.infra.supabase_client as supabase_client
from storefront.errors import DatabaseUnavailable

logger = logging.getLogger(__name__)

TABLE = "shipping_settings"

def fetch_active_settings() -> Optional[Dict[str, Any]]:
    """
    Lit l'unique ligne active (is_active = true).
    Les erreurs remontent à l'appelant: le resolver décide du repli.
    """
    res = (
        supabase_client.get_supabase()
        .table(TABLE)
        .select("*")
        .eq("is_active", True)
        .limit(1)
        .execute()
    )
    rows = res.data or []
    return rows[0] if rows else None

def update_settings(settings_id: str, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(TABLE)
            .update(data)
            .eq("id", settings_id)
            .execute()
        )
        rows = res.data or []
        return rows[0] if rows else None
    except Exception as e:
        logger.exception("shipping.repository.update_settings failed id=%s", settings_id)
        raise DatabaseUnavailable("Mise à jour des frais de port impossible") from e
