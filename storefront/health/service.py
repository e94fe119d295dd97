import logging
from typing import Any, Dict

import storefront.config as config
import storefront.infra.supabase_client as supabase_client

logger = logging.getLogger(__name__)

def health_supabase_info() -> Dict[str, Any]:
    """
    Sonde Supabase: lecture d'une ligne de shipping_settings.
    Ne lève jamais; renvoie {ok, configured, error?}.
    """
    info: Dict[str, Any] = {"ok": False, "configured": bool(config.SUPABASE_URL and config.SUPABASE_ANON)}
    if not info["configured"]:
        info["error"] = "SUPABASE_URL / SUPABASE_ANON manquants"
        return info
    try:
        supabase_client.get_supabase().table("shipping_settings").select("id").limit(1).execute()
        info["ok"] = True
    except Exception as e:
        logger.warning("health.supabase probe failed: %s", e)
        info["error"] = str(e)
    return info

def health_providers_info() -> Dict[str, Any]:
    """Présence des identifiants fournisseurs (aucun appel réseau)."""
    token = config.MERCADOPAGO_ACCESS_TOKEN or ""
    return {
        "paypal": {
            "configured": bool(config.PAYPAL_CLIENT_ID and config.PAYPAL_CLIENT_SECRET),
            "mode": config.PAYPAL_MODE,
        },
        "mercadopago": {
            "configured": bool(token),
            "mode": "sandbox" if token.startswith("TEST-") else "production",
        },
        "email": {"configured": bool(config.RESEND_API_KEY)},
        "automation": {
            "configured": [k for k, v in config.AUTOMATION_WEBHOOK_URLS.items() if v],
        },
    }
