"""
Email de confirmation de commande via l'API HTTP de Resend (best-effort).
"""
import logging
from html import escape
from typing import Any, Dict, List

import httpx

import storefront.config as config

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"

def _order_summary_html(order: Dict[str, Any], items: List[Dict[str, Any]]) -> str:
    rows = "".join(
        f"<li>{escape(str(it.get('product_name') or ''))} x{it.get('quantity')} - "
        f"{escape(str(it.get('subtotal') or ''))}</li>"
        for it in items
    )
    return (
        f"<p>Hola {escape(str(order.get('customer_name') or ''))},</p>"
        f"<p>Gracias por tu compra. Pedido <strong>{escape(str(order.get('order_number') or ''))}</strong>.</p>"
        f"<ul>{rows}</ul>"
        f"<p>Total: {escape(str(order.get('total') or ''))} {escape(str(order.get('currency') or ''))}</p>"
    )

def send_order_confirmation(order: Dict[str, Any], items: List[Dict[str, Any]]) -> bool:
    """Retourne True si Resend a accepté l'email; False sinon (non configuré, pas d'email, erreur)."""
    to = order.get("customer_email")
    if not config.RESEND_API_KEY or not to:
        logger.info("mailer.send_order_confirmation skipped order=%s", order.get("order_number"))
        return False
    short_id = str(order.get("order_number") or order.get("id") or "")[:8]
    try:
        resp = httpx.post(
            RESEND_API_URL,
            json={
                "from": config.MAIL_FROM,
                "to": [to],
                "subject": f"Order Confirmation #{short_id}",
                "html": _order_summary_html(order, items),
            },
            headers={"Authorization": f"Bearer {config.RESEND_API_KEY}"},
            timeout=config.PROVIDER_TIMEOUT_SECONDS,
        )
        if 200 <= resp.status_code < 300:
            return True
        logger.error("mailer.send_order_confirmation failed status=%s body=%s", resp.status_code, resp.text)
        return False
    except Exception:
        logger.exception("mailer.send_order_confirmation failed order=%s", order.get("order_number"))
        return False
