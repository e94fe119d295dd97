"""
Relais vers la plateforme d'automatisation (n8n): un URL par type d'évènement.

- Signature HMAC-SHA256 du corps dans X-Webhook-Signature (si secret configuré)
- 3 tentatives avec backoff exponentiel, délai 10 s
- Jamais d'exception vers l'appelant: un échec est seulement journalisé
"""
import hashlib
import hmac
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

import storefront.config as config
from storefront.utils.retry import automation_retry

logger = logging.getLogger(__name__)

def sign(body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()

def build_order_event(
    webhook_type: str,
    order: Dict[str, Any],
    order_items: Optional[List[Dict[str, Any]]] = None,
    *,
    event: str = "UPDATE",
    status_change: Optional[Dict[str, Any]] = None,
    payment_change: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "event": event,
        "table": "orders",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "webhook_type": webhook_type,
        "data": order,
        "order_items": order_items or [],
    }
    if status_change:
        payload["status_change"] = status_change
    if payment_change:
        payload["payment_change"] = payment_change
    return payload

@automation_retry()
def _deliver(url: str, body: bytes, headers: Dict[str, str]) -> int:
    resp = httpx.post(url, content=body, headers=headers, timeout=config.PROVIDER_TIMEOUT_SECONDS)
    resp.raise_for_status()
    return resp.status_code

def forward(webhook_type: str, payload: Dict[str, Any]) -> bool:
    """
    Envoie payload à l'URL configurée pour webhook_type.
    Retour: True si livré, False si non configuré ou en échec (journalisé).
    """
    url = config.AUTOMATION_WEBHOOK_URLS.get(webhook_type) or ""
    if not url:
        logger.debug("automation.forward skipped type=%s (no url)", webhook_type)
        return False
    body = json.dumps(payload, default=str).encode("utf-8")
    headers = {
        "Content-Type": "application/json",
        "X-Webhook-Source": config.AUTOMATION_SOURCE,
        "X-Webhook-Event": webhook_type,
    }
    if config.AUTOMATION_SIGNING_SECRET:
        headers["X-Webhook-Signature"] = sign(body, config.AUTOMATION_SIGNING_SECRET)
    try:
        status = _deliver(url, body, headers)
    except httpx.HTTPError as e:
        logger.error("automation.forward failed type=%s url=%s error=%s", webhook_type, url, e)
        return False
    logger.info("automation.forward ok type=%s status=%s", webhook_type, status)
    return True
