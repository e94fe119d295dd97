import json
import logging
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

import storefront.config as config
from storefront.errors import ValidationError
from storefront.notifications.dispatch import dispatch_order_events
from storefront.utils.security import verify_shared_secret
from . import service as webhooks_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/webhooks", tags=["Webhooks"])

async def _json_body(request: Request, allow_empty: bool = False) -> Any:
    raw = await request.body()
    if not raw:
        if allow_empty:
            return None
        raise ValidationError("Corps JSON requis")
    try:
        return json.loads(raw)
    except ValueError as e:
        raise ValidationError("JSON invalide") from e

@router.post("/paypal", include_in_schema=False)
async def webhook_paypal(request: Request, background_tasks: BackgroundTasks):
    """
    Webhook PayPal: CHECKOUT.ORDER.APPROVED et PAYMENT.CAPTURE.COMPLETED.
    - Secret partagé optionnel (X-Webhook-Secret / Bearer), 401 sinon
    - Autres évènements: 200 {"status": "ignored"} pour éviter les rejeux
    - Effets de bord (automatisation, email) après la réponse
    - Service synchrone (Supabase, PayPal) exécuté dans le threadpool
    """
    verify_shared_secret(request, config.WEBHOOK_SHARED_SECRET)
    payload = await _json_body(request)
    body, result = await run_in_threadpool(webhooks_service.handle_paypal_event, payload)
    if result is not None:
        background_tasks.add_task(dispatch_order_events, result)
    return JSONResponse(body)

@router.post("/mercadopago", include_in_schema=False)
async def webhook_mercadopago(request: Request, background_tasks: BackgroundTasks):
    """
    Notification MercadoPago (type=payment): lecture du paiement puis réconciliation.
    - Seuls les paiements 'approved' créent une commande
    - Types non gérés: 200 {"received": true, "type": ...}
    """
    verify_shared_secret(request, config.WEBHOOK_SHARED_SECRET)
    payload = await _json_body(request, allow_empty=True)
    body, result = await run_in_threadpool(
        webhooks_service.handle_mercadopago_event, payload, dict(request.query_params)
    )
    if result is not None:
        background_tasks.add_task(dispatch_order_events, result)
    return JSONResponse(body)

@router.post("/automation", include_in_schema=False)
async def webhook_automation_relay(request: Request):
    """
    Relais des changements de la table orders (déclencheur base de données) vers n8n.
    Authentification: Authorization: Bearer <AUTOMATION_RELAY_SECRET> si configuré.
    """
    verify_shared_secret(request, config.AUTOMATION_RELAY_SECRET, header="X-Relay-Secret")
    payload = await _json_body(request)
    return JSONResponse(await run_in_threadpool(webhooks_service.relay_database_event, payload))
