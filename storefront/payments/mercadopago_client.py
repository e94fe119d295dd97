"""
Adaptateur MercadoPago: centralise le SDK officiel (préférences, paiements).
Jeton d'accès statique long; un jeton TEST-... désigne le mode sandbox.
"""
import logging
from typing import Any, Dict, Optional

import mercadopago
from mercadopago.config import RequestOptions

import storefront.config as config
from storefront.errors import ConfigError, GatewayUnavailable
from storefront.utils.money import format_amount
from storefront.utils.retry import gateway_retry

logger = logging.getLogger(__name__)

# Messages lisibles par statut HTTP MercadoPago
_STATUS_MESSAGES = {
    400: "Datos inválidos enviados a MercadoPago",
    401: "Token de acceso de MercadoPago inválido",
    403: "Acceso denegado por MercadoPago",
    404: "Recurso no encontrado en MercadoPago",
    429: "Demasiadas solicitudes a MercadoPago",
}

def require_access_token() -> str:
    if not config.MERCADOPAGO_ACCESS_TOKEN:
        raise ConfigError("MERCADOPAGO_ACCESS_TOKEN not configured")
    return config.MERCADOPAGO_ACCESS_TOKEN

def mode() -> str:
    return "sandbox" if require_access_token().startswith("TEST-") else "production"

def require_sdk() -> "mercadopago.SDK":
    """Prépare le SDK; ConfigError avant tout appel réseau si le jeton manque."""
    return mercadopago.SDK(require_access_token())

def _request_options(idempotency_key: Optional[str] = None) -> RequestOptions:
    # Retries du SDK coupés: tenacity rejoue déjà les appels
    headers = {"x-idempotency-key": idempotency_key} if idempotency_key else None
    return RequestOptions(connection_timeout=config.PROVIDER_TIMEOUT_SECONDS, custom_headers=headers,
                          max_retries=0)

def _unwrap(result: Any, action: str) -> Dict[str, Any]:
    """Le SDK renvoie {"status": int, "response": dict}; tout non-2xx devient GatewayUnavailable."""
    status = (result or {}).get("status")
    response = (result or {}).get("response") or {}
    if not isinstance(status, int) or not 200 <= status < 300:
        message = _STATUS_MESSAGES.get(status, "Error del servidor de MercadoPago")
        logger.error("mercadopago.%s failed status=%s body=%s", action, status, response)
        raise GatewayUnavailable(message, provider="mercadopago", status=status, body=str(response))
    return response

@gateway_retry()
def _call(action: str, fn, *args) -> Dict[str, Any]:
    try:
        result = fn(*args)
    except GatewayUnavailable:
        raise
    except Exception as e:
        # Erreurs réseau du transport du SDK (timeouts, connexions)
        logger.warning("mercadopago.%s network error: %s", action, e)
        raise GatewayUnavailable(f"MercadoPago injoignable: {e}", provider="mercadopago") from e
    return _unwrap(result, action)

def create_preference(payload: Dict[str, Any], idempotency_key: Optional[str] = None) -> Dict[str, Any]:
    """
    Crée une préférence de paiement.
    Retour: {id, init_point, sandbox_init_point, checkout_url, external_reference, mode}
    """
    sdk = require_sdk()
    current_mode = mode()
    options = _request_options(idempotency_key or payload.get("external_reference"))
    response = _call("create_preference", sdk.preference().create, payload, options)
    checkout_url = (
        response.get("sandbox_init_point") if current_mode == "sandbox" else response.get("init_point")
    ) or response.get("init_point") or response.get("sandbox_init_point")
    logger.info("mercadopago.create_preference id=%s reference=%s mode=%s",
                response.get("id"), response.get("external_reference"), current_mode)
    return {
        "id": response.get("id"),
        "init_point": response.get("init_point"),
        "sandbox_init_point": response.get("sandbox_init_point"),
        "checkout_url": checkout_url,
        "external_reference": response.get("external_reference") or payload.get("external_reference"),
        "mode": current_mode,
    }

def get_payment(payment_id: str) -> Dict[str, Any]:
    """Récupère un paiement (corps brut MercadoPago)."""
    sdk = require_sdk()
    return _call("get_payment", sdk.payment().get, str(payment_id), _request_options())

def summarize_payment(payment: Dict[str, Any]) -> Dict[str, Any]:
    payer = payment.get("payer") or {}
    return {
        "id": str(payment.get("id") or ""),
        "status": payment.get("status"),
        "status_detail": payment.get("status_detail"),
        "transaction_amount": format_amount(payment.get("transaction_amount")),
        "currency_id": payment.get("currency_id"),
        "external_reference": payment.get("external_reference"),
        "payer_email": payer.get("email"),
        "date_approved": payment.get("date_approved"),
        "payment_method_id": payment.get("payment_method_id"),
    }
