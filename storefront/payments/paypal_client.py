"""
Adaptateur PayPal (REST v2): centralise l'authentification OAuth et les appels ordres.

Cycle par requête: pas de jeton -> jeton demandé -> jeton obtenu -> requête -> succès | erreur.
Le jeton est mis en cache jusqu'à son expiration (moins une marge) et invalidé sur 401.
"""
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

import storefront.config as config
from storefront.errors import ConfigError, GatewayUnavailable
from storefront.utils.retry import gateway_retry

logger = logging.getLogger(__name__)

LIVE_BASE_URL = "https://api-m.paypal.com"
SANDBOX_BASE_URL = "https://api-m.sandbox.paypal.com"
TOKEN_SAFETY_MARGIN_SECONDS = 60


@dataclass(frozen=True)
class PayPalCredentials:
    client_id: str
    client_secret: str
    mode: str = "sandbox"

    @property
    def base_url(self) -> str:
        return LIVE_BASE_URL if self.mode == "production" else SANDBOX_BASE_URL


def load_credentials() -> PayPalCredentials:
    """Lit la configuration PayPal; ConfigError (fatal) si un identifiant manque."""
    if not config.PAYPAL_CLIENT_ID or not config.PAYPAL_CLIENT_SECRET:
        raise ConfigError("PayPal credentials not configured (PAYPAL_CLIENT_ID / PAYPAL_CLIENT_SECRET)")
    return PayPalCredentials(config.PAYPAL_CLIENT_ID, config.PAYPAL_CLIENT_SECRET, config.PAYPAL_MODE)


class PayPalClient:
    def __init__(
        self,
        credentials: PayPalCredentials,
        http: Optional[httpx.Client] = None,
        timeout: Optional[float] = None,
        clock=time.monotonic,
    ):
        self.credentials = credentials
        self.timeout = config.PROVIDER_TIMEOUT_SECONDS if timeout is None else timeout
        self._http = http or httpx.Client(base_url=credentials.base_url, timeout=self.timeout)
        self._clock = clock
        self._token: Optional[str] = None
        self._token_expires_at = 0.0

    def _url(self, path: str) -> str:
        return f"{self.credentials.base_url}{path}"

    # --- jeton OAuth ---

    def invalidate_token(self) -> None:
        self._token = None
        self._token_expires_at = 0.0

    # Pas de retry ici: _send est déjà rejoué par gateway_retry
    def _fetch_token(self) -> Dict[str, Any]:
        try:
            resp = self._http.post(
                self._url("/v1/oauth2/token"),
                auth=(self.credentials.client_id, self.credentials.client_secret),
                data={"grant_type": "client_credentials"},
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            logger.warning("paypal.token network error: %s", e)
            raise GatewayUnavailable(f"PayPal injoignable: {e}", provider="paypal") from e
        if not 200 <= resp.status_code < 300:
            logger.error("paypal.token failed status=%s body=%s", resp.status_code, resp.text)
            raise GatewayUnavailable(
                "Échec d'authentification PayPal", provider="paypal", status=resp.status_code, body=resp.text
            )
        return resp.json()

    def access_token(self) -> str:
        if self._token and self._clock() < self._token_expires_at:
            return self._token
        data = self._fetch_token()
        token = data.get("access_token")
        if not token:
            raise GatewayUnavailable("Réponse OAuth PayPal sans access_token", provider="paypal", body=str(data))
        expires_in = int(data.get("expires_in") or 0)
        self._token = token
        self._token_expires_at = self._clock() + max(0, expires_in - TOKEN_SAFETY_MARGIN_SECONDS)
        return token

    # --- requêtes authentifiées ---

    @gateway_retry()
    def _send(self, method: str, path: str, *, json: Optional[Dict[str, Any]] = None,
              headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        for attempt in (1, 2):
            request_headers = {
                "Authorization": f"Bearer {self.access_token()}",
                "Content-Type": "application/json",
                **(headers or {}),
            }
            try:
                resp = self._http.request(method, self._url(path), json=json, headers=request_headers,
                                          timeout=self.timeout)
            except httpx.HTTPError as e:
                logger.warning("paypal %s %s network error: %s", method, path, e)
                raise GatewayUnavailable(f"PayPal injoignable: {e}", provider="paypal") from e
            # Jeton révoqué/expiré côté PayPal: un seul renouvellement
            if resp.status_code == 401 and attempt == 1:
                self.invalidate_token()
                continue
            if not 200 <= resp.status_code < 300:
                logger.error("paypal %s %s failed status=%s body=%s", method, path, resp.status_code, resp.text)
                raise GatewayUnavailable(
                    f"PayPal a répondu {resp.status_code}", provider="paypal", status=resp.status_code, body=resp.text
                )
            return resp.json() if resp.content else {}
        raise GatewayUnavailable("PayPal: jeton refusé", provider="paypal", status=401)

    # --- opérations ---

    def create_order(self, payload: Dict[str, Any], request_id: Optional[str] = None) -> Dict[str, Any]:
        """
        POST /v2/checkout/orders.
        Retour: {provider_id, status, redirect_urls: {approve}, raw}
        """
        raw = self._send(
            "POST", "/v2/checkout/orders", json=payload,
            headers={"PayPal-Request-Id": request_id or str(uuid.uuid4())},
        )
        links = {link.get("rel"): link.get("href") for link in raw.get("links") or []}
        approve = links.get("approve") or links.get("payer-action")
        logger.info("paypal.create_order id=%s status=%s", raw.get("id"), raw.get("status"))
        return {
            "provider_id": raw.get("id"),
            "status": raw.get("status"),
            "redirect_urls": {"approve": approve},
            "raw": raw,
        }

    def capture_order(self, order_id: str, request_id: Optional[str] = None) -> Dict[str, Any]:
        """
        POST /v2/checkout/orders/{id}/capture (representation complète demandée).
        Retour: {status, payer_id, capture_id, raw}; tout non-2xx -> GatewayUnavailable avec le corps brut.
        """
        raw = self._send(
            "POST", f"/v2/checkout/orders/{order_id}/capture", json={},
            headers={
                "PayPal-Request-Id": request_id or f"capture-{order_id}",
                "Prefer": "return=representation",
            },
        )
        captures = []
        for unit in raw.get("purchase_units") or []:
            captures.extend(((unit.get("payments") or {}).get("captures")) or [])
        capture = captures[0] if captures else {}
        logger.info("paypal.capture_order id=%s status=%s capture_id=%s", order_id, raw.get("status"), capture.get("id"))
        return {
            "status": raw.get("status"),
            "payer_id": (raw.get("payer") or {}).get("payer_id"),
            "capture_id": capture.get("id"),
            "raw": raw,
        }

    def get_order(self, order_id: str) -> Dict[str, Any]:
        return self._send("GET", f"/v2/checkout/orders/{order_id}")


_client: Optional[PayPalClient] = None

def get_paypal_client() -> PayPalClient:
    """
    Client PayPal partagé (cache du jeton entre requêtes).
    Les identifiants sont validés avant tout appel réseau (ConfigError).
    """
    global _client
    credentials = load_credentials()
    if _client is None or _client.credentials != credentials:
        _client = PayPalClient(credentials)
    return _client
