"""
Taxonomie des erreurs métier de la boutique.

Chaque erreur porte son code HTTP et un code court; le handler enregistré
dans app_setup.exceptions les convertit en JSON {"detail", "code"}.
- ConfigError: identifiants manquants (fatal, jamais rejoué)
- GatewayUnavailable: réseau/non-2xx fournisseur (rejouable si `retryable`)
- ValidationError: corps de requête ou panier invalide
- DatabaseUnavailable: écriture impossible après un paiement réussi
- Unauthorized: secret de webhook invalide
"""
from typing import Any, Dict, Optional


class StoreError(Exception):
    status_code = 500
    code = "store_error"

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self, expose_details: bool = False) -> Dict[str, Any]:
        body: Dict[str, Any] = {"detail": self.message, "code": self.code}
        if expose_details and self.details:
            body["details"] = self.details
        return body


class ConfigError(StoreError):
    status_code = 500
    code = "config_error"


class GatewayUnavailable(StoreError):
    status_code = 502
    code = "gateway_unavailable"

    def __init__(
        self,
        message: str,
        *,
        provider: str,
        status: Optional[int] = None,
        body: Optional[str] = None,
    ):
        super().__init__(message, details={"provider": provider, "status": status, "body": body})
        self.provider = provider
        self.status = status
        self.body = body

    @property
    def retryable(self) -> bool:
        # Réseau/timeout (status None), 5xx et 429 uniquement
        return self.status is None or self.status >= 500 or self.status == 429


class ValidationError(StoreError):
    status_code = 400
    code = "validation_error"


class DatabaseUnavailable(StoreError):
    status_code = 503
    code = "database_unavailable"


class Unauthorized(StoreError):
    status_code = 401
    code = "unauthorized"


class NoSettingsLoaded(StoreError):
    status_code = 409
    code = "no_settings_loaded"


class NotFound(StoreError):
    status_code = 404
    code = "not_found"
