import secrets
from typing import Optional
from fastapi import Request

import storefront.config as config
from storefront.errors import ConfigError, Unauthorized

def _presented_secret(request: Request, header: str = "X-Webhook-Secret") -> str:
    # En-tête dédié en priorité, sinon Authorization: Bearer <secret>
    value = request.headers.get(header, "")
    if value:
        return value.strip()
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip()
    return ""

def verify_shared_secret(request: Request, expected: Optional[str], header: str = "X-Webhook-Secret") -> None:
    """
    Vérifie le secret partagé d'un webhook.
    - expected vide => pas de vérification (secret optionnel)
    - comparaison à temps constant; Unauthorized si absent ou différent
    """
    if not expected:
        return
    presented = _presented_secret(request, header)
    if not presented or not secrets.compare_digest(presented, expected):
        raise Unauthorized("Secret de webhook invalide")

def require_admin_token(request: Request) -> str:
    """Dépendance FastAPI des routes /api/v1/admin (en-tête X-Admin-Token)."""
    expected = config.ADMIN_API_TOKEN
    if not expected:
        raise ConfigError("ADMIN_API_TOKEN non configuré")
    presented = _presented_secret(request, "X-Admin-Token")
    if not presented or not secrets.compare_digest(presented, expected):
        raise Unauthorized("Jeton administrateur invalide")
    return presented
