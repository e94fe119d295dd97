# storefront.config
from pathlib import Path
from decimal import Decimal
import os
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=False)

"""
Configuration centrale de la boutique.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise et expose les secrets/URLs (Supabase, PayPal, MercadoPago, Resend)
- Paramètres métier du panier (TVA/IGV, minimums MercadoPago, devise)
- Webhooks: secret partagé, relais d'automatisation (n8n), CORS/hosts
Les modules consommateurs lisent `config.X` à l'appel (monkeypatch possible en tests).
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

def _flag(name: str, default: str = "false") -> bool:
    return _clean_env(os.getenv(name, default)).lower() in ("1", "true", "yes")

# Supabase: URLs et clés (public/anon/service)
SUPABASE_URL = _clean_env(os.getenv("SUPABASE_URL") or os.getenv("VITE_SUPABASE_URL") or "")
SUPABASE_ANON = _clean_env(os.getenv("SUPABASE_ANON_KEY") or os.getenv("SUPABASE_KEY") or "")
SUPABASE_SERVICE_KEY = _clean_env(os.getenv("SUPABASE_SERVICE_KEY") or os.getenv("SUPABASE_SERVICE_ROLE_KEY") or "")

if SUPABASE_URL and not SUPABASE_URL.startswith("http"):
    SUPABASE_URL = "https://" + SUPABASE_URL
if SUPABASE_URL.endswith("/"):
    SUPABASE_URL = SUPABASE_URL.rstrip("/")

# CORS / hosts
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
ALLOWED_HOSTS = [h.strip() for h in os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1").split(",") if h.strip()]
COOKIE_SECURE = _flag("COOKIE_SECURE")
FORCE_HTTPS = _flag("FORCE_HTTPS")

# URLs publiques: site (back_urls) et API (notification_url des webhooks)
BASE_URL = _clean_env(os.getenv("BASE_URL") or "http://localhost:5173").rstrip("/")
API_BASE_URL = _clean_env(os.getenv("API_BASE_URL") or "http://localhost:8000").rstrip("/")
CHECKOUT_SUCCESS_PATH = os.getenv("CHECKOUT_SUCCESS_PATH", "/checkout/success")
CHECKOUT_FAILURE_PATH = os.getenv("CHECKOUT_FAILURE_PATH", "/checkout/failure")
CHECKOUT_PENDING_PATH = os.getenv("CHECKOUT_PENDING_PATH", "/checkout/pending")
CHECKOUT_CANCEL_PATH = os.getenv("CHECKOUT_CANCEL_PATH", "/checkout")

# Boutique: devise, marque, préfixe des références externes
STORE_CURRENCY = _clean_env(os.getenv("STORE_CURRENCY") or "PEN")
STORE_BRAND = _clean_env(os.getenv("STORE_BRAND") or "LUNATIQUE")
REFERENCE_PREFIX = _clean_env(os.getenv("REFERENCE_PREFIX") or "LUINA")
SHIPPING_COUNTRY = _clean_env(os.getenv("SHIPPING_COUNTRY") or "PE")

# Règles panier (IGV 18% au Pérou) et minimums MercadoPago
TAX_RATE = Decimal(_clean_env(os.getenv("TAX_RATE") or "0.18"))
MIN_ORDER_TOTAL = Decimal(_clean_env(os.getenv("MIN_ORDER_TOTAL") or "15"))
MIN_PRODUCT_PRICE = Decimal(_clean_env(os.getenv("MIN_PRODUCT_PRICE") or "10"))
SHIPPING_SETTINGS_TTL_SECONDS = float(os.getenv("SHIPPING_SETTINGS_TTL_SECONDS", "300"))

# PayPal: identifiants OAuth et mode (production => api-m.paypal.com)
PAYPAL_CLIENT_ID = _clean_env(os.getenv("PAYPAL_CLIENT_ID") or "")
PAYPAL_CLIENT_SECRET = _clean_env(os.getenv("PAYPAL_CLIENT_SECRET") or "")
PAYPAL_MODE = _clean_env(os.getenv("PAYPAL_MODE") or "sandbox").lower()
PAYPAL_CURRENCY = _clean_env(os.getenv("PAYPAL_CURRENCY") or "USD")
# Taux de conversion STORE_CURRENCY -> PAYPAL_CURRENCY (PayPal n'accepte pas PEN)
PAYPAL_EXCHANGE_RATE = Decimal(_clean_env(os.getenv("PAYPAL_EXCHANGE_RATE") or "0.27"))

# MercadoPago: jeton d'accès long (TEST-... => sandbox)
MERCADOPAGO_ACCESS_TOKEN = _clean_env(os.getenv("MERCADOPAGO_ACCESS_TOKEN") or "")

# Appels sortants: délai et tentatives
PROVIDER_TIMEOUT_SECONDS = float(os.getenv("PROVIDER_TIMEOUT_SECONDS", "10"))
GATEWAY_RETRY_ATTEMPTS = int(os.getenv("GATEWAY_RETRY_ATTEMPTS", "3"))

# Webhooks entrants: secret partagé optionnel
WEBHOOK_SHARED_SECRET = _clean_env(os.getenv("WEBHOOK_SHARED_SECRET") or "")

# Relais d'automatisation (n8n): URLs par type d'évènement et secrets
AUTOMATION_WEBHOOK_URLS = {
    "order.created": _clean_env(os.getenv("N8N_WEBHOOK_ORDER_CREATED") or ""),
    "order.status_changed": _clean_env(os.getenv("N8N_WEBHOOK_ORDER_STATUS_CHANGED") or ""),
    "order.payment_updated": _clean_env(os.getenv("N8N_WEBHOOK_ORDER_PAYMENT_UPDATED") or ""),
}
AUTOMATION_RELAY_SECRET = _clean_env(os.getenv("AUTOMATION_RELAY_SECRET") or os.getenv("N8N_WEBHOOK_SECRET") or "")
AUTOMATION_SIGNING_SECRET = _clean_env(os.getenv("AUTOMATION_SIGNING_SECRET") or "")
AUTOMATION_SOURCE = _clean_env(os.getenv("AUTOMATION_SOURCE") or "lunatique-storefront")

# Emails transactionnels (Resend)
RESEND_API_KEY = _clean_env(os.getenv("RESEND_API_KEY") or "")
MAIL_FROM = os.getenv("MAIL_FROM", "Lunatiquê <orders@lunatique.com>")

# Administration: jeton statique pour les routes /api/v1/admin
ADMIN_API_TOKEN = _clean_env(os.getenv("ADMIN_API_TOKEN") or "")

# Diagnostic: expose le corps brut des erreurs fournisseurs dans les réponses JSON
EXPOSE_ERROR_DETAILS = _flag("EXPOSE_ERROR_DETAILS")
