from typing import Optional
from supabase import create_client, Client
import storefront.config as config
from storefront.errors import ConfigError

_supabase: Optional[Client] = None
_service_supabase: Optional[Client] = None

def get_supabase() -> Client:
    """Client 'anon' (RLS actif): lectures publiques comme shipping_settings."""
    global _supabase
    if not config.SUPABASE_URL or not config.SUPABASE_ANON:
        raise ConfigError("SUPABASE_URL/SUPABASE_ANON_KEY manquants pour get_supabase()")
    if _supabase is None:
        _supabase = create_client(config.SUPABASE_URL, config.SUPABASE_ANON)
    return _supabase

def get_service_supabase() -> Client:
    """Client service-role (bypass RLS): écritures de commandes depuis webhooks/capture."""
    global _service_supabase
    if not config.SUPABASE_URL or not config.SUPABASE_SERVICE_KEY:
        raise ConfigError("SUPABASE_SERVICE_KEY manquant pour get_service_supabase()")
    if _service_supabase is None:
        _service_supabase = create_client(config.SUPABASE_URL, config.SUPABASE_SERVICE_KEY)
    return _service_supabase
