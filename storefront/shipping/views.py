import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends

from storefront.utils.money import format_amount
from storefront.utils.security import require_admin_token
from .models import ShippingResolution, ShippingSettings, ShippingSettingsUpdate
from . import service as shipping_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/shipping", tags=["Shipping API"])
admin_router = APIRouter(prefix="/api/v1/admin/shipping-settings", tags=["Admin"])

def settings_to_wire(settings: ShippingSettings) -> Dict[str, Any]:
    return {
        "id": settings.id,
        "free_shipping_threshold": format_amount(settings.free_shipping_threshold),
        "standard_shipping_cost": format_amount(settings.standard_shipping_cost),
        "currency": settings.currency,
        "is_active": settings.is_active,
    }

def resolution_to_wire(resolution: ShippingResolution) -> Dict[str, Any]:
    return {
        "settings": settings_to_wire(resolution.settings),
        "from_fallback": resolution.from_fallback,
        "error": resolution.error,
    }

@router.get("/settings")
def get_shipping_settings() -> Dict[str, Any]:
    """
    Réglages de livraison actifs.
    - Toujours 200: en cas d'échec de lecture, renvoie les valeurs par défaut
      avec from_fallback=true et le message d'erreur.
    """
    return resolution_to_wire(shipping_service.get_shipping_resolver().resolve())

@admin_router.put("", dependencies=[Depends(require_admin_token)])
def update_shipping_settings(changes: ShippingSettingsUpdate) -> Dict[str, Any]:
    """
    Met à jour la ligne active (seuil de gratuité, coût standard, devise).
    - 409 no_settings_loaded si aucune ligne n'a pu être chargée
    """
    resolver = shipping_service.get_shipping_resolver()
    resolver.resolve()
    updated = resolver.update(changes)
    return {"settings": settings_to_wire(updated)}
