"""
Cas d'usage 'shipping': résolution des réglages de livraison avec repli et cache.
"""
import logging
import time
from decimal import Decimal
from typing import Any, Callable, Dict, Optional

import storefront.config as config
from storefront.errors import NoSettingsLoaded, ValidationError
from storefront.utils.money import ZERO, quantize, to_decimal
from . import repository
from .models import DEFAULT_SHIPPING_SETTINGS, ShippingResolution, ShippingSettings, ShippingSettingsUpdate

logger = logging.getLogger(__name__)


def is_free_shipping(settings: ShippingSettings, subtotal) -> bool:
    return to_decimal(subtotal) >= settings.free_shipping_threshold

def amount_needed_for_free_shipping(settings: ShippingSettings, subtotal) -> Decimal:
    return max(ZERO, quantize(settings.free_shipping_threshold - to_decimal(subtotal)))


class ShippingSettingsResolver:
    """
    Charge la ligne active de shipping_settings.
    - Échec de lecture: renvoie `fallback` avec l'erreur (jamais d'exception)
    - Cache de `ttl_seconds` (0 = pas de cache) et invalidate()
    - update() exige un id chargé, sinon NoSettingsLoaded
    """

    def __init__(
        self,
        fallback: ShippingSettings = DEFAULT_SHIPPING_SETTINGS,
        ttl_seconds: Optional[float] = None,
        loader: Optional[Callable[[], Optional[Dict[str, Any]]]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.fallback = fallback
        self.ttl_seconds = config.SHIPPING_SETTINGS_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self._loader = loader or repository.fetch_active_settings
        self._clock = clock
        self._cached: Optional[ShippingResolution] = None
        self._cached_at = 0.0
        self._last: Optional[ShippingResolution] = None

    def invalidate(self) -> None:
        self._cached = None
        self._cached_at = 0.0

    def _is_fresh(self) -> bool:
        return self._cached is not None and (self._clock() - self._cached_at) < self.ttl_seconds

    def resolve(self) -> ShippingResolution:
        if self._is_fresh():
            return self._cached
        try:
            row = self._loader()
            if not row:
                resolution = ShippingResolution(
                    settings=self.fallback, from_fallback=True, error="Aucun réglage de livraison actif"
                )
            else:
                resolution = ShippingResolution(settings=ShippingSettings.model_validate(row))
        except Exception as e:
            logger.warning("shipping.resolve fallback to defaults: %s", e)
            resolution = ShippingResolution(settings=self.fallback, from_fallback=True, error=str(e))
        # Le repli n'est pas mis en cache: la prochaine lecture retente la base
        if not resolution.from_fallback:
            self._cached = resolution
            self._cached_at = self._clock()
        else:
            self._cached = None
        self._last = resolution
        return resolution

    @property
    def current(self) -> ShippingSettings:
        return self.resolve().settings

    def loaded_settings_id(self) -> Optional[str]:
        last = self._last
        if last is None or last.from_fallback:
            return None
        return last.settings.id

    def update(self, changes: ShippingSettingsUpdate) -> ShippingSettings:
        settings_id = self.loaded_settings_id()
        if not settings_id:
            raise NoSettingsLoaded("Aucun réglage de livraison chargé: mise à jour impossible")
        data = changes.model_dump(exclude_none=True)
        if not data:
            raise ValidationError("Aucun champ à mettre à jour")
        for key in ("free_shipping_threshold", "standard_shipping_cost"):
            if key in data:
                data[key] = float(quantize(data[key]))
        row = repository.update_settings(settings_id, data)
        self.invalidate()
        if not row:
            raise NoSettingsLoaded(f"Réglage de livraison introuvable: {settings_id}")
        updated = ShippingSettings.model_validate(row)
        logger.info("shipping.update id=%s fields=%s", settings_id, sorted(data))
        return updated


_resolver: Optional[ShippingSettingsResolver] = None

def get_shipping_resolver() -> ShippingSettingsResolver:
    global _resolver
    if _resolver is None:
        _resolver = ShippingSettingsResolver(fallback=DEFAULT_SHIPPING_SETTINGS)
    return _resolver
