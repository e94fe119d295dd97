from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class ShippingSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    free_shipping_threshold: Decimal = Field(ge=0)
    standard_shipping_cost: Decimal = Field(ge=0)
    currency: str = "PEN"
    is_active: bool = True

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_str(cls, v):
        return None if v is None else str(v)


class ShippingSettingsUpdate(BaseModel):
    free_shipping_threshold: Optional[Decimal] = Field(default=None, ge=0)
    standard_shipping_cost: Optional[Decimal] = Field(default=None, ge=0)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)


class ShippingResolution(BaseModel):
    """Résultat d'une résolution: réglages effectifs + erreur éventuelle (jamais levée)."""
    model_config = ConfigDict(frozen=True)

    settings: ShippingSettings
    from_fallback: bool = False
    error: Optional[str] = None


# Valeur de repli documentée, injectée dans le resolver (seuil 50, coût 9.99 PEN)
DEFAULT_SHIPPING_SETTINGS = ShippingSettings(
    id=None,
    free_shipping_threshold=Decimal("50.00"),
    standard_shipping_cost=Decimal("9.99"),
    currency="PEN",
    is_active=True,
)
