"""
Évènements entrants modélisés en variantes typées (pydantic) par fournisseur:
- PayPal: PayPalOrderApproved, PayPalCaptureCompleted
- MercadoPago: MercadoPagoPaymentNotification
- Relais base de données: AutomationRelayEvent
- Tout le reste reconnu mais non actionnable: IgnoredEvent
Un corps qui ne respecte pas l'enveloppe lève errors.ValidationError.
"""
from typing import Any, Dict, Literal, Mapping, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError, field_validator

from storefront.errors import ValidationError

PAYPAL_ORDER_APPROVED = "CHECKOUT.ORDER.APPROVED"
PAYPAL_CAPTURE_COMPLETED = "PAYMENT.CAPTURE.COMPLETED"


class _Envelope(BaseModel):
    model_config = ConfigDict(extra="allow")


class PayPalWebhookEnvelope(_Envelope):
    id: Optional[str] = None
    event_type: str = Field(min_length=1)
    resource_type: Optional[str] = None
    resource: Dict[str, Any] = Field(default_factory=dict)


class PayPalOrderApproved(BaseModel):
    kind: Literal["paypal.order_approved"] = "paypal.order_approved"
    event_id: Optional[str] = None
    order_id: str
    resource: Dict[str, Any]


class PayPalCaptureCompleted(BaseModel):
    kind: Literal["paypal.capture_completed"] = "paypal.capture_completed"
    event_id: Optional[str] = None
    capture_id: str
    order_id: str
    resource: Dict[str, Any]


class MercadoPagoPaymentNotification(BaseModel):
    kind: Literal["mercadopago.payment"] = "mercadopago.payment"
    payment_id: str
    action: Optional[str] = None


class IgnoredEvent(BaseModel):
    kind: Literal["ignored"] = "ignored"
    provider: str
    event_type: Optional[str] = None


class AutomationRelayEvent(_Envelope):
    type: Literal["INSERT", "UPDATE", "DELETE"]
    table: str
    schema_name: Optional[str] = Field(default=None, alias="schema")
    record: Optional[Dict[str, Any]] = None
    old_record: Optional[Dict[str, Any]] = None

    @field_validator("type", mode="before")
    @classmethod
    def _upper(cls, v):
        return str(v or "").upper()


PayPalEvent = Union[PayPalOrderApproved, PayPalCaptureCompleted, IgnoredEvent]
MercadoPagoEvent = Union[MercadoPagoPaymentNotification, IgnoredEvent]


def _invalid(provider: str, e: PydanticValidationError) -> ValidationError:
    return ValidationError(f"Payload {provider} invalide", details={"errors": e.errors(include_url=False)})

def parse_paypal_event(payload: Any) -> PayPalEvent:
    try:
        envelope = PayPalWebhookEnvelope.model_validate(payload)
    except PydanticValidationError as e:
        raise _invalid("PayPal", e) from e
    resource = envelope.resource
    resource_id = str(resource.get("id") or "")
    if envelope.event_type == PAYPAL_ORDER_APPROVED and resource_id:
        return PayPalOrderApproved(event_id=envelope.id, order_id=resource_id, resource=resource)
    if envelope.event_type == PAYPAL_CAPTURE_COMPLETED and resource_id:
        related = ((resource.get("supplementary_data") or {}).get("related_ids")) or {}
        return PayPalCaptureCompleted(
            event_id=envelope.id,
            capture_id=resource_id,
            # Déduplication sur l'id d'ordre PayPal, comme la capture synchrone
            order_id=str(related.get("order_id") or resource_id),
            resource=resource,
        )
    return IgnoredEvent(provider="paypal", event_type=envelope.event_type)

def parse_mercadopago_event(payload: Any, query: Optional[Mapping[str, str]] = None) -> MercadoPagoEvent:
    """
    Accepte le format webhook ({type, action, data: {id}}) et l'ancien IPN
    (?topic=payment&id=... ou ?type=payment&data.id=...).
    """
    query = query or {}
    body = payload if isinstance(payload, dict) else {}
    if payload is not None and not isinstance(payload, dict):
        raise ValidationError("Payload MercadoPago invalide")
    event_type = body.get("type") or body.get("topic") or query.get("type") or query.get("topic")
    data = body.get("data") if isinstance(body.get("data"), dict) else {}
    payment_id = data.get("id") or query.get("data.id") or query.get("id")
    if not event_type:
        raise ValidationError("Payload MercadoPago sans type")
    if event_type != "payment" or not payment_id:
        return IgnoredEvent(provider="mercadopago", event_type=event_type)
    return MercadoPagoPaymentNotification(payment_id=str(payment_id), action=body.get("action"))

def parse_relay_event(payload: Any) -> AutomationRelayEvent:
    try:
        return AutomationRelayEvent.model_validate(payload)
    except PydanticValidationError as e:
        raise _invalid("relais", e) from e
