"""
Module 'payments' (feature-first): point d'entrée public.
Réunit builders de requêtes fournisseurs, clients PayPal/MercadoPago et services.
"""

from .builders import new_external_reference, build_mercadopago_preference, build_paypal_order
from .paypal_client import PayPalClient, PayPalCredentials, load_credentials, get_paypal_client
from .mercadopago_client import create_preference, get_payment, summarize_payment
from .service import (
    checkout_totals,
    create_paypal_order,
    capture_paypal_order,
    create_mercadopago_preference,
    get_mercadopago_payment,
)

__all__ = [
    # builders
    "new_external_reference",
    "build_mercadopago_preference",
    "build_paypal_order",
    # paypal
    "PayPalClient",
    "PayPalCredentials",
    "load_credentials",
    "get_paypal_client",
    # mercadopago
    "create_preference",
    "get_payment",
    "summarize_payment",
    # services
    "checkout_totals",
    "create_paypal_order",
    "capture_paypal_order",
    "create_mercadopago_preference",
    "get_mercadopago_payment",
]
