import os

# Avant tout import de l'app: pas de Redis en tests, hôte TestClient autorisé
os.environ.setdefault("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")
os.environ.setdefault("ALLOWED_HOSTS", "testserver,localhost,127.0.0.1")

import pytest
from decimal import Decimal
from typing import Any, Callable, Dict, Generator, List, Optional, Tuple
from fastapi.testclient import TestClient
from unittest.mock import MagicMock

import storefront.config as config
from storefront.app import app as fastapi_app
from storefront.shipping import service as shipping_service
from storefront.payments import paypal_client as paypal_client_module

ADMIN_TOKEN = "test-admin-token"

SHIPPING_ROW: Dict[str, Any] = {
    "id": "11111111-2222-3333-4444-555555555555",
    "free_shipping_threshold": "50.00",
    "standard_shipping_cost": "9.99",
    "currency": "PEN",
    "is_active": True,
}

# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "tests/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "tests/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)


class FakeOrderStore:
    """
    Tables orders / order_items en mémoire.
    Reproduit la contrainte unique (payment_method, payment_id) de upsert_order_with_items.
    """

    def __init__(self):
        self.orders: List[Dict[str, Any]] = []
        self.items: List[Dict[str, Any]] = []
        self.rpc_calls = 0

    def find_order_by_payment(self, payment_method: str, payment_id: str) -> Optional[Dict[str, Any]]:
        for order in self.orders:
            if order["payment_method"] == payment_method and order["payment_id"] == str(payment_id):
                return dict(order)
        return None

    def upsert_order_with_items(self, order_row, item_rows) -> Tuple[Dict[str, Any], bool]:
        self.rpc_calls += 1
        existing = self.find_order_by_payment(order_row["payment_method"], order_row["payment_id"])
        if existing:
            return existing, False
        order = {**order_row, "id": f"order-{len(self.orders) + 1}"}
        self.orders.append(order)
        self.items.extend({**row, "order_id": order["id"]} for row in item_rows)
        return dict(order), True

    def update_order(self, order_id: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        for order in self.orders:
            if order["id"] == order_id:
                order.update(changes)
                return dict(order)
        return None

    def get_order(self, order_id: str) -> Optional[Dict[str, Any]]:
        return next((dict(o) for o in self.orders if o["id"] == order_id), None)

    def list_orders(self, limit: int = 100, status: Optional[str] = None) -> List[Dict[str, Any]]:
        rows = [dict(o) for o in self.orders if status is None or o.get("status") == status]
        return list(reversed(rows))[:limit]

    def get_order_items(self, order_id: str) -> List[Dict[str, Any]]:
        return [dict(i) for i in self.items if i["order_id"] == order_id]


class FakePayPalClient:
    """Client PayPal scripté: ordres créés/capturés en mémoire."""

    def __init__(self, order_factory: Callable[..., Dict[str, Any]]):
        self.order_factory = order_factory
        self.created: List[Dict[str, Any]] = []
        self.capture_status = "COMPLETED"
        self.capture_calls = 0

    def create_order(self, payload, request_id=None):
        self.created.append({"payload": payload, "request_id": request_id})
        order_id = f"PAYPAL-{len(self.created)}"
        return {
            "provider_id": order_id,
            "status": "CREATED",
            "redirect_urls": {"approve": f"https://www.sandbox.paypal.com/checkoutnow?token={order_id}"},
            "raw": {"id": order_id, "status": "CREATED"},
        }

    def capture_order(self, order_id, request_id=None):
        self.capture_calls += 1
        raw = self.order_factory(order_id, status=self.capture_status)
        return {"status": raw["status"], "payer_id": "PAYER-1", "capture_id": "CAPTURE-1", "raw": raw}

    def get_order(self, order_id):
        return self.order_factory(order_id, status="COMPLETED")


@pytest.fixture(scope="session")
def app():
    return fastapi_app

@pytest.fixture()
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c

@pytest.fixture()
def admin_headers() -> Dict[str, str]:
    return {"X-Admin-Token": ADMIN_TOKEN}

@pytest.fixture(autouse=True)
def _test_config(monkeypatch):
    """Configuration déterministe, indépendante du .env local."""
    monkeypatch.setattr(config, "ADMIN_API_TOKEN", ADMIN_TOKEN)
    monkeypatch.setattr(config, "WEBHOOK_SHARED_SECRET", "")
    monkeypatch.setattr(config, "AUTOMATION_RELAY_SECRET", "")
    monkeypatch.setattr(config, "AUTOMATION_SIGNING_SECRET", "")
    monkeypatch.setattr(config, "AUTOMATION_WEBHOOK_URLS", {
        "order.created": "", "order.status_changed": "", "order.payment_updated": "",
    })
    monkeypatch.setattr(config, "RESEND_API_KEY", "")
    monkeypatch.setattr(config, "PAYPAL_CLIENT_ID", "test-client-id")
    monkeypatch.setattr(config, "PAYPAL_CLIENT_SECRET", "test-client-secret")
    monkeypatch.setattr(config, "PAYPAL_MODE", "sandbox")
    monkeypatch.setattr(config, "PAYPAL_CURRENCY", "USD")
    monkeypatch.setattr(config, "PAYPAL_EXCHANGE_RATE", Decimal("0.27"))
    monkeypatch.setattr(config, "MERCADOPAGO_ACCESS_TOKEN", "TEST-0000-access-token")
    monkeypatch.setattr(config, "STORE_CURRENCY", "PEN")
    monkeypatch.setattr(config, "TAX_RATE", Decimal("0.18"))
    monkeypatch.setattr(config, "MIN_ORDER_TOTAL", Decimal("15"))
    monkeypatch.setattr(config, "MIN_PRODUCT_PRICE", Decimal("10"))
    monkeypatch.setattr(config, "BASE_URL", "http://localhost:5173")
    monkeypatch.setattr(config, "API_BASE_URL", "http://localhost:8000")
    monkeypatch.setattr(config, "EXPOSE_ERROR_DETAILS", False)
    monkeypatch.setattr(paypal_client_module, "_client", None)

@pytest.fixture(autouse=True)
def _no_sleep(monkeypatch):
    # Backoff tenacity instantané
    monkeypatch.setattr("time.sleep", lambda seconds: None)

# Mock database access for all tests
@pytest.fixture(autouse=True)
def mock_db_dependency(monkeypatch):
    monkeypatch.setattr("storefront.infra.supabase_client.get_supabase", lambda: MagicMock())
    monkeypatch.setattr("storefront.infra.supabase_client.get_service_supabase", lambda: MagicMock())

@pytest.fixture(autouse=True)
def shipping_row(monkeypatch) -> Dict[str, Any]:
    """Ligne shipping_settings active; resolver partagé réinitialisé à chaque test."""
    row = dict(SHIPPING_ROW)
    monkeypatch.setattr("storefront.shipping.repository.fetch_active_settings", lambda: dict(row))
    monkeypatch.setattr(
        "storefront.shipping.repository.update_settings",
        lambda settings_id, data: {**row, **data, "id": settings_id},
    )
    monkeypatch.setattr(shipping_service, "_resolver", None)
    return row

@pytest.fixture(autouse=True)
def order_store(monkeypatch) -> FakeOrderStore:
    store = FakeOrderStore()
    for name in (
        "find_order_by_payment", "upsert_order_with_items", "update_order",
        "get_order", "list_orders", "get_order_items",
    ):
        monkeypatch.setattr(f"storefront.orders.repository.{name}", getattr(store, name))
    return store

@pytest.fixture()
def cart_items() -> List[Dict[str, Any]]:
    # 2 x 120.00 -> sous-total 240.00 (livraison gratuite, IGV 43.20, total 283.20)
    return [{
        "id": "ring-001",
        "name": "Anillo Luna",
        "price": "120.00",
        "quantity": 2,
        "selected_size": "7",
        "selected_material": "Plata 925",
        "image": "https://cdn.example.test/ring.jpg",
    }]

@pytest.fixture()
def customer() -> Dict[str, Any]:
    return {"email": "ana@example.com", "name": "Ana Torres", "phone": "999888777", "dni": "12345678"}

@pytest.fixture()
def shipping_address() -> Dict[str, Any]:
    return {"street": "Av. Larco", "number": "123", "city": "Lima", "state": "Lima", "zip_code": "15074", "country": "PE"}

@pytest.fixture()
def paypal_order_factory() -> Callable[..., Dict[str, Any]]:
    """Ressource ordre PayPal v2 (USD) cohérente: 64.80 + 11.66 IGV = 76.46."""
    def _make(order_id: str = "PAYPAL-1", status: str = "COMPLETED", with_capture: bool = True) -> Dict[str, Any]:
        unit: Dict[str, Any] = {
            "reference_id": "LUINA_1700000000000_abcd1234",
            "amount": {
                "currency_code": "USD",
                "value": "76.46",
                "breakdown": {
                    "item_total": {"currency_code": "USD", "value": "64.80"},
                    "shipping": {"currency_code": "USD", "value": "0.00"},
                    "tax_total": {"currency_code": "USD", "value": "11.66"},
                },
            },
            "items": [{
                "name": "Anillo Luna",
                "sku": "ring-001",
                "quantity": "2",
                "unit_amount": {"currency_code": "USD", "value": "32.40"},
            }],
            "shipping": {
                "name": {"full_name": "Ana Torres"},
                "address": {
                    "address_line_1": "Av. Larco 123",
                    "admin_area_2": "Lima",
                    "admin_area_1": "Lima",
                    "postal_code": "15074",
                    "country_code": "PE",
                },
            },
        }
        if with_capture:
            unit["payments"] = {"captures": [{
                "id": "CAPTURE-1",
                "status": "COMPLETED",
                "create_time": "2024-05-01T12:00:00Z",
            }]}
        return {
            "id": order_id,
            "status": status,
            "payer": {
                "payer_id": "PAYER-1",
                "email_address": "ana@example.com",
                "name": {"given_name": "Ana", "surname": "Torres"},
            },
            "purchase_units": [unit],
        }
    return _make

@pytest.fixture()
def mercadopago_payment_factory() -> Callable[..., Dict[str, Any]]:
    """Paiement MercadoPago (GET /v1/payments/{id}) issu d'une préférence 2 x 120.00 + IGV."""
    def _make(payment_id: str = "1234567890", status: str = "approved") -> Dict[str, Any]:
        return {
            "id": int(payment_id),
            "status": status,
            "status_detail": "accredited" if status == "approved" else status,
            "transaction_amount": 283.2,
            "currency_id": "PEN",
            "external_reference": "LUINA_1700000000000_abcd1234",
            "date_approved": "2024-05-01T12:00:00.000-05:00" if status == "approved" else None,
            "payment_method_id": "visa",
            "payment_type_id": "credit_card",
            "installments": 1,
            "payer": {
                "email": "ana@example.com",
                "first_name": "Ana",
                "last_name": "Torres",
                "identification": {"type": "DNI", "number": "12345678"},
            },
            "metadata": {
                "subtotal": "240.00",
                "discount": "0.00",
                "shipping": "0.00",
                "tax": "43.20",
                "total": "283.20",
                "currency": "PEN",
            },
            "additional_info": {
                "items": [
                    {"id": "ring-001", "title": "Anillo Luna", "quantity": "2", "unit_price": "120.0"},
                    {"id": "tax", "title": "IGV 18%", "quantity": "1", "unit_price": "43.2"},
                ],
                "shipments": {"receiver_address": {
                    "street_name": "Av. Larco", "street_number": "123",
                    "zip_code": "15074", "city_name": "Lima", "state_name": "Lima",
                }},
            },
        }
    return _make

@pytest.fixture()
def fake_paypal(monkeypatch, paypal_order_factory) -> FakePayPalClient:
    fake = FakePayPalClient(paypal_order_factory)
    monkeypatch.setattr(paypal_client_module, "get_paypal_client", lambda: fake)
    return fake
