import httpx
import pytest

import storefront.config as config
from storefront.errors import ConfigError, GatewayUnavailable
from storefront.payments import paypal_client
from storefront.payments.paypal_client import PayPalClient, PayPalCredentials

CREDS = PayPalCredentials("cid", "secret", "sandbox")

class _Clock:
    def __init__(self, now=1000.0):
        self.now = now
    def __call__(self):
        return self.now

class _PayPalStub:
    """Transport httpx scripté: jeton OAuth + réponses successives pour les ordres."""

    def __init__(self, order_responses, token_expires_in=3600, token_status=200):
        self.order_responses = list(order_responses)
        self.token_expires_in = token_expires_in
        self.token_status = token_status
        self.token_calls = 0
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v1/oauth2/token":
            self.token_calls += 1
            if self.token_status != 200:
                return httpx.Response(self.token_status, text="unavailable")
            return httpx.Response(200, json={
                "access_token": f"tok-{self.token_calls}", "expires_in": self.token_expires_in,
            })
        self.requests.append(request)
        response = self.order_responses.pop(0) if len(self.order_responses) > 1 else self.order_responses[0]
        if isinstance(response, Exception):
            raise response
        return response

def _client(stub, clock=None):
    http = httpx.Client(transport=httpx.MockTransport(stub))
    return PayPalClient(CREDS, http=http, timeout=5, clock=clock or _Clock())

def _created(order_id="PP-1"):
    return httpx.Response(201, json={
        "id": order_id,
        "status": "CREATED",
        "links": [
            {"rel": "self", "href": f"https://api-m.sandbox.paypal.com/v2/checkout/orders/{order_id}"},
            {"rel": "approve", "href": f"https://www.sandbox.paypal.com/checkoutnow?token={order_id}"},
        ],
    })

def test_base_url_by_mode():
    assert CREDS.base_url == paypal_client.SANDBOX_BASE_URL
    assert PayPalCredentials("a", "b", "production").base_url == paypal_client.LIVE_BASE_URL

def test_missing_credentials_fail_before_network(monkeypatch):
    monkeypatch.setattr(config, "PAYPAL_CLIENT_SECRET", "")
    with pytest.raises(ConfigError):
        paypal_client.get_paypal_client()

def test_create_order_returns_approve_url_and_reuses_token():
    stub = _PayPalStub([_created()])
    client = _client(stub)
    first = client.create_order({"intent": "CAPTURE"}, request_id="LUINA_1_x")
    client.create_order({"intent": "CAPTURE"}, request_id="LUINA_2_x")
    assert first["provider_id"] == "PP-1"
    assert first["redirect_urls"]["approve"].endswith("token=PP-1")
    assert stub.token_calls == 1
    assert stub.requests[0].headers["Authorization"] == "Bearer tok-1"
    assert stub.requests[0].headers["PayPal-Request-Id"] == "LUINA_1_x"

def test_token_refreshed_after_expiry():
    clock = _Clock()
    stub = _PayPalStub([_created()], token_expires_in=3600)
    client = _client(stub, clock)
    client.create_order({})
    clock.now += 3600 - paypal_client.TOKEN_SAFETY_MARGIN_SECONDS + 1
    client.create_order({})
    assert stub.token_calls == 2
    assert stub.requests[1].headers["Authorization"] == "Bearer tok-2"

def test_revoked_token_is_renewed_once():
    stub = _PayPalStub([httpx.Response(401, json={"error": "invalid_token"}), _created()])
    result = _client(stub).create_order({})
    assert result["provider_id"] == "PP-1"
    assert stub.token_calls == 2

def test_client_error_is_not_retried():
    stub = _PayPalStub([httpx.Response(422, json={"name": "UNPROCESSABLE_ENTITY"})])
    with pytest.raises(GatewayUnavailable) as exc:
        _client(stub).create_order({})
    assert exc.value.status == 422
    assert "UNPROCESSABLE_ENTITY" in exc.value.body
    assert exc.value.retryable is False
    assert len(stub.requests) == 1

def test_server_error_is_retried_then_raised():
    stub = _PayPalStub([httpx.Response(503, text="unavailable")])
    with pytest.raises(GatewayUnavailable) as exc:
        _client(stub).create_order({})
    assert exc.value.status == 503
    assert len(stub.requests) == config.GATEWAY_RETRY_ATTEMPTS

def test_network_error_maps_to_gateway_unavailable():
    stub = _PayPalStub([httpx.ConnectError("connection refused")])
    with pytest.raises(GatewayUnavailable) as exc:
        _client(stub).create_order({})
    assert exc.value.status is None
    assert exc.value.provider == "paypal"

def test_transient_error_then_success():
    stub = _PayPalStub([httpx.Response(500, text="oops"), _created("PP-9")])
    assert _client(stub).create_order({})["provider_id"] == "PP-9"

def test_capture_order_extracts_capture_and_payer(paypal_order_factory):
    stub = _PayPalStub([httpx.Response(201, json=paypal_order_factory("PP-1"))])
    captured = _client(stub).capture_order("PP-1")
    request = stub.requests[0]
    assert request.url.path == "/v2/checkout/orders/PP-1/capture"
    assert request.headers["Prefer"] == "return=representation"
    assert captured["status"] == "COMPLETED"
    assert captured["capture_id"] == "CAPTURE-1"
    assert captured["payer_id"] == "PAYER-1"
    assert captured["raw"]["id"] == "PP-1"

def test_token_outage_is_retried_only_by_outer_call():
    stub = _PayPalStub([_created()], token_status=503)
    with pytest.raises(GatewayUnavailable) as exc:
        _client(stub).create_order({})
    assert exc.value.status == 503
    assert stub.token_calls == config.GATEWAY_RETRY_ATTEMPTS
    assert stub.requests == []
