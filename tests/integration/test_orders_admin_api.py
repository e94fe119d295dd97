import storefront.config as config

ORDERS_URL = "/api/v1/orders"
ADMIN_URL = "/api/v1/admin/orders"


def _order_body(cart_items, customer, shipping_address, payment_id="1234567890", method="mercadopago"):
    return {
        "paymentDetails": {"id": payment_id, "method": method, "external_reference": "LUINA_1700000000000_abcd1234"},
        "cartItems": cart_items,
        "customerInfo": customer,
        "shippingAddress": shipping_address,
    }

def test_create_order_is_pending(client, order_store, cart_items, customer, shipping_address):
    response = client.post(ORDERS_URL, json=_order_body(cart_items, customer, shipping_address))
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["order"]["created"] is True
    assert body["order"]["status"] == "pending"
    assert body["order"]["payment_status"] == "pending"
    assert body["order"]["order_number"].startswith("MP-")
    order = order_store.orders[0]
    assert order["total"] == "283.20"
    assert order["currency"] == "PEN"
    assert order["shipping_city"] == "Lima"
    assert order_store.items[0]["selected_size"] == "7"
    assert order_store.items[0]["subtotal"] == "240.00"

def test_create_order_twice_returns_existing(client, order_store, cart_items, customer, shipping_address):
    body = _order_body(cart_items, customer, shipping_address, payment_id="PAYPAL-1", method="paypal")
    first = client.post(ORDERS_URL, json=body)
    second = client.post(ORDERS_URL, json=body)
    assert first.json()["order"]["created"] is True
    assert second.json()["order"]["created"] is False
    assert second.json()["order"]["id"] == first.json()["order"]["id"]
    assert len(order_store.orders) == 1

def test_create_order_recomputes_totals(client, order_store, cart_items, customer, shipping_address):
    # Un total envoyé par le client est ignoré
    body = _order_body(cart_items, customer, shipping_address)
    body["total"] = "1.00"
    body["promoCode"] = "welcome10"
    client.post(ORDERS_URL, json=body)
    assert order_store.orders[0]["discount"] == "24.00"
    assert order_store.orders[0]["total"] == "254.88"

def test_create_order_rejects_invalid_email(client, cart_items, customer, shipping_address):
    customer["email"] = "not-an-email"
    response = client.post(ORDERS_URL, json=_order_body(cart_items, customer, shipping_address))
    assert response.status_code == 400
    assert response.json()["code"] == "validation_error"

def test_create_order_rejects_unknown_method(client, cart_items, customer, shipping_address):
    response = client.post(ORDERS_URL, json=_order_body(cart_items, customer, shipping_address, method="cash"))
    assert response.status_code == 400

def test_admin_list_requires_token(client):
    assert client.get(ADMIN_URL).status_code == 401
    assert client.get(ADMIN_URL, headers={"X-Admin-Token": "nope"}).status_code == 401

def test_admin_routes_disabled_without_token(client, monkeypatch, admin_headers):
    monkeypatch.setattr(config, "ADMIN_API_TOKEN", "")
    response = client.get(ADMIN_URL, headers=admin_headers)
    assert response.status_code == 500
    assert response.json()["code"] == "config_error"

def test_admin_list_orders(client, admin_headers, cart_items, customer, shipping_address):
    client.post(ORDERS_URL, json=_order_body(cart_items, customer, shipping_address, payment_id="1"))
    client.post(ORDERS_URL, json=_order_body(cart_items, customer, shipping_address, payment_id="2"))
    response = client.get(ADMIN_URL, headers=admin_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 2
    # Plus récente d'abord
    assert [o["payment_id"] for o in body["orders"]] == ["2", "1"]

    limited = client.get(f"{ADMIN_URL}?limit=1&status=pending", headers=admin_headers)
    assert limited.json()["count"] == 1
    assert client.get(f"{ADMIN_URL}?limit=0", headers=admin_headers).status_code == 400

def test_admin_update_status(client, order_store, admin_headers, cart_items, customer, shipping_address):
    created = client.post(ORDERS_URL, json=_order_body(cart_items, customer, shipping_address)).json()
    order_id = created["order"]["id"]

    response = client.patch(f"{ADMIN_URL}/{order_id}/status", json={"status": "shipped"}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["order"]["status"] == "shipped"
    assert order_store.orders[0]["status"] == "shipped"
    # Le statut de paiement n'est pas touché par la logistique
    assert order_store.orders[0]["payment_status"] == "pending"

def test_admin_update_unknown_status(client, admin_headers, cart_items, customer, shipping_address):
    created = client.post(ORDERS_URL, json=_order_body(cart_items, customer, shipping_address)).json()
    response = client.patch(
        f"{ADMIN_URL}/{created['order']['id']}/status", json={"status": "lost"}, headers=admin_headers
    )
    assert response.status_code == 400
    assert response.json()["code"] == "validation_error"

def test_admin_update_missing_order(client, admin_headers):
    response = client.patch(f"{ADMIN_URL}/order-404/status", json={"status": "shipped"}, headers=admin_headers)
    assert response.status_code == 404
    assert response.json()["code"] == "not_found"
