import httpx

import storefront.config as config
from storefront.notifications import dispatch, mailer
from storefront.orders.service import OrderUpsertResult

ORDER = {
    "id": "order-1",
    "order_number": "PP-1700000000000-ABCDEFGHI",
    "customer_email": "ana@example.com",
    "customer_name": "Ana <script>",
    "total": "283.20",
    "currency": "PEN",
    "status": "processing",
    "payment_status": "completed",
}

def test_mailer_skipped_without_api_key(monkeypatch):
    post = []
    monkeypatch.setattr(mailer.httpx, "post", lambda *a, **kw: post.append(kw))
    assert mailer.send_order_confirmation(ORDER, []) is False
    assert post == []

def test_mailer_posts_escaped_summary(monkeypatch):
    monkeypatch.setattr(config, "RESEND_API_KEY", "re_test")
    sent = {}
    def _post(url, json=None, headers=None, timeout=None):
        sent.update(url=url, json=json, headers=headers)
        return httpx.Response(200, json={"id": "email-1"})
    monkeypatch.setattr(mailer.httpx, "post", _post)
    items = [{"product_name": "Anillo Luna", "quantity": 2, "subtotal": "240.00"}]
    assert mailer.send_order_confirmation(ORDER, items) is True
    assert sent["url"] == mailer.RESEND_API_URL
    assert sent["json"]["to"] == ["ana@example.com"]
    assert sent["json"]["subject"] == "Order Confirmation #PP-17000"
    assert "&lt;script&gt;" in sent["json"]["html"]
    assert "Anillo Luna x2" in sent["json"]["html"]
    assert sent["headers"]["Authorization"] == "Bearer re_test"

def test_mailer_failure_returns_false(monkeypatch):
    monkeypatch.setattr(config, "RESEND_API_KEY", "re_test")
    monkeypatch.setattr(mailer.httpx, "post", lambda *a, **kw: httpx.Response(422, text="invalid from"))
    assert mailer.send_order_confirmation(ORDER, []) is False

def _capture_forward(monkeypatch):
    forwarded = []
    monkeypatch.setattr(dispatch.forwarder, "forward", lambda kind, payload: forwarded.append((kind, payload)) or True)
    return forwarded

def test_dispatch_created_order(monkeypatch, order_store):
    order_store.orders.append(dict(ORDER))
    order_store.items.append({"order_id": "order-1", "product_name": "Anillo Luna", "quantity": 2})
    forwarded = _capture_forward(monkeypatch)
    emails = []
    monkeypatch.setattr(dispatch.mailer, "send_order_confirmation", lambda order, items: emails.append(items) or True)
    dispatch.dispatch_order_events(OrderUpsertResult(order=dict(ORDER), created=True))
    assert [kind for kind, _ in forwarded] == ["order.created"]
    assert forwarded[0][1]["event"] == "INSERT"
    assert forwarded[0][1]["order_items"][0]["product_name"] == "Anillo Luna"
    assert len(emails) == 1

def test_dispatch_status_and_payment_changes(monkeypatch):
    forwarded = _capture_forward(monkeypatch)
    result = OrderUpsertResult(
        order=dict(ORDER), created=False, updated=True,
        previous_status="pending", previous_payment_status="approved",
    )
    dispatch.dispatch_order_events(result)
    kinds = {kind: payload for kind, payload in forwarded}
    assert kinds["order.payment_updated"]["payment_change"] == {"from": "approved", "to": "completed"}
    assert kinds["order.status_changed"]["status_change"] == {"from": "pending", "to": "processing"}

def test_dispatch_noop_for_deduplicated_result(monkeypatch):
    forwarded = _capture_forward(monkeypatch)
    dispatch.dispatch_order_events(OrderUpsertResult(order=dict(ORDER), created=False))
    assert forwarded == []

def test_dispatch_never_raises(monkeypatch):
    def _boom(kind, payload):
        raise RuntimeError("automation down")
    monkeypatch.setattr(dispatch.forwarder, "forward", _boom)
    dispatch.dispatch_order_events(OrderUpsertResult(order=dict(ORDER), created=True))
