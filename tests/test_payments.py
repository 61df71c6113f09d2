import hashlib
import hmac
import json

import httpx
import pytest

from conftest import ADMIN, cart_payload
from glowstore.core import config
from glowstore.core.errors import NotConfiguredError, PaymentProviderError
from glowstore.services import payments

PAYSTACK_KEY = "sk_test_123"
FLW_HASH = "flw-hash"


@pytest.fixture
def provider_api(monkeypatch):
    """Route provider HTTP calls to a handler the test controls."""
    monkeypatch.setattr(config, "PAYSTACK_SECRET_KEY", PAYSTACK_KEY)
    monkeypatch.setattr(config, "FLUTTERWAVE_SECRET_KEY", "FLWSECK_TEST")
    monkeypatch.setattr(config, "FLUTTERWAVE_WEBHOOK_HASH", FLW_HASH)
    state = {"requests": [], "handler": None}
    real_client = httpx.Client

    def transport(request):
        state["requests"].append(request)
        return state["handler"](request)

    monkeypatch.setattr(payments.httpx, "Client",
                        lambda **kw: real_client(transport=httpx.MockTransport(transport), **kw))
    return state


@pytest.fixture
def order(client, db, catalog, paystack):
    body = client.post("/api/orders/create", json=cart_payload(catalog)).json()
    return db.row("orders", body["orderId"])


def test_to_kobo():
    assert payments.to_kobo(14500) == 1450000
    assert payments.to_kobo("99.999") == 10000


def test_paystack_initialize_sends_kobo(provider_api):
    provider_api["handler"] = lambda req: httpx.Response(200, json={
        "status": True, "data": {"reference": "PS-1", "authorization_url": "https://x", "access_code": "a"}})
    data = payments.paystack_initialize(email="ada@example.com", amount=14500, reference="PS-1")
    assert data["access_code"] == "a"
    req = provider_api["requests"][0]
    assert req.headers["Authorization"] == f"Bearer {PAYSTACK_KEY}"
    assert json.loads(req.content) == {"email": "ada@example.com", "amount": 1450000, "reference": "PS-1", "currency": "NGN"}


def test_provider_error_message_is_surfaced(provider_api):
    provider_api["handler"] = lambda req: httpx.Response(400, json={"status": False, "message": "Duplicate Transaction Reference"})
    with pytest.raises(PaymentProviderError) as exc:
        payments.paystack_initialize(email="a@b.co", amount=1, reference="PS-1")
    assert exc.value.message == "Paystack: Duplicate Transaction Reference"


def test_unreachable_provider(provider_api):
    def down(req):
        raise httpx.ConnectError("boom", request=req)

    provider_api["handler"] = down
    with pytest.raises(PaymentProviderError):
        payments.flutterwave_verify("123")


def test_missing_secret(monkeypatch):
    monkeypatch.setattr(config, "PAYSTACK_SECRET_KEY", None)
    with pytest.raises(NotConfiguredError):
        payments.paystack_verify("PS-1")


def test_paystack_paid_checks_amount_and_currency():
    data = {"status": "success", "amount": 1450000, "currency": "NGN"}
    assert payments.paystack_paid(data, 14500)
    assert not payments.paystack_paid(dict(data, amount=1449999), 14500)
    assert not payments.paystack_paid(dict(data, currency="USD"), 14500)
    assert not payments.paystack_paid(dict(data, status="abandoned"), 14500)


def test_flutterwave_paid_checks_tx_ref():
    data = {"status": "successful", "amount": 14500, "currency": "NGN", "tx_ref": "FLW-1"}
    assert payments.flutterwave_paid(data, 14500, "FLW-1")
    assert not payments.flutterwave_paid(data, 14500, "FLW-2")
    assert not payments.flutterwave_paid(dict(data, amount=100), 14500, "FLW-1")


def test_verify_paystack_marks_paid(client, db, catalog, order, provider_api):
    reference = f"PS-{order['id']}"
    provider_api["handler"] = lambda req: httpx.Response(200, json={
        "status": True, "data": {"status": "success", "amount": 1450000, "currency": "NGN", "reference": reference}})
    resp = client.get("/api/payments/paystack/verify", params={"reference": reference, "orderId": order["id"]})
    assert resp.status_code == 200
    assert resp.json()["payment_status"] == "paid"
    assert resp.json()["provider_ref"] == reference
    assert db.row("products", catalog.serum["id"])["stock"] == 8
    assert provider_api["requests"][0].url.path.endswith(f"/transaction/verify/{reference}")


def test_verify_paystack_rejects_foreign_reference(client, order, provider_api):
    resp = client.get("/api/payments/paystack/verify", params={"reference": "PS-other", "orderId": order["id"]})
    assert resp.status_code == 400
    assert provider_api["requests"] == []


def test_verify_paystack_underpaid(client, db, order, provider_api):
    provider_api["handler"] = lambda req: httpx.Response(200, json={
        "status": True, "data": {"status": "success", "amount": 100, "currency": "NGN"}})
    resp = client.get("/api/payments/paystack/verify", params={"reference": f"PS-{order['id']}", "orderId": order["id"]})
    assert resp.status_code == 400
    assert db.row("orders", order["id"])["payment_status"] == "unpaid"


def test_verify_flutterwave(client, db, order, provider_api):
    provider_api["handler"] = lambda req: httpx.Response(200, json={"status": "success", "data": {
        "status": "successful", "amount": 14500, "currency": "NGN", "tx_ref": f"FLW-{order['id']}"}})
    resp = client.get("/api/payments/flutterwave/verify", params={"transaction_id": "987", "orderId": order["id"]})
    assert resp.status_code == 200
    assert resp.json()["payment_status"] == "paid"
    assert resp.json()["payment_provider"] == "flutterwave"


def paystack_event(order_id, amount=1450000, event="charge.success"):
    return json.dumps({"event": event, "data": {
        "status": "success", "amount": amount, "currency": "NGN",
        "reference": f"PS-{order_id}", "metadata": {"order_id": order_id}}}).encode()


def sign(body):
    return hmac.new(PAYSTACK_KEY.encode(), body, hashlib.sha512).hexdigest()


def test_paystack_webhook(client, db, order, provider_api):
    body = paystack_event(order["id"])
    resp = client.post("/api/webhooks/paystack", content=body, headers={"x-paystack-signature": sign(body)})
    assert resp.status_code == 200
    assert resp.json() == {"received": True, "orderId": order["id"]}
    assert db.row("orders", order["id"])["payment_status"] == "paid"


def test_paystack_webhook_bad_signature(client, db, order, provider_api):
    body = paystack_event(order["id"])
    resp = client.post("/api/webhooks/paystack", content=body, headers={"x-paystack-signature": "nope"})
    assert resp.status_code == 401
    assert db.row("orders", order["id"])["payment_status"] == "unpaid"


def test_paystack_webhook_ignores_other_events(client, order, provider_api):
    body = paystack_event(order["id"], event="transfer.success")
    resp = client.post("/api/webhooks/paystack", content=body, headers={"x-paystack-signature": sign(body)})
    assert resp.json() == {"received": True, "orderId": None}


def test_flutterwave_webhook_reverifies(client, db, order, provider_api):
    tx_ref = f"FLW-{order['id']}"
    provider_api["handler"] = lambda req: httpx.Response(200, json={"status": "success", "data": {
        "status": "successful", "amount": 14500, "currency": "NGN", "tx_ref": tx_ref}})
    event = {"event": "charge.completed", "data": {"id": 555, "tx_ref": tx_ref, "status": "successful"}}

    assert client.post("/api/webhooks/flutterwave", json=event, headers={"verif-hash": "bad"}).status_code == 401

    resp = client.post("/api/webhooks/flutterwave", json=event, headers={"verif-hash": FLW_HASH})
    assert resp.json() == {"received": True, "orderId": order["id"]}
    assert provider_api["requests"][0].url.path.endswith("/transactions/555/verify")
    assert db.row("orders", order["id"])["provider_ref"] == "555"


def test_flutterwave_webhook_acknowledges_failed_charge(client, db, order, provider_api):
    tx_ref = f"FLW-{order['id']}"
    event = {"event": "charge.completed", "data": {"id": 556, "tx_ref": tx_ref, "status": "failed"}}
    resp = client.post("/api/webhooks/flutterwave", json=event, headers={"verif-hash": FLW_HASH})
    assert resp.status_code == 200
    assert resp.json() == {"received": True, "orderId": None}
    assert provider_api["requests"] == []
    assert db.row("orders", order["id"])["payment_status"] == "unpaid"


def test_flutterwave_webhook_acknowledges_unverified_charge(client, db, order, provider_api):
    tx_ref = f"FLW-{order['id']}"
    provider_api["handler"] = lambda req: httpx.Response(200, json={"status": "success", "data": {
        "status": "failed", "amount": 14500, "currency": "NGN", "tx_ref": tx_ref}})
    event = {"event": "charge.completed", "data": {"id": 557, "tx_ref": tx_ref, "status": "successful"}}
    resp = client.post("/api/webhooks/flutterwave", json=event, headers={"verif-hash": FLW_HASH})
    assert resp.status_code == 200
    assert resp.json() == {"received": True, "orderId": None}
    assert db.row("orders", order["id"])["payment_status"] == "unpaid"


def test_flutterwave_webhook_provider_outage_is_retried(client, order, provider_api):
    def down(req):
        raise httpx.ConnectError("boom", request=req)

    provider_api["handler"] = down
    event = {"event": "charge.completed", "data": {"id": 558, "tx_ref": f"FLW-{order['id']}", "status": "successful"}}
    resp = client.post("/api/webhooks/flutterwave", json=event, headers={"verif-hash": FLW_HASH})
    assert resp.status_code == 502


def test_paystack_webhook_for_unknown_order_is_acknowledged(client, db, provider_api):
    body = paystack_event("no-such-order")
    resp = client.post("/api/webhooks/paystack", content=body, headers={"x-paystack-signature": sign(body)})
    assert resp.status_code == 200
    assert resp.json() == {"received": True, "orderId": None}


def test_paystack_webhook_for_cancelled_order_is_acknowledged(client, db, catalog, order, provider_api):
    client.post(f"/api/admin/orders/{order['id']}/cancel", headers=ADMIN)
    body = paystack_event(order["id"])
    resp = client.post("/api/webhooks/paystack", content=body, headers={"x-paystack-signature": sign(body)})
    assert resp.status_code == 200
    assert resp.json()["orderId"] is None
    assert db.row("orders", order["id"])["payment_status"] == "unpaid"
    assert db.row("products", catalog.serum["id"])["stock"] == 10
