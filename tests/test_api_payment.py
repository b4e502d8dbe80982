"""
Tests for carrental/api/payment.py -- checkout, callback and status endpoints.

Covers:
- POST /api/payment/initialize (happy path, fail-fast 400s, gateway outage)
- POST /api/payment/retry
- GET /api/payment/callback (verified, duplicate, failure codes)
- POST /api/payment/webhook
- GET /api/payment/verify/<txRef>, GET /api/payment/return
"""

import hashlib
import hmac
import json

import pytest
import requests

from carrental.models.order import Order
from carrental.services.order import OrderService
from conftest import initialize_ok, verify_ok


def _initialize_body(**overrides):
    body = {
        "amount": 360,
        "email": "ignored@example.com",
        "firstName": "Ignored",
        "lastName": "Name",
        "phoneNumber": "0912345678",
        "checkoutData": {
            "cartItems": [{"id": "veh-1", "rentalDays": 3}],
            "rentalPeriod": {"startDate": "2025-07-01", "totalDays": 3},
            "paymentMethod": "chapa",
            "totalAmount": 360,
        },
    }
    body.update(overrides)
    return body


@pytest.fixture
def checkout(client, login_as, user, vehicle, gateway):
    """Run a successful checkout and return its response body."""
    login_as(user)
    gateway.return_value = initialize_ok("https://checkout.test/pay/abc")
    res = client.post("/api/payment/initialize", json=_initialize_body())
    assert res.status_code == 200
    gateway.reset_mock()
    return res.get_json()


# ---------------------------------------------------------------------------
# POST /api/payment/initialize
# ---------------------------------------------------------------------------

class TestInitialize:
    def test_returns_checkout_url(self, checkout):
        assert checkout["success"] is True
        assert checkout["paymentUrl"] == "https://checkout.test/pay/abc"
        assert checkout["txRef"].startswith("vehicle-rental-")
        assert checkout["data"]["id"] == checkout["orderId"]
        assert checkout["data"]["status"] == "PENDING"

    def test_identity_comes_from_session(self, checkout, gateway):
        order = OrderService.find_order(checkout["orderId"])
        assert order.customer_email == "abebe@example.com"
        assert order.customer_name == "Abebe Kebede"

    @pytest.mark.parametrize("phone", [None, ""])
    def test_missing_phone(self, client, login_as, user, vehicle, gateway, phone):
        login_as(user)
        body = _initialize_body()
        if phone is None:
            del body["phoneNumber"]
        else:
            body["phoneNumber"] = phone

        res = client.post("/api/payment/initialize", json=body)

        assert res.status_code == 400
        assert res.get_json()["error"] == "Phone number is required"
        gateway.assert_not_called()
        assert Order.query.count() == 0

    @pytest.mark.parametrize("amount", [0, -10])
    def test_non_positive_amount(self, client, login_as, user, vehicle, gateway, amount):
        login_as(user)
        res = client.post("/api/payment/initialize", json=_initialize_body(amount=amount))

        assert res.status_code == 400
        gateway.assert_not_called()
        assert Order.query.count() == 0

    def test_gateway_down_keeps_order(self, client, login_as, user, vehicle, gateway):
        login_as(user)
        gateway.side_effect = requests.ConnectionError("refused")

        res = client.post("/api/payment/initialize", json=_initialize_body())

        assert res.status_code == 503
        body = res.get_json()
        assert body["success"] is False
        order_id = body["detail"]["orderId"]

        listed = client.get("/api/orders").get_json()["data"]
        assert [o["id"] for o in listed] == [order_id]
        assert listed[0]["status"] == "PENDING"

    def test_requires_session(self, client, login_as, gateway):
        login_as(None)
        res = client.post("/api/payment/initialize", json=_initialize_body())
        assert res.status_code == 401


class TestRetry:
    def test_retry_pending_order(self, client, checkout, gateway):
        gateway.return_value = initialize_ok("https://checkout.test/pay/again")

        res = client.post("/api/payment/retry", json={"orderId": checkout["orderId"]})

        assert res.status_code == 200
        body = res.get_json()
        assert body["orderId"] == checkout["orderId"]
        assert body["paymentUrl"] == "https://checkout.test/pay/again"
        assert body["txRef"] != checkout["txRef"]


# ---------------------------------------------------------------------------
# Callback / webhook
# ---------------------------------------------------------------------------

class TestCallback:
    def _callback(self, client, tx_ref, ref_id="REF-1", status="success"):
        return client.get(
            "/api/payment/callback",
            query_string={"trx_ref": tx_ref, "ref_id": ref_id, "status": status},
        )

    def test_verified(self, client, checkout, gateway, email_task):
        gateway.return_value = verify_ok(checkout["txRef"])

        res = self._callback(client, checkout["txRef"])

        assert res.status_code == 200
        assert res.get_json()["data"]["status"] == "PAYMENT_COMPLETED"
        email_task.delay.assert_called_once_with(checkout["orderId"])

    def test_duplicate_delivery_is_200(self, client, checkout, gateway, email_task):
        gateway.return_value = verify_ok(checkout["txRef"])

        first = self._callback(client, checkout["txRef"])
        second = self._callback(client, checkout["txRef"])

        assert first.status_code == second.status_code == 200
        assert second.get_json()["message"] == "Already processed"
        assert email_task.delay.call_count == 1

    def test_post_body(self, client, checkout, gateway, email_task):
        gateway.return_value = verify_ok(checkout["txRef"])
        res = client.post(
            "/api/payment/callback",
            json={"trx_ref": checkout["txRef"], "ref_id": "REF-1", "status": "success"},
        )
        assert res.status_code == 200

    def test_verify_outage_is_non_2xx(self, client, checkout, gateway, email_task):
        gateway.side_effect = requests.Timeout("slow")
        res = self._callback(client, checkout["txRef"])
        assert res.status_code == 503
        email_task.delay.assert_not_called()

    def test_mismatch_is_non_2xx(self, client, checkout, gateway, email_task):
        gateway.return_value = verify_ok(checkout["txRef"], amount="10.00")
        res = self._callback(client, checkout["txRef"])
        assert res.status_code == 400
        assert res.get_json()["kind"] == "VERIFICATION_MISMATCH"

    def test_unknown_tx_ref(self, client, app, gateway):
        res = self._callback(client, "vehicle-rental-0-unknown")
        assert res.status_code == 404


class TestWebhook:
    def test_signed(self, client, checkout, gateway, email_task):
        gateway.return_value = verify_ok(checkout["txRef"])
        body = json.dumps(
            {"tx_ref": checkout["txRef"], "reference": "REF-7", "status": "success"}
        ).encode()
        signature = hmac.new(b"webhook-secret", body, hashlib.sha256).hexdigest()

        res = client.post(
            "/api/payment/webhook",
            data=body,
            content_type="application/json",
            headers={"Chapa-Signature": signature},
        )

        assert res.status_code == 200
        assert res.get_json()["data"]["status"] == "PAYMENT_COMPLETED"

    def test_unsigned(self, client, checkout, gateway):
        res = client.post("/api/payment/webhook", json={"tx_ref": checkout["txRef"]})
        assert res.status_code == 401
        gateway.assert_not_called()


# ---------------------------------------------------------------------------
# Status reads
# ---------------------------------------------------------------------------

class TestStatusReads:
    def test_verify_endpoint_polls_store(self, client, checkout, gateway):
        res = client.get(f"/api/payment/verify/{checkout['txRef']}")

        assert res.status_code == 200
        assert res.get_json()["data"]["state"] == "processing"
        gateway.assert_not_called()

    def test_return_page(self, client, checkout, gateway, email_task):
        res = client.get(
            "/api/payment/return",
            query_string={"orderId": checkout["orderId"], "payment": "success"},
        )
        assert res.get_json()["data"]["state"] == "processing"

        gateway.return_value = verify_ok(checkout["txRef"])
        client.get(
            "/api/payment/callback",
            query_string={"trx_ref": checkout["txRef"], "ref_id": "REF-1", "status": "success"},
        )

        res = client.get(
            "/api/payment/return", query_string={"orderId": checkout["orderId"]}
        )
        assert res.get_json()["data"]["state"] == "paid"
        assert res.get_json()["data"]["status"] == "PAYMENT_COMPLETED"

    def test_order_detail_lists_attempts(self, client, checkout):
        res = client.get(f"/api/orders/{checkout['orderId']}")

        transactions = res.get_json()["data"]["transactions"]
        assert [tx["tx_ref"] for tx in transactions] == [checkout["txRef"]]
        assert transactions[0]["status"] == "INITIALIZED"
        assert transactions[0]["amount"] == 360.0
