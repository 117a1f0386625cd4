"""
Charging and refunding orders through a stubbed Stripe client
"""

from types import SimpleNamespace
import uuid

import pytest
import stripe

from retail_api.models import Order, Payment, PaymentStatus
from retail_api.services.stripe_gateway import StripeGateway


class FakePaymentIntents:
    def __init__(self, status="succeeded", error=None):
        self.status = status
        self.error = error
        self.calls = []

    def create(self, params=None, options=None):
        self.calls.append((params, options))
        if self.error is not None:
            raise self.error
        return SimpleNamespace(id=f"pi_fake_{len(self.calls)}", status=self.status, amount=params["amount"])


class FakeRefunds:
    def __init__(self):
        self.calls = []

    def create(self, params=None, options=None):
        self.calls.append(params)
        return SimpleNamespace(id=f"re_fake_{len(self.calls)}", status="succeeded", amount=params.get("amount"))


class FakeStripeClient:
    def __init__(self, **intent_kwargs):
        self.payment_intents = FakePaymentIntents(**intent_kwargs)
        self.refunds = FakeRefunds()


# Fixtures
@pytest.fixture
def shop(make_tenant):
    return make_tenant("Pay Shop")


@pytest.fixture
def headers(make_user, shop, auth_headers):
    return auth_headers(make_user(tenant=shop))


@pytest.fixture
def order(db, shop):
    order = Order(tenant_id=shop.id, order_number="ORD-20260101-0001", customer_email="c@example.com", total_cents=2800)
    db.add(order)
    db.commit()
    db.refresh(order)
    return order


@pytest.fixture
def fake_stripe(app):
    client = FakeStripeClient()
    app.state.stripe_gateway = StripeGateway(client=client, webhook_secret="whsec_x")
    return client


def test_charge_full_balance_marks_order_paid(client, db, order, headers, fake_stripe):
    response = client.post(
        f"/api/orders/{order.id}/payments",
        json={"payment_method_id": "pm_card_visa"},
        headers={**headers, "Idempotency-Key": "charge-1"},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["amountCents"] == 2800
    assert body["status"] == "paid"
    assert body["gatewayTransactionId"] == "pi_fake_1"

    params, options = fake_stripe.payment_intents.calls[0]
    assert params["amount"] == 2800
    assert params["metadata"]["order_id"] == str(order.id)
    assert options == {"idempotency_key": "charge-1"}

    db.expire_all()
    assert db.get(Order, order.id).payment_status == PaymentStatus.PAID


def test_charge_more_than_balance_is_rejected(client, order, headers, fake_stripe):
    response = client.post(
        f"/api/orders/{order.id}/payments",
        json={"payment_method_id": "pm_card_visa", "amount_cents": 5000},
        headers=headers,
    )

    assert response.status_code == 400
    assert response.json()["error"] == "amount_exceeds_balance"
    assert fake_stripe.payment_intents.calls == []


def test_paid_order_cannot_be_charged_again(client, order, headers, fake_stripe):
    client.post(f"/api/orders/{order.id}/payments", json={"payment_method_id": "pm_card_visa"}, headers=headers)

    response = client.post(f"/api/orders/{order.id}/payments", json={"payment_method_id": "pm_card_visa"}, headers=headers)

    assert response.status_code == 400
    assert response.json()["error"] == "order_already_paid"


def test_declined_card_records_failed_payment(app, client, db, order, headers):
    declined = stripe.CardError("Your card was declined.", None, "card_declined")
    app.state.stripe_gateway = StripeGateway(client=FakeStripeClient(error=declined))

    response = client.post(f"/api/orders/{order.id}/payments", json={"payment_method_id": "pm_x"}, headers=headers)

    assert response.status_code == 402
    assert response.json()["error"] == "payment_failed"
    db.expire_all()
    payments = db.get(Order, order.id).payments
    assert len(payments) == 1
    assert payments[0].status == PaymentStatus.FAILED
    assert payments[0].failure_code == "card_declined"


def test_charge_without_stripe_configuration(client, order, headers):
    response = client.post(f"/api/orders/{order.id}/payments", json={"payment_method_id": "pm_x"}, headers=headers)

    assert response.status_code == 503
    assert response.json()["error"] == "payments_not_configured"


def test_partial_then_full_refund(client, db, order, headers, fake_stripe):
    payment_id = client.post(
        f"/api/orders/{order.id}/payments", json={"payment_method_id": "pm_card_visa"}, headers=headers
    ).json()["id"]

    partial = client.post(f"/api/payments/{payment_id}/refund", json={"amount_cents": 800}, headers=headers)
    assert partial.status_code == 200
    assert partial.json()["status"] == "partially_refunded"
    assert partial.json()["refundedCents"] == 800

    too_much = client.post(f"/api/payments/{payment_id}/refund", json={"amount_cents": 5000}, headers=headers)
    assert too_much.status_code == 400
    assert too_much.json()["error"] == "invalid_refund_amount"

    rest = client.post(f"/api/payments/{payment_id}/refund", json={}, headers=headers)
    assert rest.status_code == 200
    assert rest.json()["status"] == "refunded"
    assert rest.json()["refundedCents"] == 2800
    assert [call.get("amount") for call in fake_stripe.refunds.calls] == [800, 2000]

    db.expire_all()
    assert db.get(Order, order.id).payment_status == PaymentStatus.REFUNDED
    assert db.get(Payment, uuid.UUID(payment_id)).refunded_cents == 2800


def test_get_payment_not_found(client, headers):
    response = client.get("/api/payments/00000000-0000-0000-0000-000000000000", headers=headers)

    assert response.status_code == 404
    assert response.json()["error"] == "payment_not_found"
