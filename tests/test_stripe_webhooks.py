"""
Stripe webhook verification, idempotency and event effects
"""

import hashlib
import hmac
import json
import time
import uuid

import pytest
from sqlmodel import select

from retail_api.models import (
    Order,
    OrderStatusHistory,
    Payment,
    PaymentStatus,
    StripeWebhookEvent,
    SubscriptionStatus,
)
from retail_api.services.stripe_gateway import StripeGateway
from retail_api.services.stripe_webhooks import WEBHOOK_ACTOR


def sign(payload: str, secret: str, timestamp: int = None) -> str:
    """stripe-signature header for a payload: t=<ts>,v1=<hmac_sha256(secret, "<ts>.<payload>")>"""
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def post_event(client, event: dict, secret: str = None):
    payload = json.dumps(event)
    secret = secret or client.app.state.settings.STRIPE_WEBHOOK_SECRET
    return client.post(
        "/api/webhooks/stripe",
        content=payload,
        headers={"stripe-signature": sign(payload, secret), "content-type": "application/json"},
    )


def intent_event(event_type: str, intent_id: str, event_id: str = None, **intent_fields) -> dict:
    return {
        "id": event_id or f"evt_{uuid.uuid4().hex[:12]}",
        "type": event_type,
        "data": {"object": {"id": intent_id, "object": "payment_intent", **intent_fields}},
    }


# Fixtures
@pytest.fixture
def pending_payment(db, make_tenant):
    tenant = make_tenant("Webhook Shop")
    order = Order(tenant_id=tenant.id, order_number="ORD-20260101-0001", customer_email="c@example.com", total_cents=2800)
    db.add(order)
    db.commit()
    payment = Payment(
        tenant_id=tenant.id,
        order_id=order.id,
        amount_cents=2800,
        gateway_transaction_id="pi_test_123",
        status=PaymentStatus.PENDING,
    )
    db.add(payment)
    db.commit()
    db.refresh(payment)
    return payment


def test_payment_succeeded_marks_payment_and_order_paid(client, db, pending_payment):
    response = post_event(client, intent_event("payment_intent.succeeded", "pi_test_123"))

    assert response.status_code == 200
    assert response.json() == {"received": True}

    db.expire_all()
    payment = db.get(Payment, pending_payment.id)
    order = db.get(Order, pending_payment.order_id)
    assert payment.status == PaymentStatus.PAID
    assert payment.paid_at is not None
    assert order.payment_status == PaymentStatus.PAID
    assert order.paid_at is not None


def test_replayed_event_is_applied_once(client, db, pending_payment):
    """The same event id delivered twice yields exactly one history row"""
    event = intent_event("payment_intent.succeeded", "pi_test_123", event_id="evt_replay_1")

    first = post_event(client, event)
    second = post_event(client, event)

    assert first.json() == {"received": True}
    assert second.status_code == 200
    assert second.json() == {"received": True, "duplicate": True}

    db.expire_all()
    history = db.exec(
        select(OrderStatusHistory).where(
            OrderStatusHistory.order_id == pending_payment.order_id,
            OrderStatusHistory.changed_by == WEBHOOK_ACTOR,
        )
    ).all()
    assert len(history) == 1
    events = db.exec(select(StripeWebhookEvent).where(StripeWebhookEvent.event_id == "evt_replay_1")).all()
    assert len(events) == 1


def test_processor_reports_duplicate(app, pending_payment):
    processor = app.state.webhook_processor
    event = intent_event("payment_intent.succeeded", "pi_test_123", event_id="evt_direct_1")

    assert processor.process(event) == "processed"
    assert processor.process(event) == "duplicate"


def test_payment_failed_records_error(client, db, pending_payment):
    event = intent_event(
        "payment_intent.payment_failed",
        "pi_test_123",
        last_payment_error={"code": "card_declined", "message": "Your card was declined."},
    )

    post_event(client, event)

    db.expire_all()
    payment = db.get(Payment, pending_payment.id)
    assert payment.status == PaymentStatus.FAILED
    assert payment.failure_code == "card_declined"
    assert db.get(Order, pending_payment.order_id).payment_status == PaymentStatus.FAILED


def test_partial_refund_event(client, db, pending_payment):
    pending_payment.status = PaymentStatus.PAID
    db.add(pending_payment)
    db.commit()
    event = {
        "id": "evt_refund_1",
        "type": "charge.refunded",
        "data": {"object": {"id": "ch_1", "payment_intent": "pi_test_123", "amount": 2800, "amount_refunded": 800}},
    }

    post_event(client, event)

    db.expire_all()
    payment = db.get(Payment, pending_payment.id)
    assert payment.refunded_cents == 800
    assert payment.status == PaymentStatus.PARTIALLY_REFUNDED


def test_unknown_payment_intent_is_recorded_and_ignored(client, db):
    response = post_event(client, intent_event("payment_intent.succeeded", "pi_missing", event_id="evt_orphan"))

    assert response.status_code == 200
    db.expire_all()
    assert db.exec(select(StripeWebhookEvent).where(StripeWebhookEvent.event_id == "evt_orphan")).first() is not None


def test_subscription_update_changes_tenant_status(client, db, make_tenant):
    tenant = make_tenant("Subscriber")
    event = {
        "id": "evt_sub_1",
        "type": "customer.subscription.updated",
        "data": {"object": {
            "id": "sub_1",
            "customer": "cus_1",
            "status": "active",
            "metadata": {"tenant_id": str(tenant.id), "tier": "professional"},
        }},
    }

    post_event(client, event)

    db.expire_all()
    db.refresh(tenant)
    assert tenant.subscription_status == SubscriptionStatus.ACTIVE
    assert tenant.subscription_tier == "professional"
    assert tenant.stripe_subscription_id == "sub_1"
    assert tenant.stripe_customer_id == "cus_1"


def test_invalid_signature_is_rejected(client, db):
    response = post_event(client, intent_event("payment_intent.succeeded", "pi_x"), secret="whsec_wrong")

    assert response.status_code == 400
    assert response.json()["error"] == "invalid_signature"
    assert db.exec(select(StripeWebhookEvent)).first() is None


def test_missing_signature_is_rejected(client):
    response = client.post("/api/webhooks/stripe", content=b"{}")

    assert response.status_code == 400
    assert response.json()["error"] == "invalid_signature"


def test_webhooks_not_configured(app, client):
    app.state.stripe_gateway = StripeGateway(webhook_secret=None)

    response = post_event(client, intent_event("payment_intent.succeeded", "pi_x"))

    assert response.status_code == 503
    assert response.json()["error"] == "webhooks_not_configured"
