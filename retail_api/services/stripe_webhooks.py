"""
Stripe webhook event processing

Runs after the HTTP response has been sent. The event row and the effects it
causes are committed together; the unique event_id makes a replayed event fail
on insert, which is treated as already processed. Failures are logged and not
retried here; Stripe re-delivers events that were never acknowledged as
processed.
"""

from typing import Any, Callable, Dict, Optional
import uuid

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select
import structlog

from retail_api.core.database import DatabaseProvider
from retail_api.models import (
    Order,
    Payment,
    PaymentStatus,
    StripeWebhookEvent,
    SubscriptionStatus,
    Tenant,
)
from retail_api.models.base import utcnow
from retail_api.services.orders import apply_payment_status

logger = structlog.get_logger(__name__)

WEBHOOK_ACTOR = "stripe_webhook"

SUBSCRIPTION_STATUS_MAP = {
    "trialing": SubscriptionStatus.TRIAL,
    "active": SubscriptionStatus.ACTIVE,
    "past_due": SubscriptionStatus.PAST_DUE,
    "unpaid": SubscriptionStatus.PAST_DUE,
    "canceled": SubscriptionStatus.CANCELED,
    "incomplete": SubscriptionStatus.EXPIRED,
    "incomplete_expired": SubscriptionStatus.EXPIRED,
}


def event_already_recorded(session: Session, event_id: str) -> bool:
    return session.exec(
        select(StripeWebhookEvent.id).where(StripeWebhookEvent.event_id == event_id)
    ).first() is not None


class StripeWebhookProcessor:
    """Applies Stripe events to payments, orders and tenant subscriptions"""

    def __init__(self, db: DatabaseProvider):
        self.db = db
        self.handlers: Dict[str, Callable[[Session, Dict[str, Any]], None]] = {
            "payment_intent.succeeded": self._payment_succeeded,
            "payment_intent.payment_failed": self._payment_failed,
            "payment_intent.canceled": self._payment_canceled,
            "charge.refunded": self._charge_refunded,
            "customer.subscription.created": self._subscription_changed,
            "customer.subscription.updated": self._subscription_changed,
            "customer.subscription.deleted": self._subscription_deleted,
        }

    def process(self, event: Dict[str, Any]) -> str:
        """Process one verified event; returns processed, ignored, duplicate or failed"""
        event_id = event.get("id")
        event_type = event.get("type", "")
        if not event_id:
            logger.warning("Stripe event without id ignored", event_type=event_type)
            return "ignored"

        with self.db.session() as session:
            session.add(StripeWebhookEvent(event_id=event_id, event_type=event_type, payload=event))
            try:
                session.flush()
            except IntegrityError:
                session.rollback()
                logger.info(f"Duplicate Stripe event {event_id}, already processed")
                return "duplicate"

            handler = self.handlers.get(event_type)
            obj = (event.get("data") or {}).get("object") or {}
            try:
                if handler is not None:
                    handler(session, obj)
                session.commit()
            except IntegrityError:
                session.rollback()
                logger.info(f"Duplicate Stripe event {event_id}, already processed")
                return "duplicate"
            except Exception as e:
                session.rollback()
                logger.exception(f"Failed to process Stripe event {event_id}: {e}", event_type=event_type)
                return "failed"

        if handler is None:
            logger.info(f"Stripe event {event_type} recorded without handler", event_id=event_id)
            return "ignored"
        logger.info(f"Processed Stripe event {event_id}", event_type=event_type)
        return "processed"

    # ------------------------------------------------------------------
    # Payment intents
    # ------------------------------------------------------------------

    def _find_payment(self, session: Session, payment_intent_id: Optional[str]) -> Optional[Payment]:
        if not payment_intent_id:
            return None
        payment = session.exec(
            select(Payment).where(Payment.gateway_transaction_id == payment_intent_id)
        ).first()
        if payment is None:
            logger.warning(f"No payment found for PaymentIntent {payment_intent_id}")
        return payment

    def _set_payment_status(self, session: Session, payment: Payment, new_status: PaymentStatus, reason: str) -> None:
        now = utcnow()
        payment.status = new_status
        payment.updated_at = now
        if new_status == PaymentStatus.PAID and not payment.paid_at:
            payment.paid_at = now
        session.add(payment)

        order = session.get(Order, payment.order_id)
        if order is not None and apply_payment_status(order, new_status, WEBHOOK_ACTOR, reason):
            session.add(order)

    def _payment_succeeded(self, session: Session, intent: Dict[str, Any]) -> None:
        payment = self._find_payment(session, intent.get("id"))
        if payment is None:
            return
        self._set_payment_status(session, payment, PaymentStatus.PAID, "Payment succeeded via Stripe")

    def _payment_failed(self, session: Session, intent: Dict[str, Any]) -> None:
        payment = self._find_payment(session, intent.get("id"))
        if payment is None:
            return
        error = intent.get("last_payment_error") or {}
        payment.failure_code = error.get("code")
        payment.failure_message = error.get("message")
        self._set_payment_status(session, payment, PaymentStatus.FAILED, "Payment failed via Stripe")

    def _payment_canceled(self, session: Session, intent: Dict[str, Any]) -> None:
        payment = self._find_payment(session, intent.get("id"))
        if payment is None:
            return
        self._set_payment_status(session, payment, PaymentStatus.CANCELLED, "Payment canceled via Stripe")

    def _charge_refunded(self, session: Session, charge: Dict[str, Any]) -> None:
        payment = self._find_payment(session, charge.get("payment_intent"))
        if payment is None:
            return
        refunded = int(charge.get("amount_refunded") or 0)
        payment.refunded_cents = refunded
        payment.refunded_at = utcnow()
        full = refunded >= int(charge.get("amount") or payment.amount_cents)
        new_status = PaymentStatus.REFUNDED if full else PaymentStatus.PARTIALLY_REFUNDED
        self._set_payment_status(session, payment, new_status, "Charge refunded via Stripe")

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def _find_tenant(self, session: Session, subscription: Dict[str, Any]) -> Optional[Tenant]:
        tenant_id = (subscription.get("metadata") or {}).get("tenant_id")
        tenant = None
        if tenant_id:
            tenant = session.exec(select(Tenant).where(Tenant.id == _uuid_or_none(tenant_id))).first()
        if tenant is None and subscription.get("id"):
            tenant = session.exec(
                select(Tenant).where(Tenant.stripe_subscription_id == subscription["id"])
            ).first()
        if tenant is None and subscription.get("customer"):
            tenant = session.exec(
                select(Tenant).where(Tenant.stripe_customer_id == subscription["customer"])
            ).first()
        if tenant is None:
            logger.warning(f"No tenant for Stripe subscription {subscription.get('id')}")
        return tenant

    def _subscription_changed(self, session: Session, subscription: Dict[str, Any]) -> None:
        tenant = self._find_tenant(session, subscription)
        if tenant is None:
            return
        mapped = SUBSCRIPTION_STATUS_MAP.get(subscription.get("status", ""))
        if mapped is None:
            logger.warning(f"Unmapped Stripe subscription status {subscription.get('status')}")
            return
        tenant.subscription_status = mapped
        tenant.stripe_subscription_id = subscription.get("id") or tenant.stripe_subscription_id
        tenant.stripe_customer_id = subscription.get("customer") or tenant.stripe_customer_id
        tier = (subscription.get("metadata") or {}).get("tier")
        if tier:
            tenant.subscription_tier = tier
        tenant.updated_at = utcnow()
        session.add(tenant)
        logger.info(f"Tenant {tenant.id} subscription now {mapped.value}")

    def _subscription_deleted(self, session: Session, subscription: Dict[str, Any]) -> None:
        tenant = self._find_tenant(session, subscription)
        if tenant is None:
            return
        tenant.subscription_status = SubscriptionStatus.CANCELED
        tenant.updated_at = utcnow()
        session.add(tenant)
        logger.info(f"Tenant {tenant.id} subscription canceled")


def _uuid_or_none(value: str) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None
