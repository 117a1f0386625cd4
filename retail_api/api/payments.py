"""
Payment API endpoints
Stripe PaymentIntent charges and refunds against orders
"""

from typing import Optional
import uuid

from fastapi import APIRouter, Depends, Header, status
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session
import structlog

from retail_api.core.database import get_session
from retail_api.core.dependencies import CurrentUser, check_tenant_access, get_current_user, get_stripe_gateway
from retail_api.core.errors import ApiError, bad_request, not_found, server_error
from retail_api.core.permissions import Permission
from retail_api.models import Payment, PaymentStatus
from retail_api.models.base import utcnow
from retail_api.schemas.orders import ChargeRequest, PaymentRead, RefundRequest
from retail_api.api.orders import get_order_for_user
from retail_api.services.orders import apply_payment_status
from retail_api.services.stripe_gateway import StripeGateway, StripeGatewayError, StripeNotConfiguredError

logger = structlog.get_logger(__name__)
router = APIRouter(tags=["payments"])

# Payments whose money is (still) held against the order
COLLECTED_STATUSES = (PaymentStatus.PAID, PaymentStatus.AUTHORIZED, PaymentStatus.PARTIALLY_REFUNDED)

INTENT_STATUS_MAP = {
    "succeeded": PaymentStatus.PAID,
    "requires_capture": PaymentStatus.AUTHORIZED,
    "canceled": PaymentStatus.CANCELLED,
}


def _not_configured(e: StripeNotConfiguredError) -> ApiError:
    logger.error(str(e))
    return ApiError(status.HTTP_503_SERVICE_UNAVAILABLE, "payments_not_configured")


@router.post(
    "/orders/{order_id}/payments",
    response_model=PaymentRead,
    status_code=status.HTTP_201_CREATED,
)
def charge_order(
    order_id: uuid.UUID,
    data: ChargeRequest,
    idempotency_key: Optional[str] = Header(default=None, alias="Idempotency-Key"),
    session: Session = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
    gateway: StripeGateway = Depends(get_stripe_gateway),
):
    """Create and confirm a Stripe PaymentIntent for the order balance"""
    order = get_order_for_user(session, user, order_id, Permission.PAYMENT_CHARGE)
    if not gateway.payments_enabled:
        raise ApiError(status.HTTP_503_SERVICE_UNAVAILABLE, "payments_not_configured")

    collected = sum(p.amount_cents - p.refunded_cents for p in order.payments if p.status in COLLECTED_STATUSES)
    balance = order.total_cents - collected
    if balance <= 0:
        raise bad_request("order_already_paid")
    amount = data.amount_cents or balance
    if amount > balance:
        raise bad_request("amount_exceeds_balance", f"Balance is {balance}")

    payment = Payment(
        tenant_id=order.tenant_id,
        order_id=order.id,
        amount_cents=amount,
        currency=order.currency,
        gateway="stripe",
    )
    try:
        intent = gateway.create_payment_intent(
            amount_cents=amount,
            currency=order.currency,
            payment_method_id=data.payment_method_id,
            metadata={"order_id": str(order.id), "tenant_id": str(order.tenant_id)},
            idempotency_key=idempotency_key,
        )
    except StripeNotConfiguredError as e:
        raise _not_configured(e)
    except StripeGatewayError as e:
        payment.status = PaymentStatus.FAILED
        payment.failure_code = e.code
        payment.failure_message = str(e)[:1000]
        session.add(payment)
        session.commit()
        logger.warning(f"Charge failed for order {order.order_number}", code=e.code)
        raise ApiError(status.HTTP_402_PAYMENT_REQUIRED, "payment_failed", str(e))

    payment.gateway_transaction_id = intent["id"]
    payment.status = INTENT_STATUS_MAP.get(intent["status"], PaymentStatus.PENDING)
    if payment.status == PaymentStatus.PAID:
        payment.paid_at = utcnow()
        if order.total_cents - collected - amount <= 0:
            apply_payment_status(order, PaymentStatus.PAID, str(user.id), "Payment captured")
        session.add(order)

    try:
        session.add(payment)
        session.commit()
        session.refresh(payment)
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Error recording payment {intent['id']}: {e}")
        raise server_error("payment_record_failed")

    logger.info(
        f"Payment recorded for order {order.order_number}",
        payment_id=str(payment.id),
        status=payment.status.value,
        amount_cents=amount,
    )
    return payment


@router.get("/payments/{payment_id}", response_model=PaymentRead)
def get_payment(
    payment_id: uuid.UUID,
    session: Session = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
):
    payment = session.get(Payment, payment_id)
    if payment is None:
        raise not_found("payment_not_found")
    check_tenant_access(session, user, payment.tenant_id, Permission.ORDER_VIEW)
    return payment


@router.post("/payments/{payment_id}/refund", response_model=PaymentRead)
def refund_payment(
    payment_id: uuid.UUID,
    data: RefundRequest,
    session: Session = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
    gateway: StripeGateway = Depends(get_stripe_gateway),
):
    """Refund a captured payment in full or in part"""
    payment = session.get(Payment, payment_id)
    if payment is None:
        raise not_found("payment_not_found")
    check_tenant_access(session, user, payment.tenant_id, Permission.PAYMENT_REFUND)

    if payment.status not in (PaymentStatus.PAID, PaymentStatus.PARTIALLY_REFUNDED) or not payment.gateway_transaction_id:
        raise bad_request("payment_not_refundable")
    amount = data.amount_cents or payment.refundable_cents
    if amount > payment.refundable_cents:
        raise bad_request("invalid_refund_amount", f"Refundable amount is {payment.refundable_cents}")

    try:
        gateway.refund(payment.gateway_transaction_id, amount, data.reason)
    except StripeNotConfiguredError as e:
        raise _not_configured(e)
    except StripeGatewayError as e:
        logger.warning(f"Refund failed for payment {payment.id}", code=e.code)
        raise ApiError(status.HTTP_402_PAYMENT_REQUIRED, "refund_failed", str(e))

    now = utcnow()
    payment.refunded_cents += amount
    payment.refunded_at = now
    payment.updated_at = now
    payment.status = PaymentStatus.REFUNDED if payment.refundable_cents == 0 else PaymentStatus.PARTIALLY_REFUNDED
    order = payment.order
    if order is not None:
        apply_payment_status(order, payment.status, str(user.id), data.reason or "Refund issued")
        session.add(order)

    session.add(payment)
    session.commit()
    session.refresh(payment)
    logger.info(f"Payment refunded: {payment.id}", amount_cents=amount, status=payment.status.value)
    return payment
