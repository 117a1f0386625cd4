"""
Webhook handlers for Stripe
Verifies the signature, acknowledges at once and processes in the background
"""

from fastapi import APIRouter, BackgroundTasks, Depends, Request, status
from fastapi.concurrency import run_in_threadpool
from sqlmodel import Session
import stripe
import structlog

from retail_api.core.database import get_session
from retail_api.core.dependencies import get_stripe_gateway, get_webhook_processor
from retail_api.core.errors import ApiError, bad_request
from retail_api.services.stripe_gateway import StripeGateway, StripeNotConfiguredError
from retail_api.services.stripe_webhooks import StripeWebhookProcessor, event_already_recorded

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
    gateway: StripeGateway = Depends(get_stripe_gateway),
    processor: StripeWebhookProcessor = Depends(get_webhook_processor),
):
    """
    Handle Stripe webhooks

    Flow:
    1. Verify the stripe-signature header against the raw body
    2. Skip events already recorded
    3. Acknowledge with 200 and process after the response
    """
    payload = await request.body()
    try:
        event = gateway.verify_webhook(payload, request.headers.get("stripe-signature"))
    except StripeNotConfiguredError as e:
        logger.error(str(e))
        raise ApiError(status.HTTP_503_SERVICE_UNAVAILABLE, "webhooks_not_configured")
    except (stripe.SignatureVerificationError, ValueError) as e:
        logger.warning(f"Stripe webhook rejected: {e}")
        raise bad_request("invalid_signature")

    event_id = event.get("id")
    logger.info("Received Stripe webhook", event_id=event_id, event_type=event.get("type"))

    if event_id and await run_in_threadpool(event_already_recorded, session, event_id):
        logger.info(f"Duplicate Stripe event {event_id}, skipping")
        return {"received": True, "duplicate": True}

    background_tasks.add_task(processor.process, event)
    return {"received": True}
