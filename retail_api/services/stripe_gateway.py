"""
Stripe Payment Service
Handles PaymentIntent charges, refunds and webhook signature verification
"""

import json
from typing import Any, Dict, Optional

import stripe
import structlog

logger = structlog.get_logger(__name__)

WEBHOOK_TOLERANCE_SECONDS = 300


class StripeNotConfiguredError(RuntimeError):
    """Raised when a Stripe operation is attempted without the needed secret"""

    def __init__(self, missing: str):
        super().__init__(f"Stripe misconfigured: missing {missing}")
        self.missing = missing


class StripeGatewayError(RuntimeError):
    """Raised when Stripe rejects or fails a request"""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code


class StripeGateway:
    """Thin wrapper over the Stripe SDK with fixed timeouts and no automatic retries"""

    def __init__(
        self,
        secret_key: Optional[str] = None,
        webhook_secret: Optional[str] = None,
        timeout_seconds: int = 20,
        client: Optional[Any] = None,
    ):
        """
        Initialize Stripe service

        Args:
            secret_key: Stripe secret API key (sk_...)
            webhook_secret: Signing secret of the webhook endpoint (whsec_...)
            timeout_seconds: Timeout applied to every Stripe HTTP call
            client: Pre-built stripe.StripeClient, mainly for tests
        """
        self.secret_key = secret_key
        self.webhook_secret = webhook_secret
        self.timeout_seconds = timeout_seconds
        self._client = client

    @property
    def payments_enabled(self) -> bool:
        return bool(self._client or self.secret_key)

    @property
    def webhooks_enabled(self) -> bool:
        return bool(self.webhook_secret)

    @property
    def client(self):
        if self._client is None:
            if not self.secret_key:
                raise StripeNotConfiguredError("STRIPE_SECRET_KEY")
            self._client = stripe.StripeClient(
                self.secret_key,
                http_client=stripe.RequestsClient(timeout=self.timeout_seconds),
                max_network_retries=0,
            )
        return self._client

    def create_payment_intent(
        self,
        amount_cents: int,
        currency: str,
        payment_method_id: str,
        metadata: Dict[str, str],
        idempotency_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Create and confirm a PaymentIntent

        Args:
            amount_cents: Amount in the smallest currency unit
            currency: ISO currency code
            payment_method_id: Stripe PaymentMethod id
            metadata: order_id / tenant_id to correlate webhooks
            idempotency_key: Stripe idempotency key

        Returns:
            Dict with id, status, amount and any error details
        """
        options = {"idempotency_key": idempotency_key} if idempotency_key else {}
        try:
            intent = self.client.payment_intents.create(
                params={
                    "amount": amount_cents,
                    "currency": currency,
                    "payment_method": payment_method_id,
                    "confirm": True,
                    "metadata": metadata,
                    "automatic_payment_methods": {"enabled": True, "allow_redirects": "never"},
                },
                options=options,
            )
        except stripe.CardError as e:
            logger.warning(f"Card declined: {e.user_message}", code=e.code)
            raise StripeGatewayError(e.user_message or "Card declined", code=e.code)
        except stripe.StripeError as e:
            logger.error(f"Stripe PaymentIntent creation failed: {e}")
            raise StripeGatewayError(str(e), code=getattr(e, "code", None))

        logger.info(f"PaymentIntent created: {intent.id}", status=intent.status)
        return {"id": intent.id, "status": intent.status, "amount": intent.amount}

    def refund(self, payment_intent_id: str, amount_cents: Optional[int] = None, reason: Optional[str] = None) -> Dict[str, Any]:
        """
        Refund a PaymentIntent, fully or partially

        Returns:
            Dict with refund id, status and amount
        """
        params: Dict[str, Any] = {"payment_intent": payment_intent_id}
        if amount_cents is not None:
            params["amount"] = amount_cents
        if reason:
            params["metadata"] = {"reason": reason}
        try:
            refund = self.client.refunds.create(params=params)
        except stripe.StripeError as e:
            logger.error(f"Stripe refund failed for {payment_intent_id}: {e}")
            raise StripeGatewayError(str(e), code=getattr(e, "code", None))

        logger.info(f"Refund created: {refund.id}", amount=refund.amount, status=refund.status)
        return {"id": refund.id, "status": refund.status, "amount": refund.amount}

    def verify_webhook(self, payload: bytes, signature_header: Optional[str]) -> Dict[str, Any]:
        """
        Verify the stripe-signature header and decode the event

        Raises:
            StripeNotConfiguredError: no webhook secret configured
            stripe.SignatureVerificationError: signature missing or invalid
            ValueError: body is not JSON
        """
        if not self.webhook_secret:
            raise StripeNotConfiguredError("STRIPE_WEBHOOK_SECRET")
        if not signature_header:
            raise stripe.SignatureVerificationError("Missing stripe-signature header", signature_header, payload)

        stripe.WebhookSignature.verify_header(
            payload.decode("utf-8"),
            signature_header,
            self.webhook_secret,
            WEBHOOK_TOLERANCE_SECONDS,
        )
        return json.loads(payload)
