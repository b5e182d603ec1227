"""
Payment provider adapter.

The StripeGateway owns its own StripeClient, built from settings at
startup and handed to request handlers through app.state. Nothing here
touches the module-level `stripe.api_key`.

Timeouts and connection failures are bounded by the httpx transport timeout
and the client's own network retries (which reuse the idempotency key), and
surface as PaymentTimeoutError so callers can tell "try again" apart from
"the provider said no".
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

import stripe

from app.core.config import Settings
from app.core.exceptions import ExternalServiceError, PaymentTimeoutError, WebhookSignatureError
from app.core.logging import get_logger
from app.core.metrics import record_gateway_error, webhook_rejections

logger = get_logger(__name__)

# Intent states in which the customer can still complete payment
OPEN_INTENT_STATUSES = frozenset(
    {"requires_payment_method", "requires_confirmation", "requires_action", "processing"}
)


@dataclass(frozen=True)
class PaymentIntent:
    id: str
    status: str
    amount: int
    client_secret: Optional[str] = None
    metadata: dict = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status == "succeeded"

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_INTENT_STATUSES


@dataclass(frozen=True)
class WebhookEvent:
    id: str
    type: str
    intent_id: Optional[str]


class PaymentGateway(ABC):
    """
    Interface for payment providers.

    Implementations:
    - StripeGateway: Stripe PaymentIntents API
    """

    @abstractmethod
    async def create_intent(
        self, amount: int, currency: str, metadata: dict, idempotency_key: str
    ) -> PaymentIntent:
        """Create a payment intent for `amount` minor currency units."""

    @abstractmethod
    async def retrieve_intent(self, intent_id: str) -> PaymentIntent:
        """Fetch the current state of an intent."""

    @abstractmethod
    async def cancel_intent(self, intent_id: str) -> PaymentIntent:
        """Cancel an intent that has not been paid yet."""

    @abstractmethod
    async def refund(self, intent_id: str, idempotency_key: str) -> str:
        """Refund a succeeded intent in full. Returns the refund id."""

    @abstractmethod
    def parse_webhook(self, payload: bytes, signature: Optional[str]) -> WebhookEvent:
        """Verify the signature and decode a webhook delivery."""


def _to_intent(obj) -> PaymentIntent:
    return PaymentIntent(
        id=obj["id"],
        status=obj["status"],
        amount=obj["amount"],
        client_secret=obj.get("client_secret"),
        metadata=dict(obj.get("metadata") or {}),
    )


class StripeGateway(PaymentGateway):
    def __init__(self, client: stripe.StripeClient, webhook_secret: str):
        self._client = client
        self._webhook_secret = webhook_secret

    @classmethod
    def from_settings(cls, settings: Settings) -> "StripeGateway":
        client = stripe.StripeClient(
            settings.STRIPE_SECRET_KEY,
            http_client=stripe.HTTPXClient(timeout=settings.PAYMENT_TIMEOUT_SECONDS),
            max_network_retries=settings.PAYMENT_MAX_NETWORK_RETRIES,
        )
        return cls(client, settings.STRIPE_WEBHOOK_SECRET)

    async def _call(self, operation: str, coro):
        try:
            return await coro
        except stripe.APIConnectionError as e:
            record_gateway_error(operation, "timeout")
            logger.warning("payment_provider_unreachable", operation=operation, error=str(e))
            raise PaymentTimeoutError(
                "Payment provider did not respond in time. Please retry."
            ) from e
        except stripe.StripeError as e:
            record_gateway_error(operation, "provider")
            logger.error(
                "payment_provider_error",
                operation=operation,
                error=str(e),
                code=getattr(e, "code", None),
            )
            raise ExternalServiceError(e.user_message or "Payment provider error") from e

    async def create_intent(
        self, amount: int, currency: str, metadata: dict, idempotency_key: str
    ) -> PaymentIntent:
        intent = await self._call(
            "create_intent",
            self._client.payment_intents.create_async(
                params={
                    "amount": amount,
                    "currency": currency,
                    "metadata": metadata,
                    "automatic_payment_methods": {"enabled": True},
                },
                options={"idempotency_key": idempotency_key},
            ),
        )
        return _to_intent(intent)

    async def retrieve_intent(self, intent_id: str) -> PaymentIntent:
        intent = await self._call(
            "retrieve_intent", self._client.payment_intents.retrieve_async(intent_id)
        )
        return _to_intent(intent)

    async def cancel_intent(self, intent_id: str) -> PaymentIntent:
        intent = await self._call(
            "cancel_intent", self._client.payment_intents.cancel_async(intent_id)
        )
        return _to_intent(intent)

    async def refund(self, intent_id: str, idempotency_key: str) -> str:
        refund = await self._call(
            "refund",
            self._client.refunds.create_async(
                params={"payment_intent": intent_id},
                options={"idempotency_key": idempotency_key},
            ),
        )
        return refund["id"]

    def parse_webhook(self, payload: bytes, signature: Optional[str]) -> WebhookEvent:
        if not signature:
            webhook_rejections.inc()
            raise WebhookSignatureError("Webhook Error: missing Stripe-Signature header")
        try:
            event = self._client.construct_event(payload, signature, self._webhook_secret)
        except (stripe.SignatureVerificationError, ValueError) as e:
            webhook_rejections.inc()
            logger.warning("webhook_rejected", error=str(e))
            raise WebhookSignatureError(f"Webhook Error: {e}") from e

        obj = event["data"]["object"]
        intent_id = obj.get("id") if obj.get("object") == "payment_intent" else None
        return WebhookEvent(id=event["id"], type=event["type"], intent_id=intent_id)
