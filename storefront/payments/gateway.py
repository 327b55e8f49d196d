"""
Server half of the two-phase card payment.

The storefront only creates PaymentIntents; the shopper's client confirms
them directly with Stripe using the returned client secret, so card data
never passes through this service.
"""
from dataclasses import dataclass
from typing import Dict, Optional
import logging

import httpx

from storefront.shared.utils import GatewayException, ValidationException

logger = logging.getLogger(__name__)


@dataclass
class PaymentIntent:
    id: str
    client_secret: str
    status: str
    amount: int
    currency: str


def processor_error_message(response: httpx.Response) -> str:
    try:
        return response.json()["error"]["message"]
    except (ValueError, KeyError, TypeError):
        return f"Payment processor returned HTTP {response.status_code}"


class StripeGateway:
    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = "https://api.stripe.com",
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.transport = transport
        self.timeout = timeout

    async def create_intent(self, amount: int, currency: str, metadata: Optional[Dict[str, str]] = None) -> PaymentIntent:
        # bool is an int subclass; True must not become a 1-cent charge
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValidationException("Invalid amount", fields=["amount"])
        if not self.api_key:
            logger.error("Payment intent requested but STRIPE_SECRET_KEY is not set")
            raise GatewayException("Payment processor is not configured")

        data = {
            "amount": str(amount),
            "currency": currency,
            "payment_method_types[]": "card",
        }
        for key, value in (metadata or {}).items():
            data[f"metadata[{key}]"] = value or ""

        async with httpx.AsyncClient(base_url=self.base_url, transport=self.transport, timeout=self.timeout) as client:
            try:
                response = await client.post(
                    "/v1/payment_intents",
                    data=data,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
            except httpx.RequestError as e:
                logger.error(f"Payment processor unreachable: {e}", extra={"amount": amount}, exc_info=True)
                raise GatewayException("Payment processor unavailable") from e

        if response.is_error:
            message = processor_error_message(response)
            logger.error(
                f"Payment intent creation failed: {message}",
                extra={"amount": amount, "status_code": response.status_code},
            )
            raise GatewayException(message)

        payload = response.json()
        intent = PaymentIntent(
            id=payload["id"],
            client_secret=payload["client_secret"],
            status=payload.get("status", "requires_payment_method"),
            amount=payload.get("amount", amount),
            currency=payload.get("currency", currency),
        )
        logger.info("Payment intent created", extra={"payment_intent_id": intent.id, "amount": amount})
        return intent
