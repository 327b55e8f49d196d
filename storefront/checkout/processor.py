"""
Shopper-side confirmation of a PaymentIntent, talking to Stripe directly
with the publishable key, as Stripe.js does in a browser.
"""
from dataclasses import dataclass
from typing import Optional
import logging

import httpx

from storefront.shared.utils import settings
from storefront.checkout.schemas import ShippingInfo

logger = logging.getLogger(__name__)

CONFIRMED_STATUSES = {"succeeded", "processing"}


@dataclass
class ConfirmationResult:
    intent_id: Optional[str] = None
    status: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def intent_id_from_secret(client_secret: str) -> str:
    return client_secret.split("_secret_")[0]


class StripeConfirmer:
    def __init__(
        self,
        publishable_key: Optional[str] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 30.0,
    ):
        self.publishable_key = publishable_key or settings.STRIPE_PUBLISHABLE_KEY
        self.base_url = base_url or settings.STRIPE_API_BASE
        self.transport = transport
        self.timeout = timeout

    async def confirm(self, client_secret: str, payment_method: str, shipping_info: ShippingInfo) -> ConfirmationResult:
        """
        `payment_method` is a Stripe PaymentMethod id (e.g. one tokenized by
        Stripe Elements); raw card numbers are never accepted here.
        """
        intent_id = intent_id_from_secret(client_secret)
        data = {
            "client_secret": client_secret,
            "payment_method": payment_method,
            "receipt_email": shipping_info.email,
            "shipping[name]": shipping_info.full_name,
            "shipping[phone]": shipping_info.phone,
            "shipping[address][line1]": shipping_info.address,
            "shipping[address][city]": shipping_info.city,
            "shipping[address][postal_code]": shipping_info.postal_code,
        }
        async with httpx.AsyncClient(base_url=self.base_url, transport=self.transport, timeout=self.timeout) as client:
            try:
                response = await client.post(
                    f"/v1/payment_intents/{intent_id}/confirm",
                    data=data,
                    headers={"Authorization": f"Bearer {self.publishable_key}"},
                )
            except httpx.RequestError as e:
                logger.error(f"Payment confirmation did not reach the processor: {e}")
                return ConfirmationResult(intent_id=intent_id, error="Could not reach the payment processor")

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}

        if response.is_error:
            error = payload.get("error")
            message = (error.get("message") if isinstance(error, dict) else None) or f"Payment processor returned HTTP {response.status_code}"
            return ConfirmationResult(intent_id=intent_id, error=message)

        status = payload.get("status")
        if status not in CONFIRMED_STATUSES:
            return ConfirmationResult(intent_id=intent_id, status=status, error=f"Payment was not completed (status: {status})")
        return ConfirmationResult(intent_id=payload.get("id", intent_id), status=status)
