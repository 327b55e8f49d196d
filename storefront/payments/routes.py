from fastapi import APIRouter, Depends, Request
import logging

from storefront.dependencies import get_payment_gateway
from storefront.shared.security_config import PAYMENT_LIMIT, limiter
from storefront.shared.utils import ValidationException, settings
from storefront.checkout.pricing import cart_subtotal, checkout_total, to_minor_units
from storefront.payments.gateway import StripeGateway
from storefront.payments.schemas import PaymentIntentRequest, PaymentIntentResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/orders", tags=["payments"])


@router.post("/create-payment-intent", response_model=PaymentIntentResponse)
@limiter.limit(PAYMENT_LIMIT)
async def create_payment_intent(
    body: PaymentIntentRequest,
    request: Request,
    gateway: StripeGateway = Depends(get_payment_gateway)
):
    # Re-checked here even though the checkout form validates first
    if not body.cart_items:
        raise ValidationException("Cart is empty", fields=["cartItems"])
    missing = body.shipping_info.missing_fields()
    if missing:
        raise ValidationException(f"Missing shipping fields: {', '.join(missing)}", fields=missing)

    amount = to_minor_units(checkout_total(cart_subtotal(body.cart_items)))
    if body.amount is not None and body.amount != amount:
        logger.warning(
            f"Client amount {body.amount} does not match computed amount {amount}",
            extra={"amount": amount, "request_id": getattr(request.state, "request_id", None)},
        )
        raise ValidationException("Amount does not match cart total", fields=["amount"])

    intent = await gateway.create_intent(
        amount,
        settings.CURRENCY,
        metadata={
            "shippingName": body.shipping_info.full_name,
            "shippingEmail": body.shipping_info.email,
            "shippingPhone": body.shipping_info.phone,
        },
    )
    return PaymentIntentResponse(
        client_secret=intent.client_secret,
        payment_intent_id=intent.id,
        amount=intent.amount,
        currency=intent.currency,
    )
