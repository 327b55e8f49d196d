import asyncio
from urllib.parse import parse_qs

import httpx
import pytest

from storefront.payments.gateway import StripeGateway
from storefront.shared.utils import GatewayException, ValidationException


def form(request):
    return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}


class TestCreateIntent:
    def test_posts_amount_and_metadata(self, gateway, stripe_requests):
        intent = asyncio.run(gateway.create_intent(250000, "usd", {"shippingName": "Nimal Perera"}))

        assert intent.id == "pi_test_123"
        assert intent.client_secret == "pi_test_123_secret_abc"
        assert intent.amount == 250000
        assert intent.currency == "usd"

        request = stripe_requests[0]
        assert request.url.path == "/v1/payment_intents"
        assert request.headers["Authorization"] == "Bearer sk_test_123"
        sent = form(request)
        assert sent["amount"] == "250000"
        assert sent["currency"] == "usd"
        assert sent["payment_method_types[]"] == "card"
        assert sent["metadata[shippingName]"] == "Nimal Perera"

    @pytest.mark.parametrize("amount", [0, -100, True, 12.5])
    def test_invalid_amount_never_calls_processor(self, gateway, stripe_requests, amount):
        with pytest.raises(ValidationException) as exc:
            asyncio.run(gateway.create_intent(amount, "usd"))
        assert exc.value.fields == ["amount"]
        assert stripe_requests == []

    def test_missing_key(self, stripe_transport, stripe_requests):
        gateway = StripeGateway(api_key=None, transport=stripe_transport)
        with pytest.raises(GatewayException) as exc:
            asyncio.run(gateway.create_intent(1000, "usd"))
        assert exc.value.detail == "Payment processor is not configured"
        assert stripe_requests == []

    def test_processor_error_message(self):
        def handler(request):
            return httpx.Response(402, json={"error": {"message": "Your card was declined."}})

        gateway = StripeGateway(api_key="sk_test_123", transport=httpx.MockTransport(handler))
        with pytest.raises(GatewayException) as exc:
            asyncio.run(gateway.create_intent(1000, "usd"))
        assert exc.value.status_code == 502
        assert exc.value.detail == "Your card was declined."

    def test_processor_unreachable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        gateway = StripeGateway(api_key="sk_test_123", transport=httpx.MockTransport(handler))
        with pytest.raises(GatewayException) as exc:
            asyncio.run(gateway.create_intent(1000, "usd"))
        assert exc.value.detail == "Payment processor unavailable"
