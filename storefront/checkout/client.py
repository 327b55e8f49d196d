"""Thin async client for the storefront REST API, used by the checkout flow."""
from dataclasses import dataclass
from typing import Dict, List, Optional
import logging

import httpx

from storefront.shared.utils import (
    settings, GatewayException, NotFoundException, PersistenceException, ValidationException
)
from storefront.checkout.processor import intent_id_from_secret
from storefront.checkout.schemas import CartItem, ShippingInfo
from storefront.orders.schemas import OrderResponse
from storefront.products.schemas import ProductFilters, ProductResponse

logger = logging.getLogger(__name__)


@dataclass
class IntentResult:
    client_secret: str
    payment_intent_id: str
    amount: int


def response_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(payload, dict) and payload.get("message"):
        return payload["message"]
    return response.reason_phrase


class StorefrontClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: float = 10.0,
    ):
        self.base_url = base_url or settings.STOREFRONT_API_URL
        self.transport = transport
        self.headers = headers or {}
        self.timeout = timeout

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url, transport=self.transport, headers=self.headers, timeout=self.timeout
        )

    # Catalog

    async def _get_data(self, path: str):
        async with self._client() as client:
            try:
                response = await client.get(path)
            except httpx.RequestError as e:
                raise PersistenceException("Storefront API unavailable") from e
        if response.status_code == 404:
            raise NotFoundException(response_message(response))
        if response.is_error:
            raise PersistenceException(response_message(response))
        return response.json()["data"]

    async def get_category_products(self, category: str) -> List[ProductResponse]:
        data = await self._get_data(f"/api/products/category/{category}")
        return [ProductResponse(**product) for product in data]

    async def get_product(self, product_id: int) -> ProductResponse:
        return ProductResponse(**await self._get_data(f"/api/products/{product_id}"))

    async def get_filters(self, category: str) -> ProductFilters:
        return ProductFilters(**await self._get_data(f"/api/products/filters/{category}"))

    async def get_user_orders(self, user_id: str) -> List[OrderResponse]:
        data = await self._get_data(f"/api/orders/user/{user_id}")
        return [OrderResponse(**order) for order in data]

    # Checkout

    async def create_payment_intent(self, amount: int, shipping_info: ShippingInfo, cart_items: List[CartItem]) -> IntentResult:
        payload = {
            "amount": amount,
            "shippingInfo": shipping_info.model_dump(mode="json", by_alias=True),
            "cartItems": [item.model_dump(mode="json", by_alias=True) for item in cart_items],
        }
        async with self._client() as client:
            try:
                response = await client.post("/api/orders/create-payment-intent", json=payload)
            except httpx.RequestError as e:
                raise GatewayException("Could not reach the payment service") from e

        if response.status_code == 400:
            raise ValidationException(response_message(response))
        if response.is_error:
            raise GatewayException(response_message(response))

        try:
            data = response.json()
        except ValueError:
            data = None
        if not isinstance(data, dict) or not data.get("success") or not data.get("clientSecret"):
            logger.error(f"Unusable payment intent response: {response.text[:200]}")
            raise GatewayException("Failed to initialize payment")

        # Only clientSecret is guaranteed; the intent id is its prefix
        client_secret = data["clientSecret"]
        return IntentResult(
            client_secret=client_secret,
            payment_intent_id=data.get("paymentIntentId") or intent_id_from_secret(client_secret),
            amount=data.get("amount", amount),
        )

    async def create_order(self, draft: dict) -> OrderResponse:
        async with self._client() as client:
            try:
                response = await client.post("/api/orders", json=draft)
            except httpx.RequestError as e:
                raise PersistenceException("Could not reach the order service") from e

        if response.status_code == 400:
            raise ValidationException(response_message(response))
        if response.is_error:
            raise PersistenceException(response_message(response))
        return OrderResponse(**response.json()["data"])
