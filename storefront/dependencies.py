from fastapi import Request

from storefront.shared.utils import settings
from storefront.products.store import ProductStore
from storefront.orders.store import OrderStore
from storefront.payments.gateway import StripeGateway


def get_product_store(request: Request) -> ProductStore:
    return ProductStore(request.app.mongodb.products)


def get_order_store(request: Request) -> OrderStore:
    return OrderStore(request.app.mongodb.orders)


def get_payment_gateway() -> StripeGateway:
    return StripeGateway(api_key=settings.STRIPE_SECRET_KEY, base_url=settings.STRIPE_API_BASE)
