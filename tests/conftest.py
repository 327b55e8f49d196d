"""Pytest fixtures for storefront tests."""

import copy
from types import SimpleNamespace
from urllib.parse import parse_qs

import httpx
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient
from pymongo.errors import DuplicateKeyError

from storefront.shared.utils import create_access_token

MISSING = object()


def lookup(doc, dotted_key):
    value = doc
    for part in dotted_key.split("."):
        if not isinstance(value, dict) or part not in value:
            return MISSING
        value = value[part]
    return value


def matches(doc, query):
    return all(lookup(doc, key) == expected for key, expected in query.items())


class FakeCursor:
    def __init__(self, docs):
        self.docs = docs

    def sort(self, key, direction=1):
        self.docs = sorted(
            self.docs,
            key=lambda d: (d.get(key) is not None, d.get(key)),
            reverse=direction < 0,
        )
        return self

    def __aiter__(self):
        self._iter = iter(self.docs)
        return self

    async def __anext__(self):
        try:
            return next(self._iter)
        except StopIteration:
            raise StopAsyncIteration


class FakeCollection:
    """Just enough of Motor's collection API for the stores."""

    def __init__(self, unique=()):
        self.docs = []
        self.unique = unique
        self.error = None

    def _check(self):
        if self.error is not None:
            raise self.error

    async def create_index(self, *args, **kwargs):
        return None

    async def insert_one(self, doc):
        self._check()
        for key in self.unique:
            if any(existing.get(key) == doc.get(key) for existing in self.docs):
                raise DuplicateKeyError(f"E11000 duplicate key error: {key}")
        stored = copy.deepcopy(doc)
        stored.setdefault("_id", ObjectId())
        self.docs.append(stored)
        return SimpleNamespace(inserted_id=stored["_id"])

    async def find_one(self, query):
        self._check()
        for doc in self.docs:
            if matches(doc, query):
                return copy.deepcopy(doc)
        return None

    def find(self, query=None):
        self._check()
        return FakeCursor([copy.deepcopy(doc) for doc in self.docs if matches(doc, query or {})])

    async def update_one(self, query, update):
        self._check()
        for doc in self.docs:
            if matches(doc, query):
                doc.update(copy.deepcopy(update.get("$set", {})))
                return SimpleNamespace(matched_count=1, modified_count=1)
        return SimpleNamespace(matched_count=0, modified_count=0)

    async def delete_one(self, query):
        self._check()
        for doc in self.docs:
            if matches(doc, query):
                self.docs.remove(doc)
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)


class FakeDatabase:
    def __init__(self):
        self.products = FakeCollection(unique=("id",))
        self.orders = FakeCollection()


@pytest.fixture
def db():
    return FakeDatabase()


@pytest.fixture
def stripe_requests():
    """Requests received by the mocked Stripe API."""
    return []


@pytest.fixture
def stripe_transport(stripe_requests):
    def handler(request: httpx.Request) -> httpx.Response:
        stripe_requests.append(request)
        form = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
        return httpx.Response(200, json={
            "id": "pi_test_123",
            "object": "payment_intent",
            "client_secret": "pi_test_123_secret_abc",
            "status": "requires_payment_method",
            "amount": int(form["amount"]),
            "currency": form["currency"],
        })

    return httpx.MockTransport(handler)


@pytest.fixture
def gateway(stripe_transport):
    from storefront.payments.gateway import StripeGateway

    return StripeGateway(api_key="sk_test_123", transport=stripe_transport)


@pytest.fixture
def app(db, gateway):
    from storefront.dependencies import get_payment_gateway
    from storefront.main import app
    from storefront.shared.security_config import limiter

    limiter.enabled = False
    app.mongodb = db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def api_client(app):
    # Not used as a context manager, so startup never connects to Mongo
    return TestClient(app)


@pytest.fixture
def admin_headers():
    token = create_access_token({"sub": "admin@lolipopwear.lk", "role": "admin"})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def product_payload():
    return {
        "id": 101,
        "name": "Classic Oxford Shirt",
        "price": 1000,
        "category": "men",
        "subcategory": "Shirts",
        "image": "/img/oxford.jpg",
        "images": ["/img/oxford-front.jpg", "/img/oxford-back.jpg"],
        "fit": "Slim Fit",
        "sizes": ["M", "L", "S"],
        "colors": ["White", "Blue"],
        "stock": 12,
        "rating": 4.5,
    }


@pytest.fixture
def order_draft():
    return {
        "user": "guest",
        "orderItems": [
            {"product": 101, "name": "Classic Oxford Shirt", "quantity": 2, "price": 1000,
             "size": "M", "color": "White", "image": "/img/oxford-front.jpg"},
        ],
        "shippingAddress": {
            "name": "Nimal Perera", "phone": "0771234567", "street": "12 Galle Road",
            "city": "Colombo", "zipCode": "00300", "country": "Sri Lanka",
        },
        "paymentMethod": "Card",
        "paymentResult": {"id": "pi_test_123", "status": "succeeded", "emailAddress": "nimal@example.com"},
        "itemsPrice": 2000,
        "shippingPrice": 500,
        "taxPrice": 0,
        "totalPrice": 2500,
        "isPaid": True,
        "orderStatus": "Processing",
    }
