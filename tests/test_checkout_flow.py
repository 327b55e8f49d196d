import asyncio
from decimal import Decimal
from types import SimpleNamespace

import pytest

from storefront.checkout.cart import Cart
from storefront.checkout.client import IntentResult
from storefront.checkout.flow import CheckoutFlow, CheckoutState, CheckoutStateError
from storefront.checkout.processor import ConfirmationResult
from storefront.checkout.schemas import ShippingInfo
from storefront.orders.schemas import OrderDraft
from storefront.orders.store import OrderStore
from storefront.shared.utils import GatewayException, PersistenceException, settings


class FakeIntents:
    def __init__(self, error=None):
        self.calls = []
        self.error = error

    async def create_payment_intent(self, amount, shipping_info, cart_items):
        self.calls.append(amount)
        if self.error:
            raise self.error
        return IntentResult(client_secret="pi_test_123_secret_abc", payment_intent_id="pi_test_123", amount=amount)


class FakeConfirmer:
    def __init__(self, results):
        self.results = list(results)
        self.calls = []

    async def confirm(self, client_secret, payment_method, shipping_info):
        self.calls.append((client_secret, payment_method))
        return self.results.pop(0)


class StoreWriter:
    """Writes drafts straight into an OrderStore, as the REST endpoint would."""

    def __init__(self, store):
        self.store = store
        self.calls = 0

    async def create_order(self, draft):
        self.calls += 1
        return await self.store.create(OrderDraft(**draft))


class BrokenWriter:
    def __init__(self):
        self.calls = 0

    async def create_order(self, draft):
        self.calls += 1
        raise PersistenceException("Could not reach the order service")


SUCCEEDED = ConfirmationResult(intent_id="pi_test_123", status="succeeded")
DECLINED = ConfirmationResult(intent_id="pi_test_123", error="Your card was declined.")


@pytest.fixture
def shipping():
    return ShippingInfo(
        full_name="Nimal Perera", email="nimal@example.com", phone="0771234567",
        address="12 Galle Road", city="Colombo", postal_code="00300",
    )


@pytest.fixture
def cart():
    cart = Cart()
    product = SimpleNamespace(id=101, name="Classic Oxford Shirt", price=Decimal("1000"),
                              image="/img/oxford.jpg", images=["/img/oxford-front.jpg"])
    cart.add(product, "M", "White", quantity=2)
    return cart


@pytest.fixture
def writer(db):
    return StoreWriter(OrderStore(db.orders))


def run(flow, shipping, payment_method="pm_card_visa"):
    return asyncio.run(flow.checkout(shipping, payment_method))


class TestCheckoutFlow:
    def test_successful_checkout(self, cart, shipping, writer, db):
        intents = FakeIntents()
        confirmer = FakeConfirmer([SUCCEEDED])
        flow = CheckoutFlow(cart, intents, confirmer, writer)

        outcome = run(flow, shipping)

        assert outcome.state == CheckoutState.ORDER_WRITE_SUCCEEDED
        assert outcome.paid
        assert [t.target for t in outcome.transitions] == [
            CheckoutState.PAYMENT_PENDING,
            CheckoutState.CONFIRMING,
            CheckoutState.SUCCEEDED,
            CheckoutState.ORDER_WRITE_SUCCEEDED,
        ]
        assert intents.calls == [250000]
        assert confirmer.calls == [("pi_test_123_secret_abc", "pm_card_visa")]

        receipt = outcome.receipt
        assert receipt.transaction_id == "pi_test_123"
        assert receipt.items_price == Decimal("2000.00")
        assert receipt.shipping_price == Decimal("500.00")
        assert receipt.total_price == Decimal("2500.00")
        assert receipt.warning is None
        assert receipt.order.total_price == Decimal("2500")
        assert cart.is_empty

        stored = db.orders.docs[0]
        assert stored["owner"] == {"kind": "guest"}
        assert stored["payment_method"] == "Card"
        assert stored["order_status"] == "Processing"
        assert stored["is_paid"] is True
        assert stored["payment_result"]["id"] == "pi_test_123"
        assert stored["shipping_address"]["street"] == "12 Galle Road"

    def test_registered_shopper(self, cart, shipping, writer, db):
        flow = CheckoutFlow(cart, FakeIntents(), FakeConfirmer([SUCCEEDED]), writer, user_id="user-42")
        run(flow, shipping)
        assert db.orders.docs[0]["owner"] == {"kind": "registered", "user_id": "user-42"}

    def test_order_write_failure_still_gives_receipt(self, cart, shipping):
        confirmer = FakeConfirmer([SUCCEEDED])
        orders = BrokenWriter()
        flow = CheckoutFlow(cart, FakeIntents(), confirmer, orders)

        outcome = run(flow, shipping)

        assert outcome.state == CheckoutState.ORDER_WRITE_FAILED
        assert outcome.paid
        assert outcome.receipt.transaction_id == "pi_test_123"
        assert outcome.receipt.order is None
        assert outcome.receipt.warning == "Payment successful but order creation failed. Payment ID: pi_test_123"
        assert outcome.message == outcome.receipt.warning
        assert len(confirmer.calls) == 1
        assert orders.calls == 1
        assert cart.is_empty

    def test_declined_card_then_retry(self, cart, shipping, writer):
        confirmer = FakeConfirmer([DECLINED, SUCCEEDED])
        flow = CheckoutFlow(cart, FakeIntents(), confirmer, writer)

        outcome = run(flow, shipping)
        assert outcome.state == CheckoutState.FAILED
        assert not outcome.paid
        assert outcome.message == "Payment failed: Your card was declined."
        assert outcome.receipt is None
        assert writer.calls == 0
        assert not cart.is_empty

        flow.retry()
        assert flow.state == CheckoutState.EDITING
        outcome = run(flow, shipping)
        assert outcome.state == CheckoutState.ORDER_WRITE_SUCCEEDED
        assert len(confirmer.calls) == 2

    def test_missing_shipping_fields(self, cart, writer):
        intents = FakeIntents()
        flow = CheckoutFlow(cart, intents, FakeConfirmer([]), writer)

        outcome = run(flow, ShippingInfo(full_name="Nimal Perera", email="nimal@example.com"))

        assert outcome.state == CheckoutState.EDITING
        assert outcome.message == "Please fill in all required fields: phone, address"
        assert intents.calls == []

    def test_empty_cart(self, shipping, writer):
        intents = FakeIntents()
        flow = CheckoutFlow(Cart(), intents, FakeConfirmer([]), writer)
        outcome = run(flow, shipping)
        assert outcome.state == CheckoutState.EDITING
        assert outcome.message == "Your cart is empty"
        assert intents.calls == []

    def test_zero_amount_never_requests_intent(self, shipping, writer, monkeypatch):
        monkeypatch.setattr(settings, "FLAT_SHIPPING_FEE", Decimal("0"))
        cart = Cart()
        cart.add(SimpleNamespace(id=9, name="Free Sticker", price=Decimal("0"), image=None, images=[]))
        intents = FakeIntents()
        flow = CheckoutFlow(cart, intents, FakeConfirmer([]), writer)

        outcome = run(flow, shipping)

        assert outcome.state == CheckoutState.FAILED
        assert outcome.message == "Invalid amount"
        assert intents.calls == []

    def test_intent_failure(self, cart, shipping, writer):
        intents = FakeIntents(error=GatewayException("Payment processor unavailable"))
        confirmer = FakeConfirmer([])
        flow = CheckoutFlow(cart, intents, confirmer, writer)

        outcome = run(flow, shipping)

        assert outcome.state == CheckoutState.FAILED
        assert outcome.message == "Payment processor unavailable"
        assert confirmer.calls == []

    def test_out_of_order_transition(self, cart, shipping, writer):
        flow = CheckoutFlow(cart, FakeIntents(), FakeConfirmer([SUCCEEDED]), writer)
        with pytest.raises(CheckoutStateError):
            asyncio.run(flow.confirm("pm_card_visa"))
        with pytest.raises(CheckoutStateError):
            flow.retry()

    def test_finished_checkout_cannot_run_again(self, cart, shipping, writer):
        flow = CheckoutFlow(cart, FakeIntents(), FakeConfirmer([SUCCEEDED]), writer)
        run(flow, shipping)
        with pytest.raises(CheckoutStateError):
            run(flow, shipping)

    def test_order_draft_shape(self, cart, shipping, writer):
        flow = CheckoutFlow(cart, FakeIntents(), FakeConfirmer([SUCCEEDED]), writer)
        flow.submit(shipping)
        asyncio.run(flow.request_intent())
        asyncio.run(flow.confirm("pm_card_visa"))

        draft = flow.order_draft()
        assert draft["user"] == "guest"
        assert draft["paymentMethod"] == "Card"
        assert draft["isPaid"] is True
        assert draft["orderStatus"] == "Processing"
        assert draft["totalPrice"] == "2500.00"
        assert draft["orderItems"][0]["image"] == "/img/oxford-front.jpg"
        assert draft["shippingAddress"]["zipCode"] == "00300"
        assert draft["paymentResult"] == {
            "id": "pi_test_123", "status": "succeeded", "emailAddress": "nimal@example.com",
        }

    def test_order_draft_defaults_size_and_color(self, shipping, writer):
        cart = Cart()
        cart.add(SimpleNamespace(id=7, name="Logo Cap", price=Decimal("450"), image="/img/cap.jpg", images=[]))
        flow = CheckoutFlow(cart, FakeIntents(), FakeConfirmer([SUCCEEDED]), writer)
        flow.submit(shipping)
        asyncio.run(flow.request_intent())
        asyncio.run(flow.confirm("pm_card_visa"))

        line = flow.order_draft()["orderItems"][0]
        assert line["size"] == "M"
        assert line["color"] == "Default"

    def test_shipping_info_keeps_raw_text(self):
        info = ShippingInfo(full_name="Liam O'Brien", address="5 Hill & Dale Rd")
        assert info.full_name == "Liam O'Brien"
        assert info.address == "5 Hill & Dale Rd"
