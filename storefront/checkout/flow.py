"""
Checkout as an explicit state machine.

    Editing -> PaymentPending -> Confirming -> Succeeded | Failed
    Succeeded -> OrderWriteAttempted -> OrderWriteSucceeded | OrderWriteFailed

Payment comes before bookkeeping: once the processor reports success the
shopper always reaches a receipt, even if the order record could not be
written. In that case the receipt carries the processor's transaction id
for manual reconciliation and the charge is never retried.
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Protocol
import logging

from storefront.shared.utils import AppException
from storefront.checkout.cart import Cart
from storefront.checkout.client import IntentResult
from storefront.checkout.pricing import shipping_fee, quantize, to_minor_units
from storefront.checkout.processor import ConfirmationResult
from storefront.checkout.schemas import CartItem, ShippingInfo
from storefront.orders.schemas import OrderResponse

logger = logging.getLogger(__name__)

# Recorded on order lines added without a size or color choice
DEFAULT_SIZE = "M"
DEFAULT_COLOR = "Default"


class CheckoutState(str, Enum):
    EDITING = "Editing"
    PAYMENT_PENDING = "PaymentPending"
    CONFIRMING = "Confirming"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    ORDER_WRITE_ATTEMPTED = "OrderWriteAttempted"
    ORDER_WRITE_SUCCEEDED = "OrderWriteSucceeded"
    ORDER_WRITE_FAILED = "OrderWriteFailed"


TERMINAL_STATES = {CheckoutState.ORDER_WRITE_SUCCEEDED, CheckoutState.ORDER_WRITE_FAILED}


class CheckoutStateError(Exception):
    """A transition was requested from a state that does not allow it."""


# --- Ports ---

class IntentRequester(Protocol):
    async def create_payment_intent(self, amount: int, shipping_info: ShippingInfo, cart_items: List[CartItem]) -> IntentResult: ...

class PaymentConfirmer(Protocol):
    async def confirm(self, client_secret: str, payment_method: str, shipping_info: ShippingInfo) -> ConfirmationResult: ...

class OrderWriter(Protocol):
    async def create_order(self, draft: dict) -> OrderResponse: ...


# --- Results ---

@dataclass
class Transition:
    source: CheckoutState
    target: CheckoutState
    ok: bool = True
    message: Optional[str] = None


@dataclass
class Receipt:
    transaction_id: str
    items_price: Decimal
    shipping_price: Decimal
    total_price: Decimal
    order: Optional[OrderResponse] = None
    warning: Optional[str] = None


@dataclass
class CheckoutOutcome:
    state: CheckoutState
    transitions: List[Transition] = field(default_factory=list)
    receipt: Optional[Receipt] = None

    @property
    def message(self) -> Optional[str]:
        return self.transitions[-1].message if self.transitions else None

    @property
    def paid(self) -> bool:
        return self.state in TERMINAL_STATES


class CheckoutFlow:
    def __init__(
        self,
        cart: Cart,
        intents: IntentRequester,
        confirmer: PaymentConfirmer,
        orders: OrderWriter,
        user_id: Optional[str] = None,
    ):
        self.cart = cart
        self.intents = intents
        self.confirmer = confirmer
        self.orders = orders
        self.user_id = user_id

        self.state = CheckoutState.EDITING
        self.shipping_info: Optional[ShippingInfo] = None
        self.items: List[CartItem] = []
        self.items_price = Decimal("0.00")
        self.shipping_price = Decimal("0.00")
        self.total_price = Decimal("0.00")
        self.client_secret: Optional[str] = None
        self.confirmation: Optional[ConfirmationResult] = None
        self.receipt: Optional[Receipt] = None

    def _expect(self, action: str, *states: CheckoutState):
        if self.state not in states:
            raise CheckoutStateError(f"Cannot {action} while checkout is {self.state.value}")

    def _move(self, target: CheckoutState, ok: bool = True, message: Optional[str] = None) -> Transition:
        transition = Transition(self.state, target, ok, message)
        logger.debug(f"Checkout {self.state.value} -> {target.value}")
        self.state = target
        return transition

    def _fail(self, message: str) -> Transition:
        logger.warning(f"Checkout failed: {message}")
        return self._move(CheckoutState.FAILED, ok=False, message=message)

    # Editing -> PaymentPending
    def submit(self, shipping_info: ShippingInfo) -> Transition:
        self._expect("submit", CheckoutState.EDITING)

        missing = shipping_info.missing_fields()
        if missing:
            return Transition(self.state, self.state, ok=False,
                              message=f"Please fill in all required fields: {', '.join(missing)}")
        if self.cart.is_empty:
            return Transition(self.state, self.state, ok=False, message="Your cart is empty")

        self.shipping_info = shipping_info
        self.items = self.cart.items
        self.items_price = self.cart.total()
        self.shipping_price = shipping_fee(self.items_price)
        self.total_price = quantize(self.items_price + self.shipping_price)
        return self._move(CheckoutState.PAYMENT_PENDING)

    # PaymentPending -> Confirming | Failed
    async def request_intent(self) -> Transition:
        self._expect("request a payment intent", CheckoutState.PAYMENT_PENDING)

        amount = to_minor_units(self.total_price)
        if amount <= 0:
            return self._fail("Invalid amount")

        try:
            intent = await self.intents.create_payment_intent(amount, self.shipping_info, self.items)
        except AppException as e:
            return self._fail(str(e.detail))

        self.client_secret = intent.client_secret
        return self._move(CheckoutState.CONFIRMING)

    # Confirming -> Succeeded | Failed
    async def confirm(self, payment_method: str) -> Transition:
        self._expect("confirm payment", CheckoutState.CONFIRMING)

        self.confirmation = await self.confirmer.confirm(self.client_secret, payment_method, self.shipping_info)
        if not self.confirmation.ok:
            return self._fail(f"Payment failed: {self.confirmation.error}")
        return self._move(CheckoutState.SUCCEEDED, message="Payment successful! Processing your order...")

    def order_draft(self) -> dict:
        info = self.shipping_info
        return {
            "user": self.user_id or "guest",
            "orderItems": [
                {
                    "product": item.product_id,
                    "name": item.name,
                    "quantity": item.quantity,
                    "price": str(item.price),
                    "image": item.image,
                    "size": item.size or DEFAULT_SIZE,
                    "color": item.color or DEFAULT_COLOR,
                }
                for item in self.items
            ],
            "shippingAddress": {
                "name": info.full_name,
                "phone": info.phone,
                "street": info.address,
                "city": info.city,
                "zipCode": info.postal_code,
                "country": info.country,
            },
            "paymentMethod": "Card",
            "paymentResult": {
                "id": self.confirmation.intent_id,
                "status": self.confirmation.status,
                "emailAddress": info.email,
            },
            "itemsPrice": str(self.items_price),
            "shippingPrice": str(self.shipping_price),
            "taxPrice": "0",
            "totalPrice": str(self.total_price),
            "isPaid": True,
            "paidAt": datetime.utcnow().isoformat(),
            "orderStatus": "Processing",
        }

    # Succeeded -> OrderWriteAttempted -> OrderWriteSucceeded | OrderWriteFailed
    async def record_order(self) -> Transition:
        self._expect("record the order", CheckoutState.SUCCEEDED)
        self._move(CheckoutState.ORDER_WRITE_ATTEMPTED)

        transaction_id = self.confirmation.intent_id
        self.receipt = Receipt(
            transaction_id=transaction_id,
            items_price=self.items_price,
            shipping_price=self.shipping_price,
            total_price=self.total_price,
        )
        try:
            self.receipt.order = await self.orders.create_order(self.order_draft())
        except Exception:
            # The charge stands whatever happens here
            logger.error(
                "Order write failed after successful payment",
                extra={"payment_intent_id": transaction_id},
                exc_info=True,
            )
            self.receipt.warning = f"Payment successful but order creation failed. Payment ID: {transaction_id}"
            self.cart.clear()
            return self._move(CheckoutState.ORDER_WRITE_FAILED, ok=False, message=self.receipt.warning)

        self.cart.clear()
        return self._move(CheckoutState.ORDER_WRITE_SUCCEEDED, message="Order placed successfully!")

    # Failed -> Editing
    def retry(self) -> Transition:
        self._expect("retry", CheckoutState.FAILED)
        self.client_secret = None
        self.confirmation = None
        return self._move(CheckoutState.EDITING)

    async def checkout(self, shipping_info: ShippingInfo, payment_method: str) -> CheckoutOutcome:
        """Run every transition in order, stopping at the first failure."""
        outcome = CheckoutOutcome(state=self.state)

        outcome.transitions.append(self.submit(shipping_info))
        if self.state == CheckoutState.PAYMENT_PENDING:
            outcome.transitions.append(await self.request_intent())
        if self.state == CheckoutState.CONFIRMING:
            outcome.transitions.append(await self.confirm(payment_method))
        if self.state == CheckoutState.SUCCEEDED:
            outcome.transitions.append(await self.record_order())

        outcome.state = self.state
        outcome.receipt = self.receipt
        return outcome
