from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from storefront.shared.utils import settings
from storefront.checkout.schemas import CartItem

CENT = Decimal("0.01")


def quantize(amount: Decimal) -> Decimal:
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def cart_subtotal(items: Iterable[CartItem]) -> Decimal:
    return quantize(sum((item.subtotal for item in items), Decimal(0)))


def shipping_fee(subtotal: Decimal, threshold: Optional[Decimal] = None, flat_fee: Optional[Decimal] = None) -> Decimal:
    """Free shipping strictly above the threshold, flat fee otherwise."""
    threshold = settings.FREE_SHIPPING_THRESHOLD if threshold is None else threshold
    flat_fee = settings.FLAT_SHIPPING_FEE if flat_fee is None else flat_fee
    if subtotal > threshold:
        return Decimal("0.00")
    return quantize(flat_fee)


def checkout_total(subtotal: Decimal) -> Decimal:
    return quantize(subtotal + shipping_fee(subtotal))


def to_minor_units(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).quantize(Decimal(1), rounding=ROUND_HALF_UP))
