from typing import Optional, List

from pydantic import Field

from storefront.shared.utils import CamelModel
from storefront.checkout.schemas import CartItem, ShippingInfo

class PaymentIntentRequest(CamelModel):
    # Client's own computation; checked against the server's
    amount: Optional[int] = None
    shipping_info: ShippingInfo = Field(default_factory=ShippingInfo)
    cart_items: List[CartItem] = []

class PaymentIntentResponse(CamelModel):
    success: bool = True
    client_secret: str
    payment_intent_id: str
    amount: int
    currency: str
