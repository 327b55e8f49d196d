from decimal import Decimal
from typing import List, Optional, Tuple

from pydantic import Field
from pydantic.alias_generators import to_camel

from storefront.shared.utils import CamelModel

REQUIRED_SHIPPING_FIELDS = ("full_name", "email", "phone", "address")

class CartItem(CamelModel):
    product_id: int
    name: str
    image: Optional[str] = None
    price: Decimal = Field(..., ge=0)
    size: Optional[str] = None
    color: Optional[str] = None
    quantity: int = Field(1, ge=1)

    @property
    def key(self) -> Tuple[int, Optional[str], Optional[str]]:
        return (self.product_id, self.size, self.color)

    @property
    def subtotal(self) -> Decimal:
        return self.price * self.quantity

class ShippingInfo(CamelModel):
    # Raw text as typed; the server escapes what it stores
    full_name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    city: str = ""
    postal_code: str = ""
    country: str = "Sri Lanka"

    def missing_fields(self) -> List[str]:
        # Reported with their wire names
        return [
            to_camel(name)
            for name in REQUIRED_SHIPPING_FIELDS
            if not getattr(self, name).strip()
        ]
