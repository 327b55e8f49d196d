from datetime import datetime
from enum import Enum
from typing import Optional, List, Union, Literal, Annotated
from decimal import Decimal
from pydantic import BaseModel, Field, ConfigDict

from storefront.shared.utils import CamelModel

class PaymentMethod(str, Enum):
    COD = "COD"
    CARD = "Card"
    UPI = "UPI"
    NET_BANKING = "NetBanking"

class OrderStatus(str, Enum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"

# --- Owner ---
class RegisteredOwner(CamelModel):
    kind: Literal["registered"] = "registered"
    user_id: str

class GuestOwner(CamelModel):
    kind: Literal["guest"] = "guest"

OrderOwner = Annotated[Union[RegisteredOwner, GuestOwner], Field(discriminator="kind")]

def owner_from_user_ref(user: Optional[str]) -> Union[RegisteredOwner, GuestOwner]:
    if not user or user == "guest":
        return GuestOwner()
    return RegisteredOwner(user_id=user)

# --- Embedded documents ---
class OrderItemDB(BaseModel):
    # Snapshot taken at order time, never re-read from the catalog
    product: Optional[int] = None
    name: str
    quantity: int
    price: Decimal
    size: Optional[str] = None
    color: Optional[str] = None
    image: Optional[str] = None

class ShippingAddressDB(BaseModel):
    name: str = ""
    phone: str = ""
    street: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    country: str = ""

class PaymentResultDB(BaseModel):
    id: Optional[str] = None
    status: Optional[str] = None
    update_time: Optional[str] = None
    email_address: Optional[str] = None

class OrderDB(BaseModel):
    id: Optional[str] = Field(None, alias="_id")
    owner: OrderOwner = Field(default_factory=GuestOwner)
    order_items: List[OrderItemDB]
    shipping_address: ShippingAddressDB
    payment_method: PaymentMethod
    payment_result: PaymentResultDB = Field(default_factory=PaymentResultDB)
    items_price: Decimal = Decimal(0)
    shipping_price: Decimal = Decimal(0)
    tax_price: Decimal = Decimal(0)
    total_price: Decimal = Decimal(0)
    is_paid: bool = False
    paid_at: Optional[datetime] = None
    is_delivered: bool = False
    delivered_at: Optional[datetime] = None
    order_status: OrderStatus = OrderStatus.PENDING
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)
