from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from decimal import Decimal
from datetime import datetime

from storefront.shared.security_config import sanitize_input
from storefront.shared.utils import CamelModel, Money
from storefront.orders.models import OrderOwner, OrderStatus, PaymentMethod

class OrderItemIn(CamelModel):
    product: Optional[int] = None
    name: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1)
    price: Decimal = Field(..., ge=0)
    size: Optional[str] = None
    color: Optional[str] = None
    image: Optional[str] = None

class ShippingAddress(CamelModel):
    name: str = ""
    phone: str = ""
    street: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    country: str = ""

    def is_blank(self) -> bool:
        return not any(value.strip() for value in self.model_dump().values())

class ShippingAddressIn(ShippingAddress):
    @field_validator('name', 'phone', 'street', 'city', 'state', 'zip_code', 'country')
    def sanitize_fields(cls, v):
        return sanitize_input(v)

class PaymentResult(CamelModel):
    id: Optional[str] = None
    status: Optional[str] = None
    update_time: Optional[str] = None
    email_address: Optional[str] = None

class OrderDraft(CamelModel):
    """
    Body of POST /orders. Required parts are optional here so the store can
    report every missing field at once instead of failing on the first.
    """
    user: Optional[str] = None
    order_items: Optional[List[OrderItemIn]] = None
    shipping_address: Optional[ShippingAddressIn] = None
    payment_method: Optional[PaymentMethod] = None
    payment_result: Optional[PaymentResult] = None
    items_price: Optional[Decimal] = Field(None, ge=0)
    shipping_price: Optional[Decimal] = Field(None, ge=0)
    tax_price: Optional[Decimal] = Field(None, ge=0)
    total_price: Optional[Decimal] = Field(None, ge=0)
    is_paid: bool = False
    paid_at: Optional[datetime] = None
    order_status: Optional[OrderStatus] = None

class OrderStatusUpdate(BaseModel):
    status: OrderStatus

class PaymentResultUpdate(BaseModel):
    # Field names follow the processor's webhook/SDK payload
    id: str
    status: str
    update_time: Optional[str] = None
    email_address: Optional[str] = None

class OrderItemResponse(CamelModel):
    product: Optional[int] = None
    name: str
    quantity: int
    price: Money
    size: Optional[str] = None
    color: Optional[str] = None
    image: Optional[str] = None

class OrderResponse(CamelModel):
    id: str
    owner: OrderOwner
    order_items: List[OrderItemResponse]
    shipping_address: ShippingAddress
    payment_method: PaymentMethod
    payment_result: PaymentResult
    items_price: Money
    shipping_price: Money
    tax_price: Money
    total_price: Money
    is_paid: bool
    paid_at: Optional[datetime] = None
    is_delivered: bool
    delivered_at: Optional[datetime] = None
    order_status: OrderStatus
    created_at: datetime
    updated_at: Optional[datetime] = None
