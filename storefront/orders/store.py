from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import List
import logging

from bson import ObjectId
from bson.errors import InvalidId

from storefront.shared.utils import (
    NotFoundException, ValidationException, persistence_guard, to_mongo
)
from storefront.orders.models import (
    OrderDB, OrderItemDB, OrderStatus, PaymentResultDB, ShippingAddressDB,
    owner_from_user_ref
)
from storefront.orders.schemas import OrderDraft, OrderResponse, PaymentResultUpdate

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def str_to_oid(id: str) -> ObjectId:
    try:
        return ObjectId(id)
    except (InvalidId, TypeError):
        raise NotFoundException("Order not found")


def to_response(doc: dict) -> OrderResponse:
    doc["id"] = str(doc.pop("_id"))
    return OrderResponse(**doc)


def cents(amount: Decimal) -> Decimal:
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def missing_fields(draft: OrderDraft) -> List[str]:
    missing = []
    if not draft.order_items:
        missing.append("orderItems")
    if draft.shipping_address is None or draft.shipping_address.is_blank():
        missing.append("shippingAddress")
    if draft.payment_method is None:
        missing.append("paymentMethod")
    return missing


def mismatched_totals(draft: OrderDraft) -> List[str]:
    """
    Supplied totals must agree with the items they describe. Omitted totals
    are not checked; they default to 0.
    """
    subtotal = sum((item.price * item.quantity for item in draft.order_items), Decimal(0))
    items_price = draft.items_price if draft.items_price is not None else subtotal
    mismatched = []
    if draft.items_price is not None and cents(draft.items_price) != cents(subtotal):
        mismatched.append("itemsPrice")
    if draft.total_price is not None:
        expected = items_price + (draft.shipping_price or 0) + (draft.tax_price or 0)
        if cents(draft.total_price) != cents(expected):
            mismatched.append("totalPrice")
    return mismatched


class OrderStore:
    def __init__(self, collection):
        self.collection = collection

    async def ensure_indexes(self):
        await self.collection.create_index("owner.user_id")
        await self.collection.create_index("created_at")

    async def create(self, draft: OrderDraft) -> OrderResponse:
        missing = missing_fields(draft)
        if missing:
            raise ValidationException(f"Missing required fields: {', '.join(missing)}", fields=missing)

        mismatched = mismatched_totals(draft)
        if mismatched:
            raise ValidationException(
                f"Order totals do not match the order items: {', '.join(mismatched)}",
                fields=mismatched,
            )

        order_db = OrderDB(
            owner=owner_from_user_ref(draft.user),
            order_items=[OrderItemDB(**item.model_dump()) for item in draft.order_items],
            shipping_address=ShippingAddressDB(**draft.shipping_address.model_dump()),
            payment_method=draft.payment_method,
            payment_result=PaymentResultDB(**draft.payment_result.model_dump()) if draft.payment_result else PaymentResultDB(),
            items_price=draft.items_price or Decimal(0),
            shipping_price=draft.shipping_price or Decimal(0),
            tax_price=draft.tax_price or Decimal(0),
            total_price=draft.total_price or Decimal(0),
            is_paid=draft.is_paid,
            paid_at=(draft.paid_at or datetime.utcnow()) if draft.is_paid else None,
            order_status=draft.order_status or OrderStatus.PENDING,
        )
        order_dict = to_mongo(order_db.model_dump(exclude={"id"}))

        with persistence_guard("create order"):
            result = await self.collection.insert_one(order_dict)

        logger.info("Order created", extra={
            "order_id": str(result.inserted_id),
            "payment_intent_id": order_dict["payment_result"].get("id"),
            "amount": order_dict["total_price"],
        })
        return await self.get(str(result.inserted_id))

    async def get(self, order_id: str) -> OrderResponse:
        with persistence_guard("load order"):
            doc = await self.collection.find_one({"_id": str_to_oid(order_id)})
        if not doc:
            raise NotFoundException("Order not found")
        return to_response(doc)

    async def _list(self, query: dict) -> List[OrderResponse]:
        with persistence_guard("list orders"):
            docs = [doc async for doc in self.collection.find(query).sort("created_at", -1)]
        return [to_response(doc) for doc in docs]

    async def list_all(self) -> List[OrderResponse]:
        return await self._list({})

    async def list_by_user(self, user_id: str) -> List[OrderResponse]:
        return await self._list({"owner.user_id": user_id})

    async def _update(self, order_id: str, fields: dict) -> OrderResponse:
        fields["updated_at"] = datetime.utcnow()
        with persistence_guard("update order"):
            result = await self.collection.update_one(
                {"_id": str_to_oid(order_id)}, {"$set": to_mongo(fields)}
            )
        if result.matched_count == 0:
            raise NotFoundException("Order not found")
        return await self.get(order_id)

    async def set_status(self, order_id: str, new_status: OrderStatus) -> OrderResponse:
        # Any status may follow any other; admins correct mistakes by hand
        fields = {"order_status": new_status}
        if new_status == OrderStatus.DELIVERED:
            fields["is_delivered"] = True
            fields["delivered_at"] = datetime.utcnow()
        order = await self._update(order_id, fields)
        logger.info(f"Order status set to {order.order_status.value}", extra={"order_id": order_id})
        return order

    async def mark_paid(self, order_id: str, payment_result: PaymentResultUpdate) -> OrderResponse:
        fields = {
            "is_paid": True,
            "paid_at": datetime.utcnow(),
            "payment_result": PaymentResultDB(**payment_result.model_dump()).model_dump(),
        }
        order = await self._update(order_id, fields)
        logger.info("Order marked as paid", extra={"order_id": order_id, "payment_intent_id": payment_result.id})
        return order

    async def delete(self, order_id: str) -> None:
        with persistence_guard("delete order"):
            result = await self.collection.delete_one({"_id": str_to_oid(order_id)})
        if result.deleted_count == 0:
            raise NotFoundException("Order not found")
        logger.info("Order deleted", extra={"order_id": order_id})
