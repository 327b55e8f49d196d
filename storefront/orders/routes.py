from fastapi import APIRouter, Depends, status
from typing import List

from storefront.dependencies import get_order_store
from storefront.shared.utils import SuccessResponse, require_admin
from storefront.orders.schemas import (
    OrderDraft, OrderResponse, OrderStatusUpdate, PaymentResultUpdate
)
from storefront.orders.store import OrderStore

router = APIRouter(prefix="/api/orders", tags=["orders"])


@router.post("", response_model=SuccessResponse[OrderResponse], status_code=status.HTTP_201_CREATED)
async def create_order(draft: OrderDraft, store: OrderStore = Depends(get_order_store)):
    order = await store.create(draft)
    return SuccessResponse(data=order, message="Order created successfully")

@router.get("", response_model=SuccessResponse[List[OrderResponse]])
async def list_orders(admin: dict = Depends(require_admin), store: OrderStore = Depends(get_order_store)):
    orders = await store.list_all()
    return SuccessResponse(count=len(orders), data=orders)

@router.get("/user/{user_id}", response_model=SuccessResponse[List[OrderResponse]])
async def list_user_orders(user_id: str, store: OrderStore = Depends(get_order_store)):
    orders = await store.list_by_user(user_id)
    return SuccessResponse(count=len(orders), data=orders)

@router.get("/{order_id}", response_model=SuccessResponse[OrderResponse])
async def get_order(order_id: str, store: OrderStore = Depends(get_order_store)):
    return SuccessResponse(data=await store.get(order_id))

@router.put("/{order_id}/status", response_model=SuccessResponse[OrderResponse])
async def update_order_status(
    order_id: str,
    status_update: OrderStatusUpdate,
    admin: dict = Depends(require_admin),
    store: OrderStore = Depends(get_order_store)
):
    order = await store.set_status(order_id, status_update.status)
    return SuccessResponse(data=order)

@router.put("/{order_id}/pay", response_model=SuccessResponse[OrderResponse])
async def mark_order_paid(
    order_id: str,
    payment_result: PaymentResultUpdate,
    store: OrderStore = Depends(get_order_store)
):
    order = await store.mark_paid(order_id, payment_result)
    return SuccessResponse(data=order)

@router.delete("/{order_id}", response_model=SuccessResponse[dict])
async def delete_order(
    order_id: str,
    admin: dict = Depends(require_admin),
    store: OrderStore = Depends(get_order_store)
):
    await store.delete(order_id)
    return SuccessResponse(data={"id": order_id}, message="Order deleted successfully")
