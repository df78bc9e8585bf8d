from __future__ import annotations

from decimal import Decimal

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from pos_backend.app.api.deps import get_db, resolve_store_id
from pos_backend.app.db.models.models_v1 import Order
from pos_backend.app.db.models.core_types import OrderStatus
from pos_backend.services.orders import UNSET, OrderService

router = APIRouter(prefix="/orders")


# ---------- Schemas ----------
class OrderItemIn(BaseModel):
    product_id: int
    quantity: int = Field(ge=1)
    unit_price: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)


class OrderCreate(BaseModel):
    customer_id: int | None = None
    store_id: int | None = None
    status: OrderStatus = OrderStatus.completed
    notes: str | None = None
    items: list[OrderItemIn] = Field(min_length=1)


class OrderUpdate(BaseModel):
    customer_id: int | None = None
    status: OrderStatus | None = None
    notes: str | None = None
    items: list[OrderItemIn] | None = Field(default=None, min_length=1)


# ---------- Helpers ----------
def _order_out(o: Order) -> dict:
    return {
        "id": o.id,
        "store_id": o.store_id,
        "customer_id": o.customer_id,
        "status": o.status,
        "total_amount": float(o.total_amount),
        "notes": o.notes,
        "created_at": o.created_at,
        "updated_at": o.updated_at,
        "items": [
            {
                "id": it.id,
                "product_id": it.product_id,
                "quantity": it.quantity,
                "unit_price": float(it.unit_price),
                "line_total": float(it.line_total),
                "product": {"id": it.product.id, "sku": it.product.sku, "name": it.product.name},
            }
            for it in o.items
        ],
        "customer": (
            {"id": o.customer.id, "name": o.customer.name}
            if o.customer is not None
            else None
        ),
    }


# ---------- Endpoints ----------
@router.get("")
def list_orders(db: Session = Depends(get_db)):
    return [_order_out(o) for o in OrderService(db).list_orders()]


@router.get("/{order_id}")
def get_order(order_id: int, db: Session = Depends(get_db)):
    return _order_out(OrderService(db).get(order_id))


@router.post("", status_code=201)
def create_order(payload: OrderCreate, db: Session = Depends(get_db)):
    order = OrderService(db).create(
        store_id=resolve_store_id(payload.store_id),
        customer_id=payload.customer_id,
        items=payload.items,
        status=payload.status,
        notes=payload.notes,
    )
    return _order_out(order)


@router.put("/{order_id}")
def update_order(order_id: int, payload: OrderUpdate, db: Session = Depends(get_db)):
    sent = payload.model_fields_set

    order = OrderService(db).update(
        order_id,
        items=payload.items,
        status=payload.status if payload.status is not None else UNSET,
        notes=payload.notes if "notes" in sent else UNSET,
        customer_id=payload.customer_id if "customer_id" in sent else UNSET,
    )
    return _order_out(order)


@router.delete("/{order_id}", status_code=204)
def delete_order(order_id: int, db: Session = Depends(get_db)):
    OrderService(db).delete(order_id)
    return Response(status_code=204)
