from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from pos_backend.app.api.deps import get_db
from pos_backend.app.db.models.models_v1 import StockRequisition
from pos_backend.app.db.models.core_types import RequisitionStatus
from pos_backend.services.requisitions import UNSET, RequisitionService

router = APIRouter(prefix="/stock-requisitions")


# ---------- Schemas ----------
class RequisitionItemIn(BaseModel):
    product_id: int
    quantity: int = Field(ge=1)


class RequisitionCreate(BaseModel):
    from_store_id: int
    to_store_id: int
    status: RequisitionStatus = RequisitionStatus.pending
    approved_by: int | None = None
    items: list[RequisitionItemIn] = Field(min_length=1)


class RequisitionUpdate(BaseModel):
    from_store_id: int | None = None
    to_store_id: int | None = None
    status: RequisitionStatus | None = None
    approved_by: int | None = None


# ---------- Helpers ----------
def _store_out(store) -> dict | None:
    return {"id": store.id, "name": store.name} if store is not None else None


def _requisition_out(r: StockRequisition) -> dict:
    return {
        "id": r.id,
        "from_store_id": r.from_store_id,
        "to_store_id": r.to_store_id,
        "status": r.status,
        "approved_by": r.approved_by,
        "stock_moved": r.stock_moved,
        "created_at": r.created_at,
        "updated_at": r.updated_at,
        "from_store": _store_out(r.from_store),
        "to_store": _store_out(r.to_store),
        "approver": (
            {"id": r.approver.id, "name": r.approver.name}
            if r.approver is not None
            else None
        ),
        "items": [
            {
                "id": it.id,
                "product_id": it.product_id,
                "quantity": it.quantity,
            }
            for it in r.items
        ],
    }


# ---------- Endpoints ----------
@router.get("")
def list_requisitions(db: Session = Depends(get_db)):
    return [_requisition_out(r) for r in RequisitionService(db).list_requisitions()]


@router.get("/{requisition_id}")
def get_requisition(requisition_id: int, db: Session = Depends(get_db)):
    return _requisition_out(RequisitionService(db).get(requisition_id))


@router.post("", status_code=201)
def create_requisition(payload: RequisitionCreate, db: Session = Depends(get_db)):
    req = RequisitionService(db).create(
        from_store_id=payload.from_store_id,
        to_store_id=payload.to_store_id,
        items=payload.items,
        status=payload.status,
        approved_by=payload.approved_by,
    )
    return _requisition_out(req)


@router.put("/{requisition_id}")
def update_requisition(requisition_id: int, payload: RequisitionUpdate, db: Session = Depends(get_db)):
    sent = payload.model_fields_set

    req = RequisitionService(db).update(
        requisition_id,
        status=payload.status if payload.status is not None else UNSET,
        approved_by=payload.approved_by if "approved_by" in sent else UNSET,
        from_store_id=payload.from_store_id if payload.from_store_id is not None else UNSET,
        to_store_id=payload.to_store_id if payload.to_store_id is not None else UNSET,
    )
    return _requisition_out(req)


@router.delete("/{requisition_id}", status_code=204)
def delete_requisition(requisition_id: int, db: Session = Depends(get_db)):
    RequisitionService(db).delete(requisition_id)
    return Response(status_code=204)
