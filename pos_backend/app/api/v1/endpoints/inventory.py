from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from pos_backend.app.api.deps import get_db
from pos_backend.app.db.models.models_v1 import Inventory
from pos_backend.app.schemas.inventory import InventoryRead

router = APIRouter(prefix="/inventory")


@router.get(
    "",
    response_model=list[InventoryRead],
)
def get_inventory(
    store_id: int | None = None,
    product_id: int | None = None,
    db: Session = Depends(get_db),
):
    """
    Inventory (READ ONLY)
    - quantities change only through orders and stock requisitions
    """

    stmt = select(Inventory).order_by(Inventory.store_id, Inventory.product_id)

    if store_id is not None:
        stmt = stmt.where(Inventory.store_id == store_id)

    if product_id is not None:
        stmt = stmt.where(Inventory.product_id == product_id)

    return db.execute(stmt).scalars().all()
