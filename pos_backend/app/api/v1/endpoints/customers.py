from __future__ import annotations

from decimal import Decimal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from pos_backend.app.api.deps import get_db
from pos_backend.services.customers import CustomerBalanceService

router = APIRouter(prefix="/customers")


class DepositCreate(BaseModel):
    amount: Decimal = Field(ge=1, max_digits=15, decimal_places=2)


@router.post("/{customer_id}/deposit")
def deposit(customer_id: int, payload: DepositCreate, db: Session = Depends(get_db)):
    result = CustomerBalanceService(db).deposit(customer_id, payload.amount)
    customer = result["customer"]
    return {
        "message": result["message"],
        "customer": {"id": customer["id"], "balance": float(customer["balance"])},
    }
