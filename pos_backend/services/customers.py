from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from pos_backend.app.db.models.models_v1 import Customer
from pos_backend.app.db.session import transaction
from pos_backend.services.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

MIN_DEPOSIT = Decimal("1")
CENTS = Decimal("0.01")
# largest value the Numeric(15, 2) balance column holds
MAX_BALANCE = Decimal("9999999999999.99")


def _to_amount(value: Any) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError("amount must be numeric", field="amount") from None
    if not amount.is_finite():
        raise ValidationError("amount must be numeric", field="amount")
    return amount


def lock_customer(db: Session, customer_id: int) -> Customer:
    customer = (
        db.execute(
            select(Customer)
            .where(Customer.id == customer_id)
            .where(Customer.deleted_at.is_(None))
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        .scalar_one_or_none()
    )
    if not customer:
        raise NotFoundError("Customer", customer_id)
    return customer


class CustomerBalanceService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def deposit(self, customer_id: int, amount: Any) -> dict:
        """
        Add ``amount`` to the customer's balance under a row lock.

        The credit limit is not consulted. Amounts below 1 are rejected
        before any write.
        """
        value = _to_amount(amount)
        if value < MIN_DEPOSIT:
            raise ValidationError(
                f"amount must be at least {MIN_DEPOSIT}",
                field="amount",
            )
        try:
            value = value.quantize(CENTS, rounding=ROUND_HALF_UP)
        except InvalidOperation:
            raise ValidationError(f"amount must not exceed {MAX_BALANCE}", field="amount") from None
        if value > MAX_BALANCE:
            raise ValidationError(f"amount must not exceed {MAX_BALANCE}", field="amount")

        with transaction(self.db):
            customer = lock_customer(self.db, customer_id)
            balance = (customer.balance or Decimal("0")) + value
            if balance > MAX_BALANCE:
                raise ValidationError(
                    f"balance would exceed {MAX_BALANCE}",
                    field="amount",
                    customer_id=customer_id,
                )
            customer.balance = balance

        logger.info("deposit customer=%s amount=%s balance=%s", customer.id, value, customer.balance)
        return {
            "message": "Deposit successful",
            "customer": {"id": customer.id, "balance": customer.balance},
        }
