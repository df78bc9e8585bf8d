from datetime import datetime, timezone
from decimal import Decimal

import pytest

from pos_backend.app.db.models.models_v1 import Customer
from pos_backend.services.customers import CustomerBalanceService
from pos_backend.services.errors import NotFoundError, ValidationError


def _balance(db, customer_id):
    db.expire_all()
    value = db.get(Customer, customer_id).balance
    db.rollback()
    return value


def test_deposit_adds_to_balance(db_session, seed):
    seed.customer(1, balance="2000.00", credit_limit="10.00")

    result = CustomerBalanceService(db_session).deposit(1, Decimal("1000"))

    assert result["message"] == "Deposit successful"
    assert result["customer"]["id"] == 1
    assert result["customer"]["balance"] == Decimal("3000.00")
    assert _balance(db_session, 1) == Decimal("3000.00")


def test_deposit_ignores_credit_limit(db_session, seed):
    seed.customer(1, balance="0", credit_limit="5.00")

    CustomerBalanceService(db_session).deposit(1, "500.25")

    assert _balance(db_session, 1) == Decimal("500.25")


def test_sequential_deposits_accumulate(db_session, seed):
    seed.customer(1, balance="10.00")
    svc = CustomerBalanceService(db_session)

    svc.deposit(1, 100)
    svc.deposit(1, 50)

    assert _balance(db_session, 1) == Decimal("160.00")


@pytest.mark.parametrize("amount", [0, -5, "0.99", "abc", None, "NaN"])
def test_deposit_rejects_invalid_amounts(db_session, seed, amount):
    seed.customer(1, balance="10.00")

    with pytest.raises(ValidationError):
        CustomerBalanceService(db_session).deposit(1, amount)

    assert _balance(db_session, 1) == Decimal("10.00")


def test_deposit_unknown_or_deleted_customer(db_session, seed):
    seed.customer(2, deleted_at=datetime.now(timezone.utc))
    svc = CustomerBalanceService(db_session)

    with pytest.raises(NotFoundError):
        svc.deposit(1, 10)
    with pytest.raises(NotFoundError):
        svc.deposit(2, 10)


@pytest.mark.parametrize("amount", [Decimal("1e30"), "1e30", Decimal("10000000000000.00")])
def test_deposit_rejects_amount_beyond_balance_column(db_session, seed, amount):
    seed.customer(1, balance="10.00")

    with pytest.raises(ValidationError):
        CustomerBalanceService(db_session).deposit(1, amount)

    assert _balance(db_session, 1) == Decimal("10.00")


def test_deposit_rejects_balance_overflow(db_session, seed):
    seed.customer(1, balance="9999999999999.00")

    with pytest.raises(ValidationError):
        CustomerBalanceService(db_session).deposit(1, 5)

    assert _balance(db_session, 1) == Decimal("9999999999999.00")
