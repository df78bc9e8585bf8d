from dataclasses import dataclass

import pytest
from sqlalchemy import func, select

from pos_backend.app.db.models.core_types import (
    MovementType,
    RequisitionMovementPolicy,
    RequisitionStatus,
)
from pos_backend.app.db.models.models_v1 import StockMovement, StockRequisition
from pos_backend.services import inventory as inventory_service
from pos_backend.services.errors import InsufficientStockError, NotFoundError, ValidationError
from pos_backend.services.requisitions import RequisitionService

A, B = 1, 2
P1, P2 = 10, 20


@dataclass
class Line:
    product_id: int
    quantity: int


@pytest.fixture
def stores(seed):
    seed.store(A)
    seed.store(B)
    seed.store(3)
    seed.product(P1)
    seed.product(P2)
    seed.user(5)
    seed.stock(A, P1, 10)
    seed.stock(A, P2, 4)
    return seed


def _eager(db):
    return RequisitionService(db, policy=RequisitionMovementPolicy.on_create)


def _deferred(db):
    return RequisitionService(db, policy=RequisitionMovementPolicy.on_approval)


def test_create_moves_stock_immediately(db_session, stores):
    req = _eager(db_session).create(
        from_store_id=A,
        to_store_id=B,
        items=[Line(P1, 3), Line(P2, 4)],
        approved_by=5,
    )

    assert req.status == RequisitionStatus.pending
    assert req.stock_moved is True
    assert req.approved_by == 5
    assert sorted((it.product_id, it.quantity) for it in req.items) == [(P1, 3), (P2, 4)]
    assert stores.quantity(A, P1) == 7
    assert stores.quantity(B, P1) == 3
    assert stores.quantity(A, P2) == 0
    assert stores.quantity(B, P2) == 4


def test_debit_is_applied_before_credit(db_session, stores):
    _eager(db_session).create(from_store_id=A, to_store_id=B, items=[Line(P1, 2)])

    types = db_session.execute(
        select(StockMovement.movement_type, StockMovement.store_id).order_by(StockMovement.id)
    ).all()
    db_session.rollback()
    assert types == [(MovementType.transfer_out, A), (MovementType.transfer_in, B)]


def test_same_store_rejected_before_any_ledger_write(db_session, stores, monkeypatch):
    def _fail(*args, **kwargs):
        raise AssertionError("ledger must not be touched")

    monkeypatch.setattr(inventory_service, "get_or_create_inventory_for_update", _fail)

    with pytest.raises(ValidationError):
        _eager(db_session).create(from_store_id=A, to_store_id=A, items=[Line(P1, 1)])

    assert stores.quantity(A, P1) == 10


def test_insufficient_source_stock_blocks_the_credit(db_session, stores):
    with pytest.raises(InsufficientStockError) as exc_info:
        _eager(db_session).create(from_store_id=A, to_store_id=B, items=[Line(P1, 1), Line(P2, 5)])

    assert (exc_info.value.store_id, exc_info.value.product_id) == (A, P2)
    assert stores.quantity(A, P1) == 10
    assert stores.quantity(B, P1) in (None, 0)
    assert stores.quantity(B, P2) in (None, 0)
    n = db_session.execute(select(func.count()).select_from(StockRequisition)).scalar_one()
    db_session.rollback()
    assert n == 0


def test_create_validates_items_and_references(db_session, stores):
    svc = _eager(db_session)

    with pytest.raises(ValidationError):
        svc.create(from_store_id=A, to_store_id=B, items=[])
    with pytest.raises(ValidationError):
        svc.create(from_store_id=A, to_store_id=B, items=[Line(P1, 0)])
    with pytest.raises(NotFoundError):
        svc.create(from_store_id=A, to_store_id=99, items=[Line(P1, 1)])
    with pytest.raises(NotFoundError):
        svc.create(from_store_id=A, to_store_id=B, items=[Line(999, 1)])
    with pytest.raises(NotFoundError):
        svc.create(from_store_id=A, to_store_id=B, items=[Line(P1, 1)], approved_by=404)

    assert stores.quantity(A, P1) == 10


def test_eager_status_change_moves_nothing(db_session, stores):
    svc = _eager(db_session)
    req = svc.create(from_store_id=A, to_store_id=B, items=[Line(P1, 3)])

    req = svc.update(req.id, status="approved", approved_by=5)

    assert req.status == RequisitionStatus.approved
    assert stores.quantity(A, P1) == 7
    assert stores.quantity(B, P1) == 3


def test_deferred_moves_on_approval_and_back_on_rejection(db_session, stores):
    svc = _deferred(db_session)
    req = svc.create(from_store_id=A, to_store_id=B, items=[Line(P1, 4)])

    assert req.stock_moved is False
    assert stores.quantity(A, P1) == 10

    req = svc.update(req.id, status="approved")
    assert req.stock_moved is True
    assert stores.quantity(A, P1) == 6
    assert stores.quantity(B, P1) == 4

    # approved -> completed does not move twice
    req = svc.update(req.id, status="completed")
    assert stores.quantity(A, P1) == 6

    req = svc.update(req.id, status="rejected")
    assert req.stock_moved is False
    assert stores.quantity(A, P1) == 10
    assert stores.quantity(B, P1) == 0


def test_deferred_approval_with_insufficient_stock_keeps_pending(db_session, stores):
    svc = _deferred(db_session)
    req = svc.create(from_store_id=A, to_store_id=B, items=[Line(P1, 4)])
    stores.stock(A, P1, 1)

    with pytest.raises(InsufficientStockError):
        svc.update(req.id, status="approved")

    req = svc.get(req.id)
    assert req.status == RequisitionStatus.pending
    assert req.stock_moved is False


def test_update_stores(db_session, stores):
    deferred = _deferred(db_session)
    req = deferred.create(from_store_id=A, to_store_id=B, items=[Line(P1, 1)])

    req = deferred.update(req.id, to_store_id=3)
    assert req.to_store_id == 3

    with pytest.raises(ValidationError):
        deferred.update(req.id, to_store_id=A)

    moved = _eager(db_session).create(from_store_id=A, to_store_id=B, items=[Line(P1, 1)])
    with pytest.raises(ValidationError):
        _eager(db_session).update(moved.id, to_store_id=3)


def test_delete_reverses_moved_stock(db_session, stores):
    svc = _eager(db_session)
    req = svc.create(from_store_id=A, to_store_id=B, items=[Line(P1, 3)])

    svc.delete(req.id)

    assert stores.quantity(A, P1) == 10
    assert stores.quantity(B, P1) == 0
    with pytest.raises(NotFoundError):
        svc.get(req.id)


def test_delete_fails_when_destination_already_used_the_stock(db_session, stores):
    svc = _eager(db_session)
    req = svc.create(from_store_id=A, to_store_id=B, items=[Line(P1, 3)])
    stores.stock(B, P1, 1)

    with pytest.raises(InsufficientStockError):
        svc.delete(req.id)

    assert svc.get(req.id).stock_moved is True
