"""
Inter-store stock requisitions.

When stock moves is a deployment choice (REQUISITION_STOCK_MOVEMENT):

- on_create   : from_store is debited and to_store credited as soon as the
                requisition is created; later status changes move nothing.
- on_approval : nothing moves until the requisition reaches approved or
                completed; rejecting it afterwards moves the stock back.

Either way the debit of an item is applied before its credit, and all
inventory rows are locked up front in ascending (store_id, product_id).
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from pos_backend.app.core import config
from pos_backend.app.db.models.models_v1 import (
    Product,
    StockRequisition,
    StockRequisitionItem,
    Store,
    User,
)
from pos_backend.app.db.models.core_types import (
    MovementType,
    RequisitionMovementPolicy,
    RequisitionStatus,
)
from pos_backend.app.db.session import transaction
from pos_backend.services.errors import NotFoundError, ValidationError
from pos_backend.services.inventory import LedgerEntry, StockLedger
from pos_backend.services.line_items import normalize_line_items

logger = logging.getLogger(__name__)

UNSET: Any = object()

# statuses that, under on_approval, mean the goods have left from_store
MOVED_STATUSES = {RequisitionStatus.approved, RequisitionStatus.completed}


def _parse_status(value: Any) -> RequisitionStatus:
    try:
        return RequisitionStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in RequisitionStatus)
        raise ValidationError(f"status must be one of: {allowed}", field="status") from None


def _validate_items(items: Sequence[Any]) -> dict[int, int]:
    if not items:
        raise ValidationError("items must contain at least one item", field="items")
    for idx, it in enumerate(items):
        if int(it.quantity) < 1:
            raise ValidationError(
                f"items[{idx}].quantity must be at least 1",
                field=f"items.{idx}.quantity",
            )
    return normalize_line_items(items)


def _check_stores_differ(from_store_id: int, to_store_id: int) -> None:
    if from_store_id == to_store_id:
        raise ValidationError(
            "from_store_id and to_store_id must differ",
            field="to_store_id",
        )


class RequisitionService:
    def __init__(self, db: Session, policy: RequisitionMovementPolicy | None = None) -> None:
        self.db = db
        self.policy = policy or config.REQUISITION_STOCK_MOVEMENT

    # ---------- reads ----------
    def _query(self):
        return select(StockRequisition).options(
            selectinload(StockRequisition.items).selectinload(StockRequisitionItem.product),
            selectinload(StockRequisition.from_store),
            selectinload(StockRequisition.to_store),
            selectinload(StockRequisition.approver),
        )

    def list_requisitions(self) -> list[StockRequisition]:
        return list(
            self.db.execute(self._query().order_by(StockRequisition.id.desc())).scalars().all()
        )

    def get(self, requisition_id: int) -> StockRequisition:
        req = (
            self.db.execute(
                self._query()
                .where(StockRequisition.id == requisition_id)
                .execution_options(populate_existing=True)
            )
            .scalars()
            .one_or_none()
        )
        if not req:
            raise NotFoundError("StockRequisition", requisition_id)
        return req

    def _lock(self, requisition_id: int) -> StockRequisition:
        req = (
            self.db.execute(
                select(StockRequisition)
                .where(StockRequisition.id == requisition_id)
                .options(selectinload(StockRequisition.items))
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            .scalars()
            .one_or_none()
        )
        if not req:
            raise NotFoundError("StockRequisition", requisition_id)
        return req

    # ---------- FK checks ----------
    def _require_store(self, store_id: int) -> None:
        if not self.db.get(Store, store_id):
            raise NotFoundError("Store", store_id)

    def _require_user(self, user_id: int) -> None:
        if not self.db.get(User, user_id):
            raise NotFoundError("User", user_id)

    def _require_products(self, product_ids: set[int]) -> None:
        found = self.db.execute(select(Product.id).where(Product.id.in_(product_ids))).scalars().all()
        missing = sorted(product_ids - {int(f) for f in found})
        if missing:
            raise NotFoundError("Product", missing[0])

    # ---------- stock movement ----------
    def _transfer(self, req: StockRequisition, *, reverse: bool = False) -> None:
        src, dst = req.from_store_id, req.to_store_id
        if reverse:
            src, dst = dst, src

        entries = []
        for pid, qty in normalize_line_items(req.items).items():
            entries.append(LedgerEntry(src, pid, -qty, MovementType.transfer_out))
            entries.append(LedgerEntry(dst, pid, qty, MovementType.transfer_in))

        StockLedger(self.db).apply_many(
            entries,
            reference_type="requisition",
            reference_id=req.id,
        )
        req.stock_moved = not reverse
        logger.info(
            "requisition %s %s stock store %s -> store %s (%s products)",
            req.id,
            "reversed" if reverse else "moved",
            src,
            dst,
            len(entries) // 2,
        )

    def _moves_on(self, status: RequisitionStatus, *, creating: bool) -> bool:
        if self.policy is RequisitionMovementPolicy.on_create:
            return creating
        return status in MOVED_STATUSES

    # ---------- lifecycle ----------
    def create(
        self,
        *,
        from_store_id: int,
        to_store_id: int,
        items: Sequence[Any],
        status: Any = RequisitionStatus.pending,
        approved_by: int | None = None,
    ) -> StockRequisition:
        _check_stores_differ(from_store_id, to_store_id)
        quantities = _validate_items(items)
        req_status = _parse_status(status)

        with transaction(self.db):
            self._require_store(from_store_id)
            self._require_store(to_store_id)
            self._require_products(set(quantities))
            if approved_by is not None:
                self._require_user(approved_by)

            req = StockRequisition(
                from_store_id=from_store_id,
                to_store_id=to_store_id,
                status=req_status,
                approved_by=approved_by,
                stock_moved=False,
            )
            req.items = [
                StockRequisitionItem(product_id=pid, quantity=qty)
                for pid, qty in quantities.items()
            ]
            self.db.add(req)
            self.db.flush()  # get req.id

            if self._moves_on(req_status, creating=True):
                self._transfer(req)

        logger.info("requisition %s created status=%s moved=%s", req.id, req.status.value, req.stock_moved)
        return self.get(req.id)

    def update(
        self,
        requisition_id: int,
        *,
        status: Any = UNSET,
        approved_by: Any = UNSET,
        from_store_id: Any = UNSET,
        to_store_id: Any = UNSET,
    ) -> StockRequisition:
        new_status = _parse_status(status) if status is not UNSET else UNSET

        with transaction(self.db):
            req = self._lock(requisition_id)

            new_from = req.from_store_id if from_store_id is UNSET else from_store_id
            new_to = req.to_store_id if to_store_id is UNSET else to_store_id
            _check_stores_differ(new_from, new_to)
            if (new_from, new_to) != (req.from_store_id, req.to_store_id):
                if req.stock_moved:
                    raise ValidationError(
                        "stores cannot change after stock has moved",
                        field="from_store_id" if from_store_id is not UNSET else "to_store_id",
                    )
                self._require_store(new_from)
                self._require_store(new_to)
                req.from_store_id, req.to_store_id = new_from, new_to

            if approved_by is not UNSET:
                if approved_by is not None:
                    self._require_user(approved_by)
                req.approved_by = approved_by

            if new_status is not UNSET:
                req.status = new_status

            if self.policy is RequisitionMovementPolicy.on_approval:
                if not req.stock_moved and req.status in MOVED_STATUSES:
                    self._transfer(req)
                elif req.stock_moved and req.status is RequisitionStatus.rejected:
                    self._transfer(req, reverse=True)

        logger.info("requisition %s updated status=%s moved=%s", req.id, req.status.value, req.stock_moved)
        return self.get(req.id)

    def delete(self, requisition_id: int) -> None:
        """Undo any stock movement, then drop the requisition and its items."""
        with transaction(self.db):
            req = self._lock(requisition_id)
            if req.stock_moved:
                self._transfer(req, reverse=True)

            req.items.clear()
            self.db.flush()
            self.db.delete(req)

        logger.info("requisition %s deleted", requisition_id)
