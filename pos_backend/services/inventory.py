from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Sequence

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pos_backend.app.db.models.models_v1 import Inventory, StockMovement
from pos_backend.app.db.models.core_types import MovementType
from pos_backend.services.errors import InsufficientStockError

logger = logging.getLogger(__name__)

# dialects with INSERT ... ON CONFLICT DO NOTHING
_INSERT_IGNORE = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}

InventoryKey = tuple[int, int]


@dataclass(frozen=True)
class LedgerEntry:
    store_id: int
    product_id: int
    delta: int
    movement_type: MovementType

    @property
    def key(self) -> InventoryKey:
        return (int(self.store_id), int(self.product_id))


def _select_for_update(db: Session, store_id: int, product_id: int) -> Inventory | None:
    return (
        db.execute(
            select(Inventory)
            .where(Inventory.store_id == store_id)
            .where(Inventory.product_id == product_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        .scalar_one_or_none()
    )


def _insert_zero_row(db: Session, store_id: int, product_id: int) -> None:
    """
    Create the inventory row at quantity 0 unless a concurrent transaction
    already did. Never raises on the unique key.
    """
    insert = _INSERT_IGNORE.get(db.get_bind().dialect.name)
    if insert is not None:
        db.execute(
            insert(Inventory)
            .values(store_id=store_id, product_id=product_id, quantity=0)
            .on_conflict_do_nothing(index_elements=["store_id", "product_id"])
        )
        return

    try:
        with db.begin_nested():
            db.add(Inventory(store_id=store_id, product_id=product_id, quantity=0))
    except IntegrityError:
        logger.debug("inventory row (%s, %s) created concurrently", store_id, product_id)


def get_or_create_inventory_for_update(db: Session, store_id: int, product_id: int) -> Inventory:
    """
    Load the (store, product) inventory row with a write lock held until the
    enclosing transaction ends, creating it at 0 on first reference.
    """
    row = _select_for_update(db, store_id, product_id)
    if row:
        return row

    _insert_zero_row(db, store_id, product_id)
    row = _select_for_update(db, store_id, product_id)
    if row is None:
        raise RuntimeError(f"inventory row ({store_id}, {product_id}) vanished after insert")
    return row


class StockLedger:
    """
    Applies signed quantity deltas to inventory rows.

    One instance per unit of work: rows are locked the first time they are
    touched and the lock is held by the enclosing transaction. Multi-row
    callers go through apply_many so locks are always taken in ascending
    (store_id, product_id) order.
    """

    def __init__(self, db: Session) -> None:
        self.db = db
        self._locked: dict[InventoryKey, Inventory] = {}

    def lock(self, keys: Iterable[InventoryKey]) -> None:
        for store_id, product_id in sorted({(int(s), int(p)) for s, p in keys}):
            self._row(store_id, product_id)

    def _row(self, store_id: int, product_id: int) -> Inventory:
        key = (store_id, product_id)
        row = self._locked.get(key)
        if row is None:
            row = get_or_create_inventory_for_update(self.db, store_id, product_id)
            self._locked[key] = row
        return row

    def apply(
        self,
        store_id: int,
        product_id: int,
        delta: int,
        *,
        movement_type: MovementType,
        reference_type: str | None = None,
        reference_id: int | None = None,
    ) -> int:
        store_id, product_id, delta = int(store_id), int(product_id), int(delta)
        row = self._row(store_id, product_id)
        if delta == 0:
            return row.quantity

        new_quantity = row.quantity + delta
        if new_quantity < 0:
            logger.warning(
                "insufficient stock store=%s product=%s available=%s requested=%s",
                store_id,
                product_id,
                row.quantity,
                -delta,
            )
            raise InsufficientStockError(
                store_id=store_id,
                product_id=product_id,
                available=row.quantity,
                requested=-delta,
            )

        row.quantity = new_quantity
        self.db.add(
            StockMovement(
                store_id=store_id,
                product_id=product_id,
                movement_type=movement_type,
                delta=delta,
                quantity_after=new_quantity,
                reference_type=reference_type,
                reference_id=reference_id,
            )
        )
        self.db.flush()

        logger.debug(
            "ledger %s store=%s product=%s delta=%+d -> %s",
            movement_type.value,
            store_id,
            product_id,
            delta,
            new_quantity,
        )
        return new_quantity

    def apply_many(
        self,
        entries: Sequence[LedgerEntry],
        *,
        reference_type: str | None = None,
        reference_id: int | None = None,
    ) -> list[int]:
        """
        Lock every row the entries touch (ascending key order), then apply
        the entries in the order given. The first failing entry aborts.
        """
        self.lock(e.key for e in entries)
        return [
            self.apply(
                e.store_id,
                e.product_id,
                e.delta,
                movement_type=e.movement_type,
                reference_type=reference_type,
                reference_id=reference_id,
            )
            for e in entries
        ]
