"""
Order lifecycle.

Every public method is one unit of work: stock deltas go through the
StockLedger and the order rows are written in the same transaction, so a
failed ledger call leaves neither a partial order nor a partial stock
change behind.

Order items are never patched one by one. ``set_items`` replaces the whole
set and moves only the difference in stock:

    items [{P1, 2}] -> [{P1, 5}]   consumes 3 more units of P1
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from pos_backend.app.db.models.models_v1 import Customer, Order, OrderItem, Product, Store
from pos_backend.app.db.models.core_types import MovementType, OrderStatus
from pos_backend.app.db.session import transaction
from pos_backend.services.errors import NotFoundError, ValidationError
from pos_backend.services.inventory import LedgerEntry, StockLedger
from pos_backend.services.line_items import diff_line_items, normalize_line_items

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
# largest value a Numeric(12, 2) money column holds
MAX_MONEY = Decimal("9999999999.99")

# distinguishes "field omitted" from an explicit None
UNSET: Any = object()


@dataclass(frozen=True)
class OrderLine:
    product_id: int
    quantity: int
    unit_price: Decimal | None = None


def _money(value: Any, field: str = "amount") -> Decimal:
    try:
        amount = Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"{field} must be a number up to {MAX_MONEY}", field=field) from None
    if abs(amount) > MAX_MONEY:
        raise ValidationError(f"{field} must not exceed {MAX_MONEY}", field=field)
    return amount


def _validate_lines(items: Sequence[Any]) -> list[OrderLine]:
    if not items:
        raise ValidationError("items must contain at least one item", field="items")

    lines = []
    for idx, it in enumerate(items):
        quantity = int(it.quantity)
        if quantity < 1:
            raise ValidationError(
                f"items[{idx}].quantity must be at least 1",
                field=f"items.{idx}.quantity",
            )
        unit_price = getattr(it, "unit_price", None)
        if unit_price is not None:
            unit_price = _money(unit_price, field=f"items.{idx}.unit_price")
            if unit_price < 0:
                raise ValidationError(
                    f"items[{idx}].unit_price must not be negative",
                    field=f"items.{idx}.unit_price",
                )
        lines.append(OrderLine(product_id=int(it.product_id), quantity=quantity, unit_price=unit_price))
    return lines


def _parse_status(value: Any) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in OrderStatus)
        raise ValidationError(f"status must be one of: {allowed}", field="status") from None


def _movement_for(delta: int) -> MovementType:
    return MovementType.sale_return if delta > 0 else MovementType.sale


class OrderService:
    def __init__(self, db: Session) -> None:
        self.db = db

    # ---------- reads ----------
    def _query(self):
        return select(Order).options(
            selectinload(Order.items).selectinload(OrderItem.product),
            selectinload(Order.customer),
        )

    def list_orders(self) -> list[Order]:
        return list(self.db.execute(self._query().order_by(Order.id.desc())).scalars().all())

    def get(self, order_id: int) -> Order:
        order = (
            self.db.execute(
                self._query()
                .where(Order.id == order_id)
                .execution_options(populate_existing=True)
            )
            .scalars()
            .one_or_none()
        )
        if not order:
            raise NotFoundError("Order", order_id)
        return order

    def _lock_order(self, order_id: int) -> Order:
        order = (
            self.db.execute(
                select(Order)
                .where(Order.id == order_id)
                .options(selectinload(Order.items))
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            .scalars()
            .one_or_none()
        )
        if not order:
            raise NotFoundError("Order", order_id)
        return order

    # ---------- FK checks ----------
    def _require_store(self, store_id: int) -> None:
        if not self.db.get(Store, store_id):
            raise NotFoundError("Store", store_id)

    def _require_customer(self, customer_id: int) -> None:
        customer = self.db.get(Customer, customer_id)
        if not customer or customer.deleted_at is not None:
            raise NotFoundError("Customer", customer_id)

    def _products(self, product_ids: set[int]) -> dict[int, Product]:
        rows = self.db.execute(select(Product).where(Product.id.in_(product_ids))).scalars().all()
        products = {int(p.id): p for p in rows}
        for pid in sorted(product_ids):
            if pid not in products:
                raise NotFoundError("Product", pid)
        return products

    # ---------- items ----------
    def set_items(self, order: Order, items: Sequence[Any]) -> None:
        """
        Replace the order's item set and move the stock difference.

        Must run inside the caller's transaction, with the order locked.
        """
        lines = _validate_lines(items)
        products = self._products({ln.product_id for ln in lines})

        priced = []
        total = Decimal("0")
        for idx, ln in enumerate(lines):
            unit_price = ln.unit_price if ln.unit_price is not None else _money(products[ln.product_id].price)
            line_total = _money(unit_price * ln.quantity, field=f"items.{idx}.line_total")
            priced.append((ln, unit_price, line_total))
            total += line_total
        if total > MAX_MONEY:
            raise ValidationError(f"total_amount must not exceed {MAX_MONEY}", field="total_amount")

        deltas = diff_line_items(order.items, lines)
        StockLedger(self.db).apply_many(
            [
                LedgerEntry(order.store_id, d.product_id, d.delta, _movement_for(d.delta))
                for d in deltas
            ],
            reference_type="order",
            reference_id=order.id,
        )

        order.items.clear()
        self.db.flush()

        for ln, unit_price, line_total in priced:
            order.items.append(
                OrderItem(
                    product_id=ln.product_id,
                    quantity=ln.quantity,
                    unit_price=unit_price,
                    line_total=line_total,
                )
            )

        order.total_amount = total
        self.db.flush()

    # ---------- lifecycle ----------
    def create(
        self,
        *,
        store_id: int,
        items: Sequence[Any],
        customer_id: int | None = None,
        status: Any = OrderStatus.completed,
        notes: str | None = None,
    ) -> Order:
        _validate_lines(items)
        order_status = _parse_status(status)

        with transaction(self.db):
            self._require_store(store_id)
            if customer_id is not None:
                self._require_customer(customer_id)

            order = Order(
                store_id=store_id,
                customer_id=customer_id,
                status=order_status,
                notes=notes,
                total_amount=Decimal("0"),
            )
            self.db.add(order)
            self.db.flush()  # get order.id

            self.set_items(order, items)

        logger.info(
            "order %s created store=%s items=%s total=%s",
            order.id,
            store_id,
            len(order.items),
            order.total_amount,
        )
        return self.get(order.id)

    def update(
        self,
        order_id: int,
        *,
        items: Sequence[Any] | None = None,
        status: Any = UNSET,
        notes: Any = UNSET,
        customer_id: Any = UNSET,
    ) -> Order:
        """
        Update an order. Omitted fields stay unchanged; ``items``, when
        given, replaces the whole item set. A customer can be swapped but
        not removed.
        """
        if customer_id is None:
            raise ValidationError("customer_id cannot be null", field="customer_id")
        if items is not None:
            _validate_lines(items)
        new_status = _parse_status(status) if status is not UNSET else UNSET

        with transaction(self.db):
            order = self._lock_order(order_id)

            if customer_id is not UNSET:
                self._require_customer(customer_id)
                order.customer_id = customer_id
            if new_status is not UNSET:
                order.status = new_status
            if notes is not UNSET:
                order.notes = notes

            if items is not None:
                self.set_items(order, items)

        logger.info("order %s updated total=%s", order.id, order.total_amount)
        return self.get(order.id)

    def delete(self, order_id: int) -> None:
        """Return every item's quantity to the order's store, then drop the order."""
        with transaction(self.db):
            order = self._lock_order(order_id)

            returns = normalize_line_items(order.items)
            StockLedger(self.db).apply_many(
                [
                    LedgerEntry(order.store_id, pid, qty, MovementType.sale_return)
                    for pid, qty in returns.items()
                ],
                reference_type="order",
                reference_id=order.id,
            )

            order.items.clear()
            self.db.flush()
            self.db.delete(order)

        logger.info("order %s deleted, returned %s products to store", order_id, len(returns))
