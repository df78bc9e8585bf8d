"""
Domain errors raised by the services.

Every error carries a stable ``kind`` so the HTTP layer can map it to a
status code without looking at messages. Raising any of them inside
``transaction()`` rolls back the whole unit of work.
"""

from __future__ import annotations

from typing import Any


class DomainError(Exception):
    kind = "domain_error"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": self.message, **self.details}


class ValidationError(DomainError):
    kind = "validation_error"


class NotFoundError(DomainError):
    kind = "not_found"

    def __init__(self, entity: str, entity_id: Any) -> None:
        super().__init__(f"{entity} {entity_id} not found", entity=entity, id=entity_id)


class InsufficientStockError(DomainError):
    kind = "insufficient_stock"

    def __init__(self, *, store_id: int, product_id: int, available: int, requested: int) -> None:
        super().__init__(
            f"Insufficient stock for product {product_id} in store {store_id} "
            f"(available={available}, requested={requested})",
            store_id=store_id,
            product_id=product_id,
            available=available,
            requested=requested,
        )
        self.store_id = store_id
        self.product_id = product_id
        self.available = available
        self.requested = requested


class ConcurrencyError(DomainError):
    """Lock wait timeout, deadlock or serialization failure. Safe to retry."""

    kind = "concurrency_conflict"
