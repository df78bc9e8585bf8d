from __future__ import annotations

from typing import Generator

from pos_backend.app.core.config import DEFAULT_STORE_ID
from pos_backend.app.db.session import SessionLocal

def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def resolve_store_id(requested: int | None) -> int:
    """Store scoping is decided here once and passed down explicitly."""
    return requested if requested is not None else DEFAULT_STORE_ID
