from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import select

from pos_backend.app.core.config import DEFAULT_STORE_ID
from pos_backend.app.core.logging_config import configure_logging
from pos_backend.app.db.session import SessionLocal, transaction
from pos_backend.app.db.models.models_v1 import Customer, Product, Store, User

logger = logging.getLogger(__name__)


def run_seed():
    db = SessionLocal()
    try:
        with transaction(db):
            # 1) default store, the one orders fall back to
            store = db.get(Store, DEFAULT_STORE_ID)
            if not store:
                db.add(Store(id=DEFAULT_STORE_ID, name="Main Store", active=True))

            # 2) admin user, approves requisitions
            if not db.scalar(select(User).where(User.name == "ADMIN")):
                db.add(User(name="ADMIN", active=True))

            # 3) walk-in customer
            if not db.scalar(select(Customer).where(Customer.name == "Walk-in")):
                db.add(Customer(name="Walk-in", balance=Decimal("0"), credit_limit=Decimal("0")))

            # 4) one sample product
            if not db.scalar(select(Product).where(Product.sku == "SAMPLE-001")):
                db.add(Product(sku="SAMPLE-001", name="Sample product", price=Decimal("1.00")))

        logger.info("seed ok: store=%s", DEFAULT_STORE_ID)
    finally:
        db.close()


if __name__ == "__main__":
    configure_logging()
    run_seed()
