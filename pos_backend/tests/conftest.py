import os
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, event, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from pos_backend.app.db.base import Base
from pos_backend.app.db.models import models_v1  # noqa: F401  (register tables)
from pos_backend.app.db.models.models_v1 import Customer, Inventory, Product, Store, User

# SQLite by default; point TEST_DATABASE_URL at PostgreSQL to run the row-lock tests too
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+pysqlite:///:memory:")
IS_POSTGRES = TEST_DATABASE_URL.startswith("postgresql")

requires_postgres = pytest.mark.skipif(
    not IS_POSTGRES,
    reason="needs real row locks, set TEST_DATABASE_URL=postgresql+psycopg://...",
)


def _make_engine():
    if IS_POSTGRES:
        return create_engine(TEST_DATABASE_URL, pool_pre_ping=True)

    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite delays BEGIN until the first DML, take over so SELECTs
    # and SAVEPOINTs sit inside the same transaction as the writes
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        dbapi_connection.execute("PRAGMA foreign_keys=ON")

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


@pytest.fixture(scope="function")
def engine():
    """
    Fresh schema per test. Everything is dropped at the end, so tests can
    commit freely.
    """
    eng = _make_engine()
    Base.metadata.create_all(bind=eng)
    try:
        yield eng
    finally:
        Base.metadata.drop_all(bind=eng)
        eng.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


@pytest.fixture(scope="function")
def db_session(session_factory) -> Session:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


class Seed:
    """Master data helpers, every call commits."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def store(self, store_id: int, name: str | None = None) -> Store:
        store = Store(id=store_id, name=name or f"TEST-STORE-{store_id}", active=True)
        self.db.add(store)
        self.db.commit()
        return store

    def product(self, product_id: int, price: str = "10.00", sku: str | None = None) -> Product:
        product = Product(
            id=product_id,
            sku=sku or f"TEST-SKU-{product_id}",
            name=f"TEST-PROD-{product_id}",
            price=Decimal(price),
        )
        self.db.add(product)
        self.db.commit()
        return product

    def customer(self, customer_id: int, balance: str = "0.00", **kwargs) -> Customer:
        customer = Customer(
            id=customer_id,
            name=f"TEST-CUSTOMER-{customer_id}",
            balance=Decimal(balance),
            credit_limit=Decimal(kwargs.pop("credit_limit", "0.00")),
            **kwargs,
        )
        self.db.add(customer)
        self.db.commit()
        return customer

    def user(self, user_id: int) -> User:
        user = User(id=user_id, name=f"TEST-USER-{user_id}", active=True)
        self.db.add(user)
        self.db.commit()
        return user

    def stock(self, store_id: int, product_id: int, quantity: int) -> Inventory:
        row = self.db.get(Inventory, (store_id, product_id), populate_existing=True)
        if row is None:
            row = Inventory(store_id=store_id, product_id=product_id, quantity=quantity)
            self.db.add(row)
        else:
            row.quantity = quantity
        self.db.commit()
        return row

    def quantity(self, store_id: int, product_id: int) -> int | None:
        """Fresh read from the database, None when the row does not exist."""
        qty = self.db.execute(
            select(Inventory.quantity)
            .where(Inventory.store_id == store_id)
            .where(Inventory.product_id == product_id)
        ).scalar_one_or_none()
        # end the read transaction, the StaticPool connection is shared
        self.db.rollback()
        return qty


@pytest.fixture(scope="function")
def seed(db_session) -> Seed:
    return Seed(db_session)


@pytest.fixture(scope="function")
def client(session_factory):
    from fastapi.testclient import TestClient

    from pos_backend.app.api.deps import get_db
    from pos_backend.app.main import app

    def _get_test_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_test_db
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.clear()
