"""
Shared fixtures: an in-memory SQLite database per test, a small seeded
catalog and a TestClient wired to that database.

Seeded catalog:
    warehouses 1 (Main pharmacy), 2 (Branch)
    fund 1 (Cash drawer)
    product 7  Paracetamol 500mg   plain stock, inventory (7, 1) = 10 / min 2 / max 50
    product 8  Vitamin C           plain stock
    product 9  Amoxicillin 250mg   lot-managed, lots in warehouse 1:
               A-001 x4  expires in 2 days
               B-002 x10 no expiry
               C-003 x0  expires in 1 day (empty)
    combo 1    Cold care pack      2 x product 9 + 1 x product 8, price 10000
"""
from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import pharma_erp.models  # noqa: F401 - register models
from pharma_erp.api.deps import get_allocation_sessions, get_db
from pharma_erp.db.base import Base
from pharma_erp.db.session import make_engine
from pharma_erp.main import app
from pharma_erp.models import Combo, ComboItem, Fund, Inventory, Product, ProductLot, Warehouse
from pharma_erp.services.allocation_sessions import AllocationSessionRegistry


@pytest.fixture
def engine():
    engine = make_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def today():
    return date.today()


@pytest.fixture
def seeded(db, today):
    db.add_all([
        Warehouse(id=1, name="Main pharmacy"),
        Warehouse(id=2, name="Branch"),
        Fund(id=1, name="Cash drawer", fund_type="cash", initial_balance=0),
        Product(id=7, name="Paracetamol 500mg", sku="PARA500", retail_price=5000, cost_price=3000),
        Product(id=8, name="Vitamin C", sku="VITC", retail_price=5000, cost_price=3500),
        Product(
            id=9, name="Amoxicillin 250mg", sku="AMOX250",
            retail_price=3000, cost_price=2000, enable_lot_management=True,
        ),
    ])
    db.flush()
    db.add(Inventory(product_id=7, warehouse_id=1, quantity=10, min_stock=2, max_stock=50))
    db.add_all([
        ProductLot(id=11, product_id=9, warehouse_id=1, lot_number="A-001",
                   expiry_date=today + timedelta(days=2), quantity=4),
        ProductLot(id=12, product_id=9, warehouse_id=1, lot_number="B-002",
                   expiry_date=None, quantity=10),
        ProductLot(id=13, product_id=9, warehouse_id=1, lot_number="C-003",
                   expiry_date=today + timedelta(days=1), quantity=0),
    ])
    db.add(Inventory(product_id=9, warehouse_id=1, quantity=14, min_stock=5, max_stock=100))
    db.add(Combo(
        id=1, name="Cold care pack", combo_price=10000, is_active=True,
        items=[ComboItem(product_id=9, quantity=2), ComboItem(product_id=8, quantity=1)],
    ))
    db.commit()
    return db


@pytest.fixture
def registry():
    return AllocationSessionRegistry()


@pytest.fixture
def client(engine, registry):
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def override_get_db():
        session = TestingSession()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_allocation_sessions] = lambda: registry
    # No context manager: the lifespan would create the on-disk database
    yield TestClient(app)
    app.dependency_overrides.clear()
