"""
Pytest configuration and fixtures for Inventra tests.
"""

import os

# Must be set before app modules build the global engine
os.environ.setdefault("DB_URL", "sqlite:///./test.db")

import tempfile

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

from app.database.init_db import init_reference_data
from app.database.session import get_session
from app.main import app
from app.models.catalog import Product, ProductCategory
from app.routes.import_route import get_import_service
from app.services.batch_store import ImportBatchStore
from app.services.config_service import config_service
from app.services.import_service import ImportService
from app.services.processors import default_processor_registry


class RecordingDispatcher:
    """Collects dispatched batch ids instead of queueing them."""

    def __init__(self):
        self.batch_ids = []

    def __call__(self, batch_id):
        self.batch_ids.append(batch_id)


@pytest.fixture(autouse=True)
def reset_config():
    """Settings overridden in one test must not leak into the next."""
    config_service.reset()
    yield
    config_service.reset()


@pytest.fixture(scope="function")
def test_engine():
    """Engine on a temporary SQLite file, one per test."""
    fd, temp_db = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    engine = create_engine(f"sqlite:///{temp_db}", connect_args={"check_same_thread": False})
    SQLModel.metadata.create_all(bind=engine)

    try:
        yield engine
    finally:
        engine.dispose()
        try:
            os.unlink(temp_db)
        except OSError:
            pass


@pytest.fixture
def session_factory(test_engine):
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=test_engine)


@pytest.fixture
def isolated_db_session(session_factory):
    """Create an isolated database session for each test."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def reference_data(session_factory):
    """Currencies, address, warehouse, shop and customer group. Returns their ids."""
    with session_factory() as db:
        return init_reference_data(db)


@pytest.fixture
def catalog_data(session_factory, reference_data):
    """One category with two products on top of the reference data."""
    with session_factory() as db:
        category = ProductCategory(name="Beverages")
        db.add(category)
        db.flush()

        coffee = Product(
            sku="COF-001",
            name="Coffee beans",
            product_category_id=category.id,
            unit_of_measure="kg",
            default_purchase_price=12,
            default_selling_price_ht=20,
        )
        tea = Product(
            sku="TEA-001",
            name="Green tea",
            product_category_id=category.id,
            unit_of_measure="box",
        )
        db.add_all([coffee, tea])
        db.commit()

        return dict(reference_data, category=category.id, coffee=coffee.id, tea=tea.id)


@pytest.fixture
def batch_store(session_factory):
    return ImportBatchStore(session_factory)


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def import_service(session_factory, batch_store, dispatcher):
    """Import service wired to the test database and a recording dispatcher."""
    return ImportService(
        store=batch_store,
        registry=default_processor_registry(),
        session_factory=session_factory,
        dispatcher=dispatcher,
    )


@pytest.fixture
def client(session_factory, import_service):
    """Create a test client with database and service dependency overrides."""

    def override_get_session():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_import_service] = lambda: import_service

    from fastapi.testclient import TestClient

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
