"""
Tests for data models.
"""
from datetime import datetime

import pytest
from sqlalchemy.exc import IntegrityError

from app.database.init_db import init_reference_data
from app.models.catalog import Currency, Product, ProductCategory
from app.models.import_models import BatchStatus, ImportBatch, ImportEntityType
from app.models.operations import Warehouse


class TestImportBatchModel:
    """Test ImportBatch model."""

    def test_batch_creation(self, isolated_db_session):
        """Test batch defaults and JSON columns survive a round trip."""
        batch = ImportBatch(
            entity_type=ImportEntityType.PRODUCT.value,
            payload=[{"sku": "A-1", "name": "Widget"}],
        )
        isolated_db_session.add(batch)
        isolated_db_session.commit()

        retrieved = isolated_db_session.get(ImportBatch, batch.id)
        assert retrieved.status == "pending"
        assert retrieved.payload == [{"sku": "A-1", "name": "Widget"}]
        assert retrieved.summary is None
        assert retrieved.error_details is None
        assert isinstance(retrieved.created_at, datetime)
        assert retrieved.total_rows == 1

    def test_entity_type_values(self):
        """Test entity type tags are the lowercase stored values."""
        assert ImportEntityType("product_category") is ImportEntityType.PRODUCT_CATEGORY
        assert {e.value for e in ImportEntityType} == {
            "product",
            "customer",
            "supplier",
            "product_category",
            "opening_stock",
            "sales_order",
            "purchase_order",
        }

    @pytest.mark.parametrize(
        "status,terminal",
        [
            (BatchStatus.PENDING, False),
            (BatchStatus.PROCESSING, False),
            (BatchStatus.COMPLETED, True),
            (BatchStatus.FAILED, True),
        ],
    )
    def test_terminal_statuses(self, status, terminal):
        assert status.is_terminal is terminal


class TestCatalogModels:
    """Test catalog tables."""

    def test_sku_is_unique(self, isolated_db_session):
        """Test the store rejects a second product with the same SKU."""
        category = ProductCategory(name="Tools")
        isolated_db_session.add(category)
        isolated_db_session.flush()

        isolated_db_session.add(
            Product(sku="HAM-1", name="Hammer", product_category_id=category.id, unit_of_measure="pcs")
        )
        isolated_db_session.commit()

        isolated_db_session.add(
            Product(sku="HAM-1", name="Other hammer", product_category_id=category.id, unit_of_measure="pcs")
        )
        with pytest.raises(IntegrityError):
            isolated_db_session.commit()
        isolated_db_session.rollback()


class TestReferenceData:
    """Test reference data seeding."""

    def test_seed_is_idempotent(self, isolated_db_session):
        """Test seeding twice returns the same ids and creates nothing new."""
        first = init_reference_data(isolated_db_session)
        second = init_reference_data(isolated_db_session)

        assert first == second
        assert isolated_db_session.query(Currency).count() == 2
        assert isolated_db_session.query(Warehouse).count() == 1
