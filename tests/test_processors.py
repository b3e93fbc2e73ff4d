"""
Tests for the bulk-commit and independent-row processors.
"""
import pytest
from sqlalchemy.exc import OperationalError

from app.models.catalog import Customer, Product, Supplier
from app.models.import_models import ImportBatch, ImportEntityType
from app.models.operations import PurchaseOrder, PurchaseOrderItem, SalesOrder, SalesOrderItem, StockMovement
from app.services.collaborators import (
    CustomerCollaborator,
    OpeningStockCollaborator,
    ProductCollaborator,
    PurchaseOrderCollaborator,
    SalesOrderCollaborator,
    SupplierCollaborator,
)
from app.services.import_errors import BatchCommitError, UnsupportedEntityTypeError
from app.services.processors import (
    BATCH_ABORTED_MESSAGE,
    TRANSACTION_FAILED_MESSAGE,
    BulkCommitProcessor,
    IndependentRowProcessor,
    ProcessorRegistry,
    build_summary,
    default_processor_registry,
)


def make_batch(entity_type, rows, batch_id=1, user_id=3):
    return ImportBatch(
        id=batch_id,
        entity_type=entity_type.value,
        status="processing",
        payload=rows,
        created_by_user_id=user_id,
    )


class FailingCommitSupplierCollaborator(SupplierCollaborator):
    """Supplier collaborator whose storage write always fails."""

    def commit(self, session, entities):
        raise OperationalError("INSERT INTO suppliers", {}, Exception("database is locked"))


class TestBulkCommitProcessor:
    """Test the all-or-nothing protocol."""

    def test_all_rows_valid(self, isolated_db_session, reference_data):
        """Two valid customers are both written."""
        base = {"defaultCurrencyId": reference_data["currency_eur"], "billingAddressId": reference_data["address"]}
        rows = [dict(base, email="a@example.com", firstName="Ann"), dict(base, email="b@example.com", lastName="Bo")]
        batch = make_batch(ImportEntityType.CUSTOMER, rows)

        BulkCommitProcessor(CustomerCollaborator()).process(batch, isolated_db_session)

        assert batch.summary == {"totalRows": 2, "successfullyImported": 2, "failedRowsCount": 0}
        assert batch.error_details is None
        customers = isolated_db_session.query(Customer).order_by(Customer.email).all()
        assert [c.email for c in customers] == ["a@example.com", "b@example.com"]
        assert customers[0].created_by_user_id == 3

    def test_one_invalid_row_blocks_the_batch(self, isolated_db_session, catalog_data):
        """A valid row is not written when another row of the batch fails."""
        rows = [
            {"sku": "NEW-1", "name": "Mug", "productCategoryId": catalog_data["category"], "unitOfMeasure": "pcs"},
            {"sku": "NEW-2", "name": "Cup", "productCategoryId": 999, "unitOfMeasure": "pcs"},
        ]
        batch = make_batch(ImportEntityType.PRODUCT, rows)

        BulkCommitProcessor(ProductCollaborator()).process(batch, isolated_db_session)

        assert batch.summary == {"totalRows": 2, "successfullyImported": 0, "failedRowsCount": 1}
        assert batch.error_details == [
            {"row": 2, "data": rows[1], "error": "Product Category ID '999' does not exist."}
        ]
        assert isolated_db_session.query(Product).filter(Product.sku.in_(["NEW-1", "NEW-2"])).count() == 0

    def test_commit_failure_voids_every_row(self, isolated_db_session, reference_data):
        """A storage failure raises and leaves a failure entry for each row."""
        rows = [
            {
                "name": "Beans Ltd",
                "email": "sales@beans-ltd.com",
                "addressId": reference_data["address"],
                "defaultCurrencyId": reference_data["currency_usd"],
            }
        ]
        batch = make_batch(ImportEntityType.SUPPLIER, rows)

        with pytest.raises(BatchCommitError):
            BulkCommitProcessor(FailingCommitSupplierCollaborator()).process(batch, isolated_db_session)

        assert batch.summary == {"totalRows": 1, "successfullyImported": 0, "failedRowsCount": 1}
        assert batch.error_details == [{"row": 1, "data": rows[0], "error": TRANSACTION_FAILED_MESSAGE}]
        assert isolated_db_session.query(Supplier).count() == 0

    def test_abort_voids_every_row(self):
        rows = [{"name": "a"}, {"name": "b"}]
        batch = make_batch(ImportEntityType.PRODUCT_CATEGORY, rows)

        BulkCommitProcessor(ProductCollaborator()).abort(batch)

        assert batch.summary == build_summary(2, 0, 2)
        assert [d["error"] for d in batch.error_details] == [BATCH_ABORTED_MESSAGE] * 2


class TestIndependentRowProcessor:
    """Test the per-row protocol."""

    def test_sales_orders_partial_success(self, isolated_db_session, catalog_data):
        """The valid order is kept although an earlier row fails."""
        customer = Customer(
            email="shop@example.com",
            company_name="Corner Shop",
            default_currency_id=catalog_data["currency_eur"],
            billing_address_id=catalog_data["address"],
        )
        isolated_db_session.add(customer)
        isolated_db_session.commit()

        rows = [
            {"customerId": 999, "items": [{"productId": catalog_data["coffee"], "quantity": 1}]},
            {
                "customerId": customer.id,
                "items": [
                    {"productId": catalog_data["coffee"], "quantity": 2},
                    {"productId": catalog_data["tea"], "quantity": 3, "unitPrice": 4.5},
                ],
            },
        ]
        batch = make_batch(ImportEntityType.SALES_ORDER, rows)

        IndependentRowProcessor(SalesOrderCollaborator()).process(batch, isolated_db_session)

        assert batch.summary == {"totalRows": 2, "successfullyImported": 1, "failedRowsCount": 1}
        assert batch.error_details == [{"row": 1, "data": rows[0], "error": "Customer ID '999' does not exist."}]

        order = isolated_db_session.query(SalesOrder).one()
        assert order.customer_id == customer.id
        assert order.created_by_user_id == 3
        # coffee at its default selling price of 20, tea at the given 4.5
        assert float(order.total_amount) == pytest.approx(2 * 20 + 3 * 4.5)
        assert isolated_db_session.query(SalesOrderItem).filter_by(sales_order_id=order.id).count() == 2

    def test_failed_row_leaves_no_partial_records(self, isolated_db_session, catalog_data):
        """An order whose second item is invalid writes neither header nor lines."""
        supplier = Supplier(
            name="Beans Ltd",
            email="sales@beans-ltd.com",
            address_id=catalog_data["address"],
            default_currency_id=catalog_data["currency_eur"],
        )
        isolated_db_session.add(supplier)
        isolated_db_session.commit()

        rows = [
            {
                "supplierId": supplier.id,
                "warehouseIdForDelivery": catalog_data["warehouse"],
                "items": [
                    {"productId": catalog_data["coffee"], "quantity": 5},
                    {"productId": catalog_data["tea"], "quantity": 1},
                ],
            }
        ]
        batch = make_batch(ImportEntityType.PURCHASE_ORDER, rows)

        IndependentRowProcessor(PurchaseOrderCollaborator()).process(batch, isolated_db_session)

        assert batch.summary == {"totalRows": 1, "successfullyImported": 0, "failedRowsCount": 1}
        assert batch.error_details[0]["error"] == "Item 2: unitPrice is required, product has no default price."
        assert isolated_db_session.query(PurchaseOrder).count() == 0
        assert isolated_db_session.query(PurchaseOrderItem).count() == 0

    def test_opening_stock(self, isolated_db_session, catalog_data):
        rows = [
            {"productId": catalog_data["coffee"], "locationId": catalog_data["warehouse"], "locationType": "warehouse", "quantity": 40},
            {"productId": catalog_data["tea"], "locationId": catalog_data["shop"], "locationType": "shop", "quantity": 0},
            {"productId": catalog_data["tea"], "locationId": 77, "locationType": "warehouse", "quantity": 5},
            {"productId": catalog_data["tea"], "locationId": catalog_data["shop"], "locationType": "shop", "quantity": 8, "unitCost": 1.5},
        ]
        batch = make_batch(ImportEntityType.OPENING_STOCK, rows, batch_id=42)

        IndependentRowProcessor(OpeningStockCollaborator()).process(batch, isolated_db_session)

        assert batch.summary == {"totalRows": 4, "successfullyImported": 2, "failedRowsCount": 2}
        assert {d["row"]: d["error"] for d in batch.error_details} == {
            2: "Quantity must be positive for opening stock.",
            3: "Warehouse ID '77' does not exist.",
        }

        movements = isolated_db_session.query(StockMovement).order_by(StockMovement.id).all()
        assert [m.movement_type for m in movements] == ["manual_entry_in", "manual_entry_in"]
        assert movements[0].warehouse_id == catalog_data["warehouse"]
        assert movements[0].shop_id is None
        assert movements[1].shop_id == catalog_data["shop"]
        assert movements[1].reference_document_type == "opening_stock_import"
        assert "import batch 42" in movements[1].notes

    def test_abort_marks_unattempted_rows(self):
        """After a mid-batch crash the counts still add up to the total."""
        rows = [{"customerId": 1}, {"customerId": 2}, {"customerId": 3}]
        batch = make_batch(ImportEntityType.SALES_ORDER, rows)
        batch.summary = build_summary(3, 1, 0)
        batch.error_details = None

        IndependentRowProcessor(SalesOrderCollaborator()).abort(batch, "worker lost")

        assert batch.summary == {"totalRows": 3, "successfullyImported": 1, "failedRowsCount": 2}
        assert [d["row"] for d in batch.error_details] == [2, 3]
        assert batch.error_details[0]["error"] == "worker lost"


class TestProcessorRegistry:
    """Test entity type to processor lookup."""

    def test_default_registry_covers_every_entity_type(self):
        registry = default_processor_registry()

        assert registry.entity_types == sorted(e.value for e in ImportEntityType)
        assert registry.get("product").protocol == "bulk_commit"
        assert registry.get("product_category").protocol == "bulk_commit"
        assert registry.get("opening_stock").protocol == "independent_row"
        assert registry.get("purchase_order").protocol == "independent_row"

    def test_unknown_entity_type(self):
        registry = ProcessorRegistry([BulkCommitProcessor(ProductCollaborator())])

        assert "product" in registry
        assert "customer" not in registry
        with pytest.raises(UnsupportedEntityTypeError):
            registry.get("customer")
