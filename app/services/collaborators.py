"""
Entity collaborators used by the import engine.

Bulk collaborators describe their entity declaratively (required fields,
unique keys, foreign keys) and build unsaved model instances; the engine
decides when they are written. Compound collaborators create one row's worth
of records (order header and lines, stock movement) and raise
``RowValidationError`` when the row cannot be imported.
"""
import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple, Type

from pydantic import EmailStr, TypeAdapter, ValidationError
from sqlalchemy import func, select
from sqlalchemy.orm import Session
from sqlmodel import SQLModel

from app.models.catalog import Address, Currency, Customer, CustomerGroup, Product, ProductCategory, Supplier
from app.models.import_models import ImportEntityType
from app.models.operations import (
    PurchaseOrder,
    PurchaseOrderItem,
    SalesOrder,
    SalesOrderItem,
    Shop,
    StockMovement,
    Warehouse,
)
from app.services.import_errors import RowValidationError

logger = logging.getLogger("app.import.collaborators")

# Keeps IN (...) lists under driver parameter limits
IN_CHUNK_SIZE = 500

_EMAIL = TypeAdapter(EmailStr)


@dataclass(frozen=True)
class RowCheck:
    """Outcome of entity-specific business rules for one row."""

    valid: bool
    errors: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class UniqueKey:
    """Payload field that must be unique across the store and the batch."""

    field: str
    column: Any
    label: str
    exists_message: str = "{label} '{value}' already exists."


@dataclass(frozen=True)
class ForeignKey:
    """Payload field that must reference an existing record."""

    field: str
    column: Any
    label: str


@dataclass(frozen=True)
class RowContext:
    batch_id: Optional[int]
    row_number: int
    user_id: Optional[int]


def existing_values(session: Session, column: Any, values: Iterable[Any], fold: bool = False) -> Set[Any]:
    """
    Return the subset of ``values`` present in ``column``.

    One query per chunk of IN_CHUNK_SIZE values, never one per value. With
    ``fold`` the comparison ignores case and the lowercased values are returned.
    """
    if fold:
        values = (str(v).lower() for v in values if v is not None)
        column = func.lower(column)
    values = list(dict.fromkeys(v for v in values if v is not None))
    found: Set[Any] = set()
    for start in range(0, len(values), IN_CHUNK_SIZE):
        chunk = values[start:start + IN_CHUNK_SIZE]
        found.update(session.execute(select(column).where(column.in_(chunk))).scalars())
    return found


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _check_length(errors: List[str], row: Dict[str, Any], key: str, limit: int) -> None:
    value = row.get(key)
    if isinstance(value, str) and len(value) > limit:
        errors.append(f"{key} must be at most {limit} characters.")


def _check_non_negative(errors: List[str], row: Dict[str, Any], key: str) -> None:
    value = row.get(key)
    if value is not None and value < 0:
        errors.append(f"{key} cannot be negative.")


def _check_email(errors: List[str], row: Dict[str, Any]) -> None:
    email = row.get("email")
    if not email:
        return
    try:
        _EMAIL.validate_python(email)
    except ValidationError:
        errors.append(f"Invalid email format: '{email}'.")


class BulkEntityCollaborator:
    """Create-or-fail adapter for entity types imported all-or-nothing."""

    entity_type: ImportEntityType
    label: str
    model: Type[SQLModel]
    required_fields: Tuple[str, ...] = ()
    unique_keys: Tuple[UniqueKey, ...] = ()
    foreign_keys: Tuple[ForeignKey, ...] = ()
    # payload key -> model attribute
    field_map: Dict[str, str] = {}

    def bulk_existence_check(self, session: Session, column: Any, keys: Iterable[Any], fold: bool = False) -> Set[Any]:
        return existing_values(session, column, keys, fold=fold)

    def validate_row(self, row: Dict[str, Any]) -> RowCheck:
        return RowCheck(valid=True)

    def create(self, row: Dict[str, Any], user_id: Optional[int]) -> SQLModel:
        """Build an unsaved entity from a row that passed validation."""
        values = {attr: row[key] for key, attr in self.field_map.items() if row.get(key) is not None}
        if "created_by_user_id" in self.model.model_fields:
            values["created_by_user_id"] = user_id
        return self.model(**values)

    def commit(self, session: Session, entities: List[SQLModel]) -> None:
        """Write all entities in one transaction."""
        session.add_all(entities)
        session.commit()


class ProductCategoryCollaborator(BulkEntityCollaborator):
    entity_type = ImportEntityType.PRODUCT_CATEGORY
    label = "category"
    model = ProductCategory
    required_fields = ("name",)
    unique_keys = (UniqueKey("name", ProductCategory.name, "Category name"),)
    foreign_keys = (ForeignKey("parentCategoryId", ProductCategory.id, "Parent Category ID"),)
    field_map = {
        "name": "name",
        "description": "description",
        "parentCategoryId": "parent_category_id",
    }

    def validate_row(self, row: Dict[str, Any]) -> RowCheck:
        errors: List[str] = []
        _check_length(errors, row, "name", 255)
        _check_length(errors, row, "description", 1000)
        return RowCheck(valid=not errors, errors=errors)


class ProductCollaborator(BulkEntityCollaborator):
    entity_type = ImportEntityType.PRODUCT
    label = "product"
    model = Product
    required_fields = ("sku", "name", "productCategoryId", "unitOfMeasure")
    unique_keys = (UniqueKey("sku", Product.sku, "SKU"),)
    foreign_keys = (ForeignKey("productCategoryId", ProductCategory.id, "Product Category ID"),)
    field_map = {
        "sku": "sku",
        "name": "name",
        "description": "description",
        "productCategoryId": "product_category_id",
        "unitOfMeasure": "unit_of_measure",
        "defaultPurchasePrice": "default_purchase_price",
        "defaultSellingPriceHt": "default_selling_price_ht",
        "barcodeQrCode": "barcode_qr_code",
    }

    def validate_row(self, row: Dict[str, Any]) -> RowCheck:
        errors: List[str] = []
        _check_length(errors, row, "sku", 100)
        _check_length(errors, row, "name", 255)
        _check_length(errors, row, "unitOfMeasure", 50)
        _check_non_negative(errors, row, "defaultPurchasePrice")
        _check_non_negative(errors, row, "defaultSellingPriceHt")
        if isinstance(row.get("sku"), str) and re.search(r"\s", row["sku"]):
            errors.append("sku cannot contain whitespace.")
        return RowCheck(valid=not errors, errors=errors)


class CustomerCollaborator(BulkEntityCollaborator):
    entity_type = ImportEntityType.CUSTOMER
    label = "customer"
    model = Customer
    required_fields = ("email", "defaultCurrencyId", "billingAddressId")
    unique_keys = (UniqueKey("email", Customer.email, "Email"),)
    foreign_keys = (
        ForeignKey("defaultCurrencyId", Currency.id, "Default Currency ID"),
        ForeignKey("billingAddressId", Address.id, "Billing Address ID"),
        ForeignKey("customerGroupId", CustomerGroup.id, "Customer Group ID"),
    )
    field_map = {
        "email": "email",
        "firstName": "first_name",
        "lastName": "last_name",
        "companyName": "company_name",
        "phoneNumber": "phone_number",
        "defaultCurrencyId": "default_currency_id",
        "billingAddressId": "billing_address_id",
        "customerGroupId": "customer_group_id",
    }

    def validate_row(self, row: Dict[str, Any]) -> RowCheck:
        errors: List[str] = []
        _check_email(errors, row)
        _check_length(errors, row, "firstName", 100)
        _check_length(errors, row, "lastName", 100)
        _check_length(errors, row, "companyName", 255)
        if is_blank(row.get("firstName")) and is_blank(row.get("lastName")) and is_blank(row.get("companyName")):
            errors.append("Either a company name or a first/last name is required.")
        return RowCheck(valid=not errors, errors=errors)


class SupplierCollaborator(BulkEntityCollaborator):
    entity_type = ImportEntityType.SUPPLIER
    label = "supplier"
    model = Supplier
    required_fields = ("name", "email", "addressId", "defaultCurrencyId")
    unique_keys = (
        UniqueKey("email", Supplier.email, "Email", "{label} '{value}' already exists for another supplier."),
    )
    foreign_keys = (
        ForeignKey("addressId", Address.id, "Address ID"),
        ForeignKey("defaultCurrencyId", Currency.id, "Currency ID"),
    )
    field_map = {
        "name": "name",
        "email": "email",
        "contactPersonName": "contact_person_name",
        "phoneNumber": "phone_number",
        "addressId": "address_id",
        "defaultCurrencyId": "default_currency_id",
    }

    def validate_row(self, row: Dict[str, Any]) -> RowCheck:
        errors: List[str] = []
        _check_email(errors, row)
        _check_length(errors, row, "name", 255)
        _check_length(errors, row, "contactPersonName", 255)
        return RowCheck(valid=not errors, errors=errors)


class CompoundEntityCollaborator:
    """Creates the records for one row inside the caller's transaction."""

    entity_type: ImportEntityType
    label: str

    def create_compound(self, session: Session, row: Dict[str, Any], context: RowContext) -> int:
        raise NotImplementedError


class OpeningStockCollaborator(CompoundEntityCollaborator):
    entity_type = ImportEntityType.OPENING_STOCK
    label = "opening stock"

    LOCATION_MODELS = {"warehouse": Warehouse, "shop": Shop}

    def create_compound(self, session: Session, row: Dict[str, Any], context: RowContext) -> int:
        quantity = row.get("quantity")
        if quantity is None or quantity <= 0:
            raise RowValidationError("Quantity must be positive for opening stock.")
        if not row.get("locationId") or not row.get("locationType"):
            raise RowValidationError("locationId and locationType are required.")
        if not row.get("productId"):
            raise RowValidationError("productId is required.")
        unit_cost = row.get("unitCost")
        if unit_cost is not None and unit_cost < 0:
            raise RowValidationError("unitCost cannot be negative.")

        if session.get(Product, row["productId"]) is None:
            raise RowValidationError(f"Product ID '{row['productId']}' does not exist.")

        location_type = row["locationType"]
        location_model = self.LOCATION_MODELS.get(location_type)
        if location_model is None:
            raise RowValidationError(f"Unknown locationType '{location_type}'.")
        if session.get(location_model, row["locationId"]) is None:
            raise RowValidationError(f"{location_type.capitalize()} ID '{row['locationId']}' does not exist.")

        movement = StockMovement(
            product_id=row["productId"],
            product_variant_id=row.get("productVariantId"),
            warehouse_id=row["locationId"] if location_type == "warehouse" else None,
            shop_id=row["locationId"] if location_type == "shop" else None,
            movement_type="manual_entry_in",
            quantity=Decimal(str(quantity)),
            unit_cost_at_movement=Decimal(str(unit_cost)) if unit_cost is not None else None,
            user_id=context.user_id,
            reference_document_type="opening_stock_import",
            reference_document_id=None,
            notes=f"Opening stock for row {context.row_number} of import batch {context.batch_id}.",
        )
        session.add(movement)
        session.flush()
        return movement.id


class _OrderCollaborator(CompoundEntityCollaborator):
    """Order header plus lines, priced from the row or the product defaults."""

    party_field: str
    party_field_attr: str
    party_model: Type[SQLModel]
    party_label: str
    order_model: Type[SQLModel]
    item_model: Type[SQLModel]
    item_order_attr: str
    default_price_attr: str

    def _header_values(self, session: Session, row: Dict[str, Any]) -> Dict[str, Any]:
        return {}

    def create_compound(self, session: Session, row: Dict[str, Any], context: RowContext) -> int:
        items = row.get("items") or []
        party_id = row.get(self.party_field)
        if not party_id or not items:
            raise RowValidationError(f"Missing {self.party_field} or items.")

        if session.get(self.party_model, party_id) is None:
            raise RowValidationError(f"{self.party_label} ID '{party_id}' does not exist.")
        currency_id = row.get("currencyId")
        if currency_id is not None and session.get(Currency, currency_id) is None:
            raise RowValidationError(f"Currency ID '{currency_id}' does not exist.")

        product_ids = [item.get("productId") for item in items]
        products = {
            product.id: product
            for product in session.execute(
                select(Product).where(Product.id.in_([pid for pid in product_ids if pid is not None]))
            ).scalars()
        }

        lines: List[Tuple[int, Decimal, Decimal]] = []
        for position, item in enumerate(items, start=1):
            product = products.get(item.get("productId"))
            if product is None:
                raise RowValidationError(f"Item {position}: Product ID '{item.get('productId')}' does not exist.")
            quantity = item.get("quantity")
            if quantity is None or quantity <= 0:
                raise RowValidationError(f"Item {position}: quantity must be positive.")
            unit_price = item.get("unitPrice")
            if unit_price is None:
                unit_price = getattr(product, self.default_price_attr)
                if unit_price is None:
                    raise RowValidationError(f"Item {position}: unitPrice is required, product has no default price.")
            if unit_price < 0:
                raise RowValidationError(f"Item {position}: unitPrice cannot be negative.")
            lines.append((product.id, Decimal(str(quantity)), Decimal(str(unit_price))))

        order = self.order_model(
            **{self.party_field_attr: party_id},
            currency_id=currency_id,
            notes=row.get("notes"),
            total_amount=sum((qty * price for _, qty, price in lines), Decimal("0")),
            created_by_user_id=context.user_id,
            **self._header_values(session, row),
        )
        session.add(order)
        session.flush()

        for product_id, quantity, unit_price in lines:
            session.add(
                self.item_model(
                    **{self.item_order_attr: order.id},
                    product_id=product_id,
                    quantity=quantity,
                    unit_price=unit_price,
                )
            )
        session.flush()

        logger.debug(f"Created {self.label} {order.id} with {len(lines)} lines (row {context.row_number})")
        return order.id


class SalesOrderCollaborator(_OrderCollaborator):
    entity_type = ImportEntityType.SALES_ORDER
    label = "sales order"
    party_field = "customerId"
    party_field_attr = "customer_id"
    party_model = Customer
    party_label = "Customer"
    order_model = SalesOrder
    item_model = SalesOrderItem
    item_order_attr = "sales_order_id"
    default_price_attr = "default_selling_price_ht"


class PurchaseOrderCollaborator(_OrderCollaborator):
    entity_type = ImportEntityType.PURCHASE_ORDER
    label = "purchase order"
    party_field = "supplierId"
    party_field_attr = "supplier_id"
    party_model = Supplier
    party_label = "Supplier"
    order_model = PurchaseOrder
    item_model = PurchaseOrderItem
    item_order_attr = "purchase_order_id"
    default_price_attr = "default_purchase_price"

    def _header_values(self, session: Session, row: Dict[str, Any]) -> Dict[str, Any]:
        warehouse_id = row.get("warehouseIdForDelivery")
        if warehouse_id is not None and session.get(Warehouse, warehouse_id) is None:
            raise RowValidationError(f"Warehouse ID '{warehouse_id}' does not exist.")
        return {"warehouse_id_for_delivery": warehouse_id}
