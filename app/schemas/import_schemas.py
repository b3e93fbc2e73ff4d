"""
Submission schemas for import batches.

Row schemas only check basic shape: every field is optional so that missing
required values are reported per row during processing, not at submission.
"""
from typing import Any, Dict, List, Literal, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from app.models.import_models import ImportEntityType
from app.services.import_errors import PayloadShapeError


class RowShape(BaseModel):
    """Base for row shapes: camelCase keys, unknown keys kept."""

    model_config = ConfigDict(extra="allow", populate_by_name=True, coerce_numbers_to_str=True)


class ProductCategoryRow(RowShape):
    name: Optional[str] = None
    description: Optional[str] = None
    parent_category_id: Optional[int] = Field(None, alias="parentCategoryId")


class ProductRow(RowShape):
    sku: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    product_category_id: Optional[int] = Field(None, alias="productCategoryId")
    unit_of_measure: Optional[str] = Field(None, alias="unitOfMeasure")
    default_purchase_price: Optional[float] = Field(None, alias="defaultPurchasePrice")
    default_selling_price_ht: Optional[float] = Field(None, alias="defaultSellingPriceHt")
    barcode_qr_code: Optional[str] = Field(None, alias="barcodeQrCode")


class CustomerRow(RowShape):
    email: Optional[str] = None
    first_name: Optional[str] = Field(None, alias="firstName")
    last_name: Optional[str] = Field(None, alias="lastName")
    company_name: Optional[str] = Field(None, alias="companyName")
    phone_number: Optional[str] = Field(None, alias="phoneNumber")
    default_currency_id: Optional[int] = Field(None, alias="defaultCurrencyId")
    billing_address_id: Optional[int] = Field(None, alias="billingAddressId")
    customer_group_id: Optional[int] = Field(None, alias="customerGroupId")


class SupplierRow(RowShape):
    name: Optional[str] = None
    email: Optional[str] = None
    contact_person_name: Optional[str] = Field(None, alias="contactPersonName")
    phone_number: Optional[str] = Field(None, alias="phoneNumber")
    address_id: Optional[int] = Field(None, alias="addressId")
    default_currency_id: Optional[int] = Field(None, alias="defaultCurrencyId")


class OpeningStockRow(RowShape):
    product_id: Optional[int] = Field(None, alias="productId")
    product_variant_id: Optional[int] = Field(None, alias="productVariantId")
    location_id: Optional[int] = Field(None, alias="locationId")
    location_type: Optional[Literal["warehouse", "shop"]] = Field(None, alias="locationType")
    quantity: Optional[float] = None
    unit_cost: Optional[float] = Field(None, alias="unitCost")


class OrderItemRow(RowShape):
    product_id: Optional[int] = Field(None, alias="productId")
    quantity: Optional[float] = None
    unit_price: Optional[float] = Field(None, alias="unitPrice")


class SalesOrderRow(RowShape):
    customer_id: Optional[int] = Field(None, alias="customerId")
    currency_id: Optional[int] = Field(None, alias="currencyId")
    notes: Optional[str] = None
    items: Optional[List[OrderItemRow]] = None


class PurchaseOrderRow(RowShape):
    supplier_id: Optional[int] = Field(None, alias="supplierId")
    currency_id: Optional[int] = Field(None, alias="currencyId")
    warehouse_id_for_delivery: Optional[int] = Field(None, alias="warehouseIdForDelivery")
    notes: Optional[str] = None
    items: Optional[List[OrderItemRow]] = None


ROW_SCHEMAS: Dict[ImportEntityType, Type[RowShape]] = {
    ImportEntityType.PRODUCT: ProductRow,
    ImportEntityType.CUSTOMER: CustomerRow,
    ImportEntityType.SUPPLIER: SupplierRow,
    ImportEntityType.PRODUCT_CATEGORY: ProductCategoryRow,
    ImportEntityType.OPENING_STOCK: OpeningStockRow,
    ImportEntityType.SALES_ORDER: SalesOrderRow,
    ImportEntityType.PURCHASE_ORDER: PurchaseOrderRow,
}


class ImportRequest(BaseModel):
    """Body of an import submission."""

    model_config = ConfigDict(populate_by_name=True)

    original_file_name: Optional[str] = Field(None, alias="originalFileName", max_length=255)
    data: Optional[List[Any]] = None


def normalize_rows(entity_type: ImportEntityType, rows: List[Any]) -> List[Dict[str, Any]]:
    """
    Check every row against its entity shape and return the coerced rows.

    Known fields are stored under their camelCase alias even when sent under
    their snake_case field name. Unknown keys are stored as sent.

    Raises:
        PayloadShapeError: one entry per malformed row
    """
    schema = ROW_SCHEMAS[entity_type]
    normalized: List[Dict[str, Any]] = []
    problems: List[Dict[str, Any]] = []

    for index, row in enumerate(rows, start=1):
        if not isinstance(row, dict):
            problems.append({"row": index, "error": "Row must be a JSON object."})
            continue
        try:
            parsed = schema.model_validate(row)
        except ValidationError as e:
            messages = [
                f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
            ]
            problems.append({"row": index, "error": "; ".join(messages)})
            continue
        normalized.append(parsed.model_dump(by_alias=True, exclude_unset=True))

    if problems:
        raise PayloadShapeError(entity_type.value, problems)
    return normalized
