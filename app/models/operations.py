"""
Stock and order models created by compound per-row imports.
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlmodel import Field, SQLModel

from app.models.timestamps import timestamp_field


class Warehouse(SQLModel, table=True):
    __tablename__ = "warehouses"

    id: Optional[int] = Field(default=None, primary_key=True)
    code: str = Field(max_length=50, unique=True)
    name: str = Field(max_length=255)


class Shop(SQLModel, table=True):
    __tablename__ = "shops"

    id: Optional[int] = Field(default=None, primary_key=True)
    code: str = Field(max_length=50, unique=True)
    name: str = Field(max_length=255)


class StockMovement(SQLModel, table=True):
    """Inventory movement; opening stock imports write manual entries."""

    __tablename__ = "stock_movements"

    id: Optional[int] = Field(default=None, primary_key=True)
    product_id: int = Field(foreign_key="products.id", index=True)
    product_variant_id: Optional[int] = Field(default=None)
    warehouse_id: Optional[int] = Field(default=None, foreign_key="warehouses.id")
    shop_id: Optional[int] = Field(default=None, foreign_key="shops.id")
    movement_type: str = Field(max_length=50)  # manual_entry_in, sale_delivery, ...
    quantity: Decimal = Field(max_digits=15, decimal_places=3)
    unit_cost_at_movement: Optional[Decimal] = Field(default=None, max_digits=15, decimal_places=4)
    user_id: Optional[int] = Field(default=None)
    reference_document_type: Optional[str] = Field(default=None, max_length=50)
    reference_document_id: Optional[int] = Field(default=None)
    notes: Optional[str] = Field(default=None, max_length=1000)
    movement_date: datetime = timestamp_field()


class SalesOrder(SQLModel, table=True):
    __tablename__ = "sales_orders"

    id: Optional[int] = Field(default=None, primary_key=True)
    customer_id: int = Field(foreign_key="customers.id", index=True)
    currency_id: Optional[int] = Field(default=None, foreign_key="currencies.id")
    order_date: datetime = timestamp_field()
    status: str = Field(max_length=30, default="draft")
    total_amount: Decimal = Field(default=Decimal("0"), max_digits=15, decimal_places=4)
    notes: Optional[str] = Field(default=None, max_length=1000)
    created_by_user_id: Optional[int] = Field(default=None)


class SalesOrderItem(SQLModel, table=True):
    __tablename__ = "sales_order_items"

    id: Optional[int] = Field(default=None, primary_key=True)
    sales_order_id: int = Field(foreign_key="sales_orders.id", index=True)
    product_id: int = Field(foreign_key="products.id")
    quantity: Decimal = Field(max_digits=15, decimal_places=3)
    unit_price: Decimal = Field(max_digits=15, decimal_places=4)


class PurchaseOrder(SQLModel, table=True):
    __tablename__ = "purchase_orders"

    id: Optional[int] = Field(default=None, primary_key=True)
    supplier_id: int = Field(foreign_key="suppliers.id", index=True)
    currency_id: Optional[int] = Field(default=None, foreign_key="currencies.id")
    warehouse_id_for_delivery: Optional[int] = Field(default=None, foreign_key="warehouses.id")
    order_date: datetime = timestamp_field()
    status: str = Field(max_length=30, default="draft")
    total_amount: Decimal = Field(default=Decimal("0"), max_digits=15, decimal_places=4)
    notes: Optional[str] = Field(default=None, max_length=1000)
    created_by_user_id: Optional[int] = Field(default=None)


class PurchaseOrderItem(SQLModel, table=True):
    __tablename__ = "purchase_order_items"

    id: Optional[int] = Field(default=None, primary_key=True)
    purchase_order_id: int = Field(foreign_key="purchase_orders.id", index=True)
    product_id: int = Field(foreign_key="products.id")
    quantity: Decimal = Field(max_digits=15, decimal_places=3)
    unit_price: Decimal = Field(max_digits=15, decimal_places=4)
