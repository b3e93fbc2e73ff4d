"""
Catalog and party models targeted by bulk imports.
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlmodel import Field, SQLModel

from app.models.timestamps import timestamp_field


class Currency(SQLModel, table=True):
    __tablename__ = "currencies"

    id: Optional[int] = Field(default=None, primary_key=True)
    code: str = Field(max_length=3, unique=True)
    name: str = Field(max_length=100)


class Address(SQLModel, table=True):
    __tablename__ = "addresses"

    id: Optional[int] = Field(default=None, primary_key=True)
    street: str = Field(max_length=255)
    city: str = Field(max_length=100)
    postal_code: Optional[str] = Field(default=None, max_length=20)
    country: str = Field(max_length=100)


class CustomerGroup(SQLModel, table=True):
    __tablename__ = "customer_groups"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(max_length=100, unique=True)
    discount_percentage: Decimal = Field(default=Decimal("0"), max_digits=5, decimal_places=2)


class ProductCategory(SQLModel, table=True):
    __tablename__ = "product_categories"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(max_length=255, unique=True)
    description: Optional[str] = Field(default=None, max_length=1000)
    parent_category_id: Optional[int] = Field(default=None, foreign_key="product_categories.id")
    created_at: datetime = timestamp_field()


class Product(SQLModel, table=True):
    __tablename__ = "products"

    id: Optional[int] = Field(default=None, primary_key=True)
    sku: str = Field(max_length=100, unique=True, index=True)
    name: str = Field(max_length=255)
    description: Optional[str] = Field(default=None, max_length=2000)
    product_category_id: int = Field(foreign_key="product_categories.id")
    unit_of_measure: str = Field(max_length=50)
    default_purchase_price: Optional[Decimal] = Field(default=None, max_digits=15, decimal_places=4)
    default_selling_price_ht: Optional[Decimal] = Field(default=None, max_digits=15, decimal_places=4)
    barcode_qr_code: Optional[str] = Field(default=None, max_length=255)
    created_by_user_id: Optional[int] = Field(default=None)
    created_at: datetime = timestamp_field()


class Customer(SQLModel, table=True):
    __tablename__ = "customers"

    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(max_length=255, unique=True, index=True)
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    company_name: Optional[str] = Field(default=None, max_length=255)
    phone_number: Optional[str] = Field(default=None, max_length=30)
    default_currency_id: int = Field(foreign_key="currencies.id")
    billing_address_id: int = Field(foreign_key="addresses.id")
    customer_group_id: Optional[int] = Field(default=None, foreign_key="customer_groups.id")
    created_by_user_id: Optional[int] = Field(default=None)
    created_at: datetime = timestamp_field()


class Supplier(SQLModel, table=True):
    __tablename__ = "suppliers"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(max_length=255)
    email: str = Field(max_length=255, unique=True, index=True)
    contact_person_name: Optional[str] = Field(default=None, max_length=255)
    phone_number: Optional[str] = Field(default=None, max_length=30)
    address_id: int = Field(foreign_key="addresses.id")
    default_currency_id: int = Field(foreign_key="currencies.id")
    created_by_user_id: Optional[int] = Field(default=None)
    created_at: datetime = timestamp_field()
