"""
Database initialization: table creation and reference data.
"""
import logging
from typing import Dict, Optional

from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session
from sqlmodel import SQLModel

# Imported for their side effect of registering tables on SQLModel.metadata
from app.models import catalog, import_models, operations  # noqa: F401
from app.models.catalog import Address, Currency, CustomerGroup
from app.models.operations import Shop, Warehouse

logger = logging.getLogger("app.database")

DEFAULT_CURRENCIES = [
    {"code": "EUR", "name": "Euro"},
    {"code": "USD", "name": "US Dollar"},
]


def create_tables(engine: Engine) -> None:
    """Create every table that does not exist yet."""
    SQLModel.metadata.create_all(engine)
    logger.info("Database tables created")


def _get_or_create(db: Session, model, lookup: Dict, defaults: Optional[Dict] = None):
    conditions = [getattr(model, key) == value for key, value in lookup.items()]
    instance = db.execute(select(model).where(*conditions)).scalar_one_or_none()
    if instance is not None:
        logger.debug(f"{model.__name__} already exists: {lookup}")
        return instance

    instance = model(**lookup, **(defaults or {}))
    db.add(instance)
    db.flush()
    logger.info(f"Created {model.__name__}: {lookup}")
    return instance


def init_reference_data(db: Session) -> Dict[str, int]:
    """
    Seed the records imports refer to: currencies, a head office address,
    the main warehouse, a shop and a default customer group.

    Args:
        db: Database session

    Returns:
        Ids of the seeded records, keyed by a short name
    """
    ids = {}
    for currency in DEFAULT_CURRENCIES:
        ids[f"currency_{currency['code'].lower()}"] = _get_or_create(
            db, Currency, {"code": currency["code"]}, {"name": currency["name"]}
        ).id

    ids["address"] = _get_or_create(
        db, Address, {"street": "1 Main Street", "city": "Paris"}, {"postal_code": "75001", "country": "France"}
    ).id
    ids["warehouse"] = _get_or_create(db, Warehouse, {"code": "MAIN"}, {"name": "Main warehouse"}).id
    ids["shop"] = _get_or_create(db, Shop, {"code": "SHOP1"}, {"name": "Flagship shop"}).id
    ids["customer_group"] = _get_or_create(db, CustomerGroup, {"name": "Retail"}).id

    db.commit()
    return ids


def init_database(engine: Engine, db: Session) -> Dict[str, int]:
    """
    Create tables and seed reference data.
    """
    logger.info("Initializing database...")

    create_tables(engine)
    ids = init_reference_data(db)

    logger.info("Database initialization completed")
    return ids
