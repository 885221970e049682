from __future__ import annotations

from sqlalchemy import inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from ..domain.catalog import Catalog
from ..infrastructure.logging import get_logger
from ..infrastructure.models import Base
from ..infrastructure.repositories import SqlCatalogStore

logger = get_logger(__name__)


def initialise_database(engine: Engine) -> bool:
    """
    Ensure all ORM tables exist.

    Returns:
        True if every table already existed before this call, False if at least one table
        needed to be created.
    """

    inspector = inspect(engine)
    existing_tables = set(inspector.get_table_names())
    expected_tables = [table.name for table in Base.metadata.sorted_tables]
    already_exists = all(table in existing_tables for table in expected_tables)
    Base.metadata.create_all(engine)
    if not already_exists:
        logger.info(f"Created missing tables ({len(expected_tables)} expected)")
    return already_exists


def load_catalog(session: Session, catalog: Catalog) -> None:
    """Write an in-memory catalog into the database and commit."""
    SqlCatalogStore(session).import_catalog(catalog)
    session.commit()
    logger.info(
        f"Loaded catalog: {len(catalog.sections)} sections, {len(catalog.questions)} questions"
    )
