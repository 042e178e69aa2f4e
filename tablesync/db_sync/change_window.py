# tablesync/db_sync/change_window.py
import logging
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy import Table, or_
from sqlalchemy.sql.elements import ColumnElement

logger = logging.getLogger(__name__)


def _find(columns: Sequence[str], name: str) -> Optional[str]:
    return next((column for column in columns if column.lower() == name.lower()), None)


def build_change_predicate(table: Table,
                           columns: Sequence[str],
                           watermark: Optional[datetime],
                           modified_column: str = 'modified_date',
                           created_column: str = 'created_date') -> Optional[ColumnElement]:
    """
    Build the WHERE clause selecting rows changed since the last sync

    Args:
        table: Reflected source table
        columns: Reconciled column names
        watermark: Exclusive lower bound from the tracking store
        modified_column: Name of the modification timestamp column
        created_column: Name of the creation timestamp column

    Returns:
        Predicate, or None for a full scan
    """
    if watermark is None:
        return None

    modified = _find(columns, modified_column)
    if modified is not None:
        # Rows without a timestamp are in an unknown state and always considered
        column = table.c[modified]
        return or_(column > watermark, column.is_(None))

    created = _find(columns, created_column)
    if created is not None:
        return table.c[created] > watermark

    logger.debug(f"{table.name} has no timestamp columns, scanning all rows")
    return None
