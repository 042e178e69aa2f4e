# tablesync/db_sync/row_upsert.py
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional

from sqlalchemy import Table, insert, select, update
from sqlalchemy.engine import Connection

from ..schema.column_set import MISSING, ColumnSet, RowView
from .connections import classify_error
from .models import ErrorKind, TableErrorLog, TableSyncResult
from .validation import RowValidator

logger = logging.getLogger(__name__)


@dataclass
class TablePlan:
    """Everything the row loop needs to know about one table operation"""
    name: str
    columns: List[str]            # reconciled, source spelling
    source: ColumnSet
    destination: ColumnSet
    destination_table: Table
    modified_column: Optional[str] = None

    @property
    def primary_key(self) -> Optional[str]:
        """Destination primary key, if the source row carries it too"""
        pk = self.destination.primary_key
        if pk and any(name.lower() == pk.lower() for name in self.columns):
            return pk
        return None

    @property
    def identity_column(self) -> Optional[str]:
        """Destination identity column, if it is among the reconciled columns"""
        identity = self.destination.identity
        if identity and any(name.lower() == identity.lower() for name in self.columns):
            return identity
        return None

    def destination_name(self, source_name: str) -> str:
        return self.destination.resolve(source_name) or source_name

    def source_name(self, destination_name: str) -> str:
        return next((name for name in self.columns if name.lower() == destination_name.lower()),
                    destination_name)

    @property
    def update_columns(self) -> List[str]:
        """Reconciled columns minus primary key, computed and identity columns"""
        excluded = {name.lower() for name in self.destination.computed}
        for name in (self.destination.primary_key, self.destination.identity):
            if name:
                excluded.add(name.lower())
        return [name for name in self.columns if name.lower() not in excluded]


class RowUpsertEngine:
    """
    Inserts or updates candidate rows on the destination, one at a time.

    A failing row is recorded and skipped; it never aborts the table, except
    when the failure means the connection itself is gone.
    """

    def __init__(self, conn: Connection, plan: TablePlan,
                 validator: Optional[RowValidator] = None, error_sample_size: int = 5):
        self.conn = conn
        self.plan = plan
        self.validator = validator or RowValidator()
        self.error_sample_size = error_sample_size

    def apply(self, rows: Iterable[Mapping[str, Any]], include_identity: bool) -> TableSyncResult:
        """
        Write every candidate row to the destination

        Args:
            rows: Source rows in cursor order
            include_identity: Whether identity override is active, so the
                identity column may be part of the insert

        Returns:
            TableSyncResult for the row pass
        """
        plan = self.plan
        log = TableErrorLog()
        copied = skipped = failed = 0
        insert_columns = self._insert_columns(include_identity)

        for row in rows:
            view = RowView(row)
            key = self._key_value(view)
            try:
                existing = self._lookup(key)
                if existing is not None:
                    if self._update(view, existing, key):
                        copied += 1
                    else:
                        skipped += 1
                    continue

                errors = self.validator.validate(plan.name, view, plan.columns, plan.destination)
                if errors:
                    failed += 1
                    log.extend(ErrorKind.VALIDATION, errors, key)
                    logger.debug(f"Skipping invalid row {key} in {plan.name}: {errors}")
                    continue

                self._insert(view, insert_columns)
                copied += 1
            except Exception as e:
                if classify_error(e) == ErrorKind.CONNECTIVITY:
                    raise
                failed += 1
                log.add(ErrorKind.ROW, f"Row error: {str(e)}", key)
                logger.debug(f"Row {key} in {plan.name} failed: {str(e)}")

        if failed:
            logger.warning(f"{plan.name}: {failed} row(s) failed")

        return TableSyncResult(
            table=plan.name,
            success=True,
            rows_copied=copied,
            error_message=log.summary(failed, self.error_sample_size),
            errors=log.errors,
            rows_skipped=skipped,
        )

    def _insert_columns(self, include_identity: bool) -> List[str]:
        identity = self.plan.destination.identity
        if include_identity or not identity:
            return list(self.plan.columns)
        return [name for name in self.plan.columns if name.lower() != identity.lower()]

    def _key_value(self, view: RowView) -> Optional[Any]:
        pk = self.plan.primary_key
        if not pk:
            return None
        value = view.get(self.plan.source_name(pk))
        return None if value is MISSING else value

    def _lookup(self, key: Optional[Any]) -> Optional[RowView]:
        """Fetch the destination row with this key; None means insert"""
        pk = self.plan.primary_key
        if not pk or key is None:
            return None

        table = self.plan.destination_table
        names = [self.plan.destination_name(name) for name in self.plan.update_columns]
        modified = self._destination_modified_column()
        if modified and modified not in names:
            names.append(modified)
        if not names:
            names = [pk]

        query = select(*[table.c[name] for name in names]).where(table.c[pk] == key)
        row = self.conn.execute(query).mappings().first()
        return RowView(row) if row is not None else None

    def _destination_modified_column(self) -> Optional[str]:
        if not self.plan.modified_column:
            return None
        return self.plan.destination.resolve(self.plan.modified_column)

    def _is_stale(self, view: RowView, existing: RowView) -> bool:
        """True when the destination row is the same age or newer"""
        if not self.plan.modified_column:
            return False

        incoming = view.get(self.plan.modified_column)
        if incoming is MISSING or incoming is None:
            return False

        current = existing.get(self._destination_modified_column())
        if current is MISSING or current is None:
            return False

        try:
            return current >= incoming
        except TypeError:
            logger.debug(f"Cannot compare {current!r} with {incoming!r} in {self.plan.name}")
            return False

    def _update(self, view: RowView, existing: RowView, key: Any) -> bool:
        """Update an existing row; returns False when nothing was written"""
        plan = self.plan
        columns = plan.update_columns
        if not columns:
            return False

        if self._is_stale(view, existing):
            return False

        values = self._values(view, columns)
        if all(existing.get(name) == value for name, value in values.items()):
            return False

        table = plan.destination_table
        self.conn.execute(
            update(table)
            .where(table.c[plan.primary_key] == key)
            .values({table.c[name]: value for name, value in values.items()})
        )
        return True

    def _insert(self, view: RowView, columns: List[str]) -> None:
        table = self.plan.destination_table
        values = self._values(view, columns)
        self.conn.execute(insert(table).values({table.c[name]: value for name, value in values.items()}))

    def _values(self, view: RowView, columns: List[str]) -> Dict[str, Any]:
        """Incoming values keyed by destination column name"""
        values = {}
        for name in columns:
            value = view.get(name)
            values[self.plan.destination_name(name)] = None if value is MISSING else value
        return values
