# tablesync/schema/introspector.py
import logging
from typing import Any, Dict, List, Optional, Set

from sqlalchemy import MetaData, Table, inspect
from sqlalchemy.engine import Connection

from .column_set import ColumnInfo, ColumnSet

logger = logging.getLogger(__name__)


class SchemaIntrospector:
    """
    Read-only catalog queries against a live connection.

    Missing metadata is reported as an empty result instead of an error, so
    callers keep working when the two endpoints have diverged on purpose.
    """

    def table_exists(self, conn: Connection, table: str) -> bool:
        try:
            return inspect(conn).has_table(table)
        except Exception as e:
            logger.debug(f"Could not check existence of {table}: {str(e)}")
            return False

    def columns(self, conn: Connection, table: str) -> List[str]:
        """Column names in declaration order"""
        return self.column_set(conn, table).names

    def identity_column(self, conn: Connection, table: str) -> Optional[str]:
        return self.column_set(conn, table).identity

    def primary_key_column(self, conn: Connection, table: str) -> Optional[str]:
        return self.column_set(conn, table).primary_key

    def computed_columns(self, conn: Connection, table: str) -> Set[str]:
        return self.column_set(conn, table).computed

    def column_set(self, conn: Connection, table: str) -> ColumnSet:
        """
        Build the ColumnSet for one table

        Args:
            conn: Open connection to the endpoint
            table: Table name

        Returns:
            ColumnSet, empty when the table or its metadata is unavailable
        """
        try:
            inspector = inspect(conn)
            reflected = inspector.get_columns(table)
            pk_columns = inspector.get_pk_constraint(table).get('constrained_columns') or []
        except Exception as e:
            logger.debug(f"No column metadata for {table}: {str(e)}")
            return ColumnSet()

        dialect = conn.dialect.name
        primary_key = pk_columns[0] if pk_columns else None
        identity_found = False
        columns = []

        for column in reflected:
            is_identity = False
            if not identity_found and self._is_identity(column, pk_columns, dialect):
                is_identity = identity_found = True

            columns.append(ColumnInfo(
                name=column['name'],
                is_identity=is_identity,
                is_computed=bool(column.get('computed')),
                is_primary_key=primary_key is not None and column['name'] == primary_key,
                nullable=bool(column.get('nullable', True)),
                has_default=column.get('default') is not None,
            ))

        return ColumnSet(columns)

    def reflect_table(self, conn: Connection, table: str) -> Table:
        """Reflect a table so statements can be built with typed columns"""
        return Table(table, MetaData(), autoload_with=conn)

    @staticmethod
    def _is_identity(column: Dict[str, Any], pk_columns: List[str], dialect: str) -> bool:
        if column.get('identity'):
            return True

        default = str(column.get('default') or '')
        if dialect == 'postgresql':
            return column.get('autoincrement') is True and default.startswith('nextval(')
        if dialect in ('mysql', 'mariadb'):
            return column.get('autoincrement') is True
        if dialect == 'sqlite':
            # A lone INTEGER primary key is an alias for the rowid
            return (len(pk_columns) == 1 and column['name'] == pk_columns[0]
                    and str(column['type']).upper() == 'INTEGER')
        return False
