# tablesync/db_sync/identity.py
import logging
from contextlib import contextmanager
from typing import Iterator, Optional, Sequence

from sqlalchemy import column, func, select, table, text
from sqlalchemy.engine import Connection, Engine

from ..schema.introspector import SchemaIntrospector
from .connections import open_connection

logger = logging.getLogger(__name__)


class IdentityDialect:
    """Backends that accept explicit identity values without a mode switch"""

    def enable_override(self, conn: Connection, table_name: str) -> None:
        pass

    def disable_override(self, conn: Connection, table_name: str) -> None:
        pass

    def reseed(self, conn: Connection, table_name: str, column_name: str, value: int) -> bool:
        """Move the counter to value; returns False when nothing was reseeded"""
        logger.debug(f"Reseeding is not supported for {conn.dialect.name}, skipping {table_name}")
        return False

    @staticmethod
    def quote(conn: Connection, name: str) -> str:
        return conn.dialect.identifier_preparer.quote(name)


class MssqlIdentity(IdentityDialect):

    def enable_override(self, conn: Connection, table_name: str) -> None:
        conn.execute(text(f"SET IDENTITY_INSERT {self.quote(conn, table_name)} ON"))

    def disable_override(self, conn: Connection, table_name: str) -> None:
        conn.execute(text(f"SET IDENTITY_INSERT {self.quote(conn, table_name)} OFF"))

    def reseed(self, conn: Connection, table_name: str, column_name: str, value: int) -> bool:
        conn.execute(text(f"DBCC CHECKIDENT ('{self.quote(conn, table_name)}', RESEED, {int(value)})"))
        return True


class PostgresIdentity(IdentityDialect):

    def reseed(self, conn: Connection, table_name: str, column_name: str, value: int) -> bool:
        # setval rejects 0, so an empty table restarts the sequence at 1
        conn.execute(
            text("SELECT setval(pg_get_serial_sequence(:table, :column), :value, :called)"),
            {'table': table_name, 'column': column_name,
             'value': max(int(value), 1), 'called': int(value) > 0},
        )
        return True


class MysqlIdentity(IdentityDialect):

    def reseed(self, conn: Connection, table_name: str, column_name: str, value: int) -> bool:
        conn.execute(text(f"ALTER TABLE {self.quote(conn, table_name)} AUTO_INCREMENT = {int(value) + 1}"))
        return True


class SqliteIdentity(IdentityDialect):

    def reseed(self, conn: Connection, table_name: str, column_name: str, value: int) -> bool:
        # Tables without AUTOINCREMENT have no sqlite_sequence row to move
        result = conn.execute(
            text("UPDATE sqlite_sequence SET seq = :value WHERE name = :table"),
            {'value': int(value), 'table': table_name},
        )
        return result.rowcount > 0


_DIALECTS = {
    'mssql': MssqlIdentity,
    'postgresql': PostgresIdentity,
    'mysql': MysqlIdentity,
    'mariadb': MysqlIdentity,
    'sqlite': SqliteIdentity,
}


def identity_dialect(conn: Connection) -> IdentityDialect:
    return _DIALECTS.get(conn.dialect.name, IdentityDialect)()


class IdentitySeedManager:
    """Identity override around inserts and the post-mirror reseed pass"""

    def __init__(self, introspector: Optional[SchemaIntrospector] = None):
        self.introspector = introspector or SchemaIntrospector()

    @contextmanager
    def identity_override(self, conn: Connection, table_name: str,
                          identity_column: Optional[str]) -> Iterator[bool]:
        """
        Allow explicit identity values on the destination for one table

        Yields:
            True when override is active and the identity column may be written
        """
        if not identity_column:
            yield False
            return

        dialect = identity_dialect(conn)
        try:
            dialect.enable_override(conn, table_name)
            active = True
        except Exception as e:
            logger.warning(f"Could not enable identity override on {table_name}: {str(e)}")
            active = False

        try:
            yield active
        finally:
            if active:
                try:
                    dialect.disable_override(conn, table_name)
                except Exception as e:
                    logger.warning(f"Could not disable identity override on {table_name}: {str(e)}")

    def reseed_table(self, conn: Connection, table_name: str) -> bool:
        """
        Move the identity counter to the current maximum key

        Returns:
            True if the table was reseeded, False if it has no primary key
            or no identity counter to move
        """
        pk = self.introspector.primary_key_column(conn, table_name)
        if not pk:
            return False

        query = select(func.coalesce(func.max(column(pk)), 0)).select_from(table(table_name))
        max_id = int(conn.execute(query).scalar() or 0)
        if not identity_dialect(conn).reseed(conn, table_name, pk, max_id):
            return False
        logger.debug(f"Reseeded {table_name} to {max_id}")
        return True

    def reset_identity_seeds(self, engine: Engine, table_names: Sequence[str]) -> int:
        """
        Reseed every table so the next natural insert continues from max + 1

        Failures are skipped per table; the pass as a whole never raises.

        Returns:
            Number of tables reseeded
        """
        reseeded = 0
        try:
            with open_connection(engine) as conn:
                for table_name in table_names:
                    try:
                        if self.reseed_table(conn, table_name):
                            reseeded += 1
                    except Exception as e:
                        logger.debug(f"Skipping reseed of {table_name}: {str(e)}")
                        continue
        except Exception as e:
            logger.warning(f"Identity reseed pass failed: {str(e)}")

        logger.info(f"Reseeded identity counters for {reseeded} table(s)")
        return reseeded
