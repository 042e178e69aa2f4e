# tablesync/db_sync/sync_service.py
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from sqlalchemy import select
from sqlalchemy.engine import Connection

from ..schema.introspector import SchemaIntrospector
from ..schema.reconciler import missing_columns, reconcile_columns
from ..storage.tracking_store import SyncTrackingStore
from .change_window import build_change_predicate
from .connections import check_connection, classify_error, create_endpoint_engine, open_connection
from .errors import ConnectionCheckError, NoMatchingColumnsError, TableMissingError
from .identity import IdentitySeedManager
from .models import DatabaseEndpoint, SyncConfig, SyncDirection, SyncResult, TableSyncResult
from .retry import RetryCoordinator
from .row_upsert import RowUpsertEngine, TablePlan
from .tables import SYNC_TABLES, TableDescriptor, table_names, validate_table_order
from .validation import RowValidator

logger = logging.getLogger(__name__)

EndpointLike = Union[DatabaseEndpoint, str]


class DatabaseSyncService:
    """Replicates a fixed, dependency-ordered list of tables between a local and a cloud database"""

    def __init__(self, local: EndpointLike, cloud: EndpointLike,
                 config: Optional[SyncConfig] = None,
                 tables: Sequence[TableDescriptor] = SYNC_TABLES,
                 validator: Optional[RowValidator] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.local = local if isinstance(local, DatabaseEndpoint) else DatabaseEndpoint.local(local)
        self.cloud = cloud if isinstance(cloud, DatabaseEndpoint) else DatabaseEndpoint.cloud(cloud)
        self.config = config or SyncConfig()

        validate_table_order(tables)
        self.tables = tuple(tables)

        self.introspector = SchemaIntrospector()
        self.tracking = SyncTrackingStore(self.config.tracking_table)
        self.identity = IdentitySeedManager(self.introspector)
        self.validator = validator or RowValidator()
        self.retry = RetryCoordinator(self.config.max_retries, self.config.retry_base_delay, sleep)

        self._engines = {
            'local': create_endpoint_engine(self.local),
            'cloud': create_endpoint_engine(self.cloud),
        }
        logger.info(f"Initialized DB sync service for {len(self.tables)} tables")

    def test_connection(self, name: str) -> bool:
        """
        Probe one endpoint ('local' or 'cloud')

        Raises:
            ConnectionCheckError: If the endpoint is unreachable
        """
        if name not in self._engines:
            raise ValueError(f"Unknown endpoint: {name}")
        return check_connection(self._engines[name], name)

    def sync_database(self, device_identifier: Optional[str] = None) -> SyncResult:
        """
        One-way mirror of every table from local to cloud

        Every row is considered regardless of change windows. Identity
        counters on the cloud side are reseeded afterwards.

        Args:
            device_identifier: When given, each table is recorded in the
                tracking store with direction 'Initial'

        Returns:
            Aggregate SyncResult
        """
        result = SyncResult()

        try:
            if not self._check_endpoints(result):
                return result

            result.add_message()
            result.add_message("Starting data synchronization...")
            logger.info("Starting mirror sync")

            for table in self.tables:
                table_result = self.sync_table(table.name, SyncDirection.INITIAL,
                                               device_identifier, use_change_window=False)
                result.add_table_result(
                    table_result,
                    f"✓ {table.name}: {table_result.rows_copied} rows copied",
                    f"✗ {table.name}: {table_result.error_message}",
                )

            result.success = True
            result.add_message()
            result.add_message("=== Sync Complete ===")
            result.add_message(f"Total tables processed: {result.tables_processed}")
            result.add_message(f"Total rows copied: {result.rows_copied_total}")

            result.add_message()
            result.add_message("Resetting identity seeds in cloud database...")
            reseeded = self.reset_identity_seeds()
            result.add_message(f"✓ Identity seeds reset for {reseeded} table(s)")

            logger.info(f"Mirror sync finished: {result.rows_copied_total} rows copied")

        except Exception as e:
            result.success = False
            result.error_message = str(e)
            result.add_message(f"ERROR: {str(e)}")
            logger.error(f"Mirror sync aborted: {str(e)}")
        finally:
            result.finish()

        return result

    def sync_bidirectional(self, device_identifier: str) -> SyncResult:
        """
        Pull every table from cloud to local, then push every table back

        Both phases only move rows changed since the device's previous sync
        in that direction. All pulls finish before the first push starts.

        Args:
            device_identifier: Opaque identifier scoping the change windows

        Returns:
            Aggregate SyncResult
        """
        result = SyncResult()

        try:
            if not device_identifier:
                raise ValueError("A device identifier is required for bidirectional sync")

            if not self._check_endpoints(result):
                return result

            result.add_message()
            result.add_message("Starting bidirectional synchronization...")
            result.add_message(f"Device identifier: {device_identifier}")

            result.add_message()
            result.add_message("=== Step 1: Pulling changes from cloud to local ===")
            logger.info("Bidirectional sync: pull phase")
            for table in self.tables:
                pull = self.sync_table(table.name, SyncDirection.PULL, device_identifier)
                result.add_table_result(
                    pull,
                    f"✓ Pulled {table.name}: {pull.rows_copied} rows",
                    f"✗ Pull {table.name}: {pull.error_message}",
                )

            result.add_message()
            result.add_message("=== Step 2: Pushing changes from local to cloud ===")
            logger.info("Bidirectional sync: push phase")
            for table in self.tables:
                push = self.sync_table(table.name, SyncDirection.PUSH, device_identifier)
                result.add_table_result(
                    push,
                    f"✓ Pushed {table.name}: {push.rows_copied} rows",
                    f"✗ Push {table.name}: {push.error_message}",
                )

            result.success = True
            result.add_message()
            result.add_message("=== Bidirectional Sync Complete ===")
            result.add_message(f"Total tables processed: {result.tables_processed}")
            result.add_message(f"Total rows synced: {result.rows_copied_total}")

            logger.info(f"Bidirectional sync finished: {result.rows_copied_total} rows synced")

        except Exception as e:
            result.success = False
            result.error_message = str(e)
            result.add_message(f"ERROR: {str(e)}")
            logger.error(f"Bidirectional sync aborted: {str(e)}")
        finally:
            result.finish()

        return result

    def sync_table(self, table: str, direction: SyncDirection,
                   device_identifier: Optional[str] = None,
                   use_change_window: bool = True) -> TableSyncResult:
        """Sync one table in one direction, retrying connectivity failures"""
        return self.retry.run(
            table,
            lambda: self._sync_table_once(table, direction, device_identifier, use_change_window),
        )

    def reset_identity_seeds(self) -> int:
        """Reseed identity counters on the cloud side to each table's max key"""
        return self.identity.reset_identity_seeds(self._engines['cloud'], table_names(self.tables))

    def sync_history(self, device_identifier: str) -> List[Dict[str, Any]]:
        """Tracking rows recorded for a device"""
        with open_connection(self._engines['local']) as conn:
            return self.tracking.history(conn, device_identifier)

    def _check_endpoints(self, result: SyncResult) -> bool:
        for name in ('local', 'cloud'):
            result.add_message(f"Testing {name} database connection...")
            try:
                self.test_connection(name)
            except ConnectionCheckError as e:
                result.success = False
                result.error_message = f"Failed to connect to {name} database: {str(e)}"
                result.add_message(f"✗ {result.error_message}")
                return False
            result.add_message(f"✓ {name.capitalize()} database connection successful")
        return True

    def _sync_table_once(self, table: str, direction: SyncDirection,
                         device_identifier: Optional[str],
                         use_change_window: bool) -> TableSyncResult:
        """One attempt: two fresh connections, released on every exit path"""
        if direction == SyncDirection.PULL:
            source_name, destination_name = 'cloud', 'local'
        else:
            source_name, destination_name = 'local', 'cloud'

        try:
            with open_connection(self._engines['local']) as local_conn, \
                 open_connection(self._engines['cloud']) as cloud_conn:
                connections = {'local': local_conn, 'cloud': cloud_conn}
                return self._copy_table(
                    table, direction,
                    connections[source_name], source_name,
                    connections[destination_name], destination_name,
                    local_conn, device_identifier, use_change_window,
                )
        except Exception as e:
            logger.error(f"Error syncing {table} ({direction.value}): {str(e)}")
            return TableSyncResult.failure(table, str(e), classify_error(e))

    def _copy_table(self, table: str, direction: SyncDirection,
                    source_conn: Connection, source_name: str,
                    destination_conn: Connection, destination_name: str,
                    local_conn: Connection, device_identifier: Optional[str],
                    use_change_window: bool) -> TableSyncResult:
        if not self.introspector.table_exists(source_conn, table):
            raise TableMissingError(f"Table doesn't exist in {source_name} database")
        if not self.introspector.table_exists(destination_conn, table):
            raise TableMissingError(
                f"Table doesn't exist in {destination_name} database. Please create the table first."
            )

        source = self.introspector.column_set(source_conn, table)
        destination = self.introspector.column_set(destination_conn, table)

        missing = missing_columns(source.names, destination.names)
        if missing:
            logger.warning(f"{table}: columns missing in {destination_name} database: {', '.join(missing)}")

        columns = reconcile_columns(source.names, destination.names,
                                    destination.computed, destination.identity)
        if not columns:
            raise NoMatchingColumnsError("No matching columns found")

        source_table = self.introspector.reflect_table(source_conn, table)
        plan = TablePlan(
            name=table,
            columns=columns,
            source=source,
            destination=destination,
            destination_table=self.introspector.reflect_table(destination_conn, table),
            modified_column=next(
                (name for name in columns if name.lower() == self.config.modified_column.lower()), None
            ),
        )

        watermark = None
        if device_identifier:
            self.tracking.ensure_table(local_conn)
            if use_change_window:
                watermark = self.tracking.last_sync_time(local_conn, device_identifier, table, direction)

        query = select(source_table)
        if use_change_window:
            predicate = build_change_predicate(source_table, columns, watermark,
                                               self.config.modified_column,
                                               self.config.created_column)
            if predicate is not None:
                query = query.where(predicate)
                logger.debug(f"{table}: selecting rows changed since {watermark}")

        upsert = RowUpsertEngine(destination_conn, plan, self.validator, self.config.error_sample_size)
        with self.identity.identity_override(destination_conn, table, plan.identity_column) as override:
            rows = source_conn.execute(query).mappings()
            result = upsert.apply(rows, include_identity=override)

        if device_identifier:
            self.tracking.record_sync(local_conn, device_identifier, table, direction, result.rows_copied)

        logger.info(f"{direction.value} {table}: {result.rows_copied} rows copied, "
                    f"{result.rows_skipped} unchanged")
        return result
