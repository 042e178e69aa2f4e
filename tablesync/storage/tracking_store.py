# tablesync/storage/tracking_store.py
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import (Column, DateTime, Integer, MetaData, String, Table,
                        UniqueConstraint, insert, or_, select, update)
from sqlalchemy.engine import Connection

from ..db_sync.models import SyncDirection
from .base import TrackingStorage

logger = logging.getLogger(__name__)


class SyncTrackingStore(TrackingStorage):
    """
    Tracking table on the local endpoint, one row per
    (device identifier, table, direction).

    Bookkeeping never fails a sync: every error is logged and swallowed.
    """

    def __init__(self, table_name: str = 'tbl_sync_tracking'):
        self.metadata = MetaData()
        self.table = Table(
            table_name, self.metadata,
            Column('id', Integer, primary_key=True, autoincrement=True),
            Column('pc_identifier', String(100), nullable=False),
            Column('table_name', String(128), nullable=False),
            Column('last_sync_timestamp', DateTime),
            Column('last_sync_direction', String(20)),
            Column('records_synced', Integer, nullable=False, default=0),
            Column('created_date', DateTime, default=datetime.now),
            Column('modified_date', DateTime),
            UniqueConstraint('pc_identifier', 'table_name', 'last_sync_direction'),
        )

    def ensure_table(self, conn: Connection) -> bool:
        try:
            self.metadata.create_all(conn, checkfirst=True)
            return True
        except Exception as e:
            logger.warning(f"Could not create tracking table {self.table.name}: {str(e)}")
            return False

    def last_sync_time(self, conn: Connection, device_identifier: str,
                       table_name: str, direction: SyncDirection) -> Optional[datetime]:
        t = self.table
        try:
            query = (
                select(t.c.last_sync_timestamp)
                .where(t.c.pc_identifier == device_identifier)
                .where(t.c.table_name == table_name)
                .where(or_(t.c.last_sync_direction == direction.value,
                           t.c.last_sync_direction.is_(None)))
                .order_by(t.c.last_sync_timestamp.desc())
                .limit(1)
            )
            return conn.execute(query).scalar()
        except Exception as e:
            logger.warning(f"Could not read last sync time for {table_name}: {str(e)}")
            return None

    def record_sync(self, conn: Connection, device_identifier: str, table_name: str,
                    direction: SyncDirection, records_synced: int,
                    synced_at: Optional[datetime] = None) -> bool:
        t = self.table
        synced_at = synced_at or datetime.now()
        key = (
            (t.c.pc_identifier == device_identifier)
            & (t.c.table_name == table_name)
            & (t.c.last_sync_direction == direction.value)
        )

        try:
            exists = conn.execute(select(t.c.id).where(key).limit(1)).first() is not None
            if exists:
                conn.execute(
                    update(t).where(key).values(
                        last_sync_timestamp=synced_at,
                        records_synced=records_synced,
                        modified_date=synced_at,
                    )
                )
            else:
                conn.execute(
                    insert(t).values(
                        pc_identifier=device_identifier,
                        table_name=table_name,
                        last_sync_timestamp=synced_at,
                        last_sync_direction=direction.value,
                        records_synced=records_synced,
                    )
                )
            logger.debug(f"Recorded {direction.value} of {table_name}: {records_synced} records")
            return True
        except Exception as e:
            logger.warning(f"Could not record sync of {table_name}: {str(e)}")
            return False

    def history(self, conn: Connection, device_identifier: str) -> List[Dict[str, Any]]:
        t = self.table
        try:
            rows = conn.execute(
                select(t).where(t.c.pc_identifier == device_identifier).order_by(t.c.id)
            ).mappings()
            return [dict(row) for row in rows]
        except Exception as e:
            logger.warning(f"Could not read sync history: {str(e)}")
            return []
