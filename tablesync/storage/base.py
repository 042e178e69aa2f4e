from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.engine import Connection

from ..db_sync.models import SyncDirection

class TrackingStorage(ABC):
    """Abstract base class for per-device sync bookkeeping"""

    @abstractmethod
    def ensure_table(self, conn: Connection) -> bool:
        """Create the tracking table when it is missing"""
        pass

    @abstractmethod
    def last_sync_time(self, conn: Connection, device_identifier: str,
                       table_name: str, direction: SyncDirection) -> Optional[datetime]:
        """Get the change window lower bound for one table and direction"""
        pass

    @abstractmethod
    def record_sync(self, conn: Connection, device_identifier: str, table_name: str,
                    direction: SyncDirection, records_synced: int,
                    synced_at: Optional[datetime] = None) -> bool:
        """Store the outcome of one table operation"""
        pass

    @abstractmethod
    def history(self, conn: Connection, device_identifier: str) -> List[Dict[str, Any]]:
        """Get all tracking rows for a device"""
        pass
