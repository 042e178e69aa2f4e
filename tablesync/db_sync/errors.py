class SyncError(Exception):
    """Base class for replication errors"""


class ConnectionCheckError(SyncError):
    """An endpoint failed the reachability probe"""


class NoMatchingColumnsError(SyncError):
    """Source and destination share no writable columns"""


class TableMissingError(SyncError):
    """A table is absent from one of the endpoints"""


class EndpointUnavailableError(SyncError):
    """A connection to an endpoint could not be opened"""
