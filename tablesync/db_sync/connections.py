# tablesync/db_sync/connections.py
import logging
from typing import Any, Dict

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Connection, Engine, make_url
from sqlalchemy.exc import DBAPIError, DisconnectionError, NoSuchTableError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.pool import NullPool

from .errors import (ConnectionCheckError, EndpointUnavailableError, NoMatchingColumnsError,
                     TableMissingError)
from .models import DatabaseEndpoint, ErrorKind

logger = logging.getLogger(__name__)


def _connect_args(endpoint: DatabaseEndpoint, backend: str) -> Dict[str, Any]:
    """Translate endpoint timeouts into driver connect arguments"""
    args: Dict[str, Any] = {}
    connect_timeout = endpoint.connect_timeout
    command_timeout = endpoint.command_timeout

    if backend == 'mssql':
        if connect_timeout:
            args['timeout'] = connect_timeout
    elif backend == 'postgresql':
        if connect_timeout:
            args['connect_timeout'] = connect_timeout
        if command_timeout:
            args['options'] = f"-c statement_timeout={command_timeout * 1000}"
    elif backend == 'mysql':
        if connect_timeout:
            args['connect_timeout'] = connect_timeout
        if command_timeout:
            args['read_timeout'] = command_timeout
    elif backend == 'sqlite':
        if connect_timeout:
            args['timeout'] = connect_timeout

    return args


def create_endpoint_engine(endpoint: DatabaseEndpoint) -> Engine:
    """
    Create an engine for one endpoint

    NullPool is used so that every connect() opens a new physical connection
    and close() releases it.

    Args:
        endpoint: Endpoint descriptor with URL and optional timeouts

    Returns:
        SQLAlchemy engine
    """
    url = make_url(endpoint.url)
    backend = url.get_backend_name()
    engine = create_engine(
        url,
        poolclass=NullPool,
        connect_args=_connect_args(endpoint, backend),
    )

    if backend == 'mssql' and endpoint.command_timeout:
        command_timeout = endpoint.command_timeout

        @event.listens_for(engine, 'connect')
        def _set_query_timeout(dbapi_connection, connection_record):
            # pyodbc exposes the per-statement timeout on the connection
            dbapi_connection.timeout = command_timeout

    logger.debug(f"Created engine for {endpoint.name} endpoint ({backend})")
    return engine


def open_connection(engine: Engine) -> Connection:
    """
    Open an autocommit connection; each statement commits on its own

    Raises:
        EndpointUnavailableError: If the connection cannot be established
    """
    try:
        conn = engine.connect()
    except Exception as e:
        raise EndpointUnavailableError(f"Could not connect to {engine.url.database}: {str(e)}") from e
    return conn.execution_options(isolation_level='AUTOCOMMIT')


def check_connection(engine: Engine, name: str) -> bool:
    """
    Verify that an endpoint is reachable and answers a trivial query

    Raises:
        ConnectionCheckError: If the endpoint cannot be reached
    """
    try:
        with engine.connect() as conn:
            conn.execute(text('SELECT 1')).scalar()
        return True
    except Exception as e:
        logger.error(f"Connection check failed for {name} database: {str(e)}")
        raise ConnectionCheckError(f"Connection failed: {str(e)}") from e


def classify_error(error: BaseException) -> ErrorKind:
    """
    Map a raised exception to the error kind used for retry decisions

    Driver errors count as connectivity only when SQLAlchemy invalidated the
    connection (the dialect recognised a disconnect) or when opening the
    connection failed. Other OperationalErrors, such as a failing trigger or
    constraint, are ordinary statement errors.
    """
    if isinstance(error, DBAPIError) and error.connection_invalidated:
        return ErrorKind.CONNECTIVITY
    if isinstance(error, (EndpointUnavailableError, DisconnectionError, PoolTimeoutError,
                          ConnectionError, TimeoutError)):
        return ErrorKind.CONNECTIVITY
    if isinstance(error, (NoSuchTableError, NoMatchingColumnsError, TableMissingError)):
        return ErrorKind.SCHEMA
    return ErrorKind.INTERNAL
