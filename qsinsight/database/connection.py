"""
Query execution against SQL Server
"""

from threading import Lock
from typing import Optional, List, Dict, Any, Protocol
from urllib.parse import quote_plus

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine, Connection
from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from qsinsight.core.constants import ODBC_DRIVER_PREFERENCES, DEFAULT_QUERY_TIMEOUT
from qsinsight.core.logger import get_logger
from qsinsight.core.exceptions import ConnectionError, QueryExecutionError, QueryTimeoutError

logger = get_logger('database.connection')


def get_available_odbc_drivers() -> List[str]:
    """Get list of available SQL Server ODBC drivers"""
    try:
        import pyodbc
        drivers = pyodbc.drivers()
        return [d for d in drivers if 'SQL Server' in d]
    except Exception as e:
        logger.error(f"Failed to get ODBC drivers: {e}")
        return []


def get_best_odbc_driver() -> Optional[str]:
    """Get the best available ODBC driver"""
    available = get_available_odbc_drivers()

    for preferred in ODBC_DRIVER_PREFERENCES:
        if preferred in available:
            return preferred

    return available[0] if available else None


def resolve_odbc_driver(configured: Optional[str] = None) -> str:
    """
    Configured driver, else the best installed one

    Raises:
        ConnectionError: no SQL Server ODBC driver is installed
    """
    driver = configured or get_best_odbc_driver()
    if not driver:
        raise ConnectionError("No SQL Server ODBC driver found")
    return driver


class QueryExecutor(Protocol):
    """What the probe and the service need from a database client"""

    def execute(
        self,
        connection_string: str,
        sql: str,
        timeout_seconds: int = DEFAULT_QUERY_TIMEOUT,
        params: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        ...

    def dispose(self) -> None:
        ...


# ODBC SQLSTATEs for an expired statement timeout
QUERY_TIMEOUT_STATES = ('HYT00', 'HYT01')


def _sqlstate(exc: DBAPIError) -> str:
    """SQLSTATE of the driver error (pyodbc puts it first in args)"""
    args = getattr(exc.orig, 'args', None) or ()
    return str(args[0]).upper() if args else ""


class SqlExecutor:
    """
    SQLAlchemy/pyodbc executor

    Engines are cached per connection string; call dispose() when done.
    """

    def __init__(self, echo_sql: bool = False):
        self._engines: Dict[str, Engine] = {}
        self._lock = Lock()
        self._echo_sql = echo_sql

    def _get_engine(self, connection_string: str) -> Engine:
        with self._lock:
            engine = self._engines.get(connection_string)
            if engine is None:
                engine = create_engine(
                    f"mssql+pyodbc:///?odbc_connect={quote_plus(connection_string)}",
                    pool_pre_ping=True,
                    echo=self._echo_sql,
                )
                self._engines[connection_string] = engine
            return engine

    def _connect(self, connection_string: str, sql: str) -> Connection:
        try:
            return self._get_engine(connection_string).connect()
        except DBAPIError as e:
            raise QueryExecutionError(f"Connection failed: {e.orig or e}", query=sql)
        except Exception as e:
            raise QueryExecutionError(f"Connection failed: {e}", query=sql)

    def execute(
        self,
        connection_string: str,
        sql: str,
        timeout_seconds: int = DEFAULT_QUERY_TIMEOUT,
        params: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """
        Execute a SQL batch and return its first result set

        Args:
            connection_string: ODBC connection string
            sql: SQL text; named binds (:name) only when params is given
            timeout_seconds: Statement timeout
            params: Bind parameters

        Returns:
            List of dictionaries with column names as keys

        Raises:
            QueryExecutionError: connection or statement failed
            QueryTimeoutError: statement timeout expired
        """
        with self._connect(connection_string, sql) as conn:
            try:
                # pyodbc statement timeout lives on the DBAPI connection
                conn.connection.dbapi_connection.timeout = int(timeout_seconds)

                if params:
                    result = conn.execute(text(sql), params)
                else:
                    result = conn.exec_driver_sql(sql)

                if result.returns_rows:
                    columns = list(result.keys())
                    return [dict(zip(columns, row)) for row in result.fetchall()]
                return []

            except DBAPIError as e:
                if _sqlstate(e) in QUERY_TIMEOUT_STATES:
                    raise QueryTimeoutError(f"Query timed out after {timeout_seconds}s", query=sql)
                raise QueryExecutionError(f"Query failed: {e.orig or e}", query=sql)
            except SQLAlchemyError as e:
                raise QueryExecutionError(f"Query execution error: {e}", query=sql)
            except Exception as e:
                raise QueryExecutionError(f"Query execution error: {e}", query=sql)

    def dispose(self) -> None:
        """Close all pooled connections"""
        with self._lock:
            for engine in self._engines.values():
                engine.dispose()
            self._engines.clear()
        logger.debug("Disposed database engines")
