"""
Database module - SQL Server query execution and capability probing
"""

from qsinsight.database.connection import (
    SqlExecutor,
    QueryExecutor,
    get_available_odbc_drivers,
    get_best_odbc_driver,
    resolve_odbc_driver,
)
from qsinsight.database.capability_probe import SchemaCapabilityProbe
from qsinsight.database.queries import QueryStoreQueries, DiagnosticQueryBuilder

__all__ = [
    "SqlExecutor",
    "QueryExecutor",
    "get_available_odbc_drivers",
    "get_best_odbc_driver",
    "resolve_odbc_driver",
    "SchemaCapabilityProbe",
    "QueryStoreQueries",
    "DiagnosticQueryBuilder",
]
