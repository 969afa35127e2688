"""
SQL templates and the diagnostic query builder
"""

from qsinsight.database.queries.query_store_queries import (
    QueryStoreQueries,
    TIME_WINDOW_EXPRESSIONS,
    resolve_time_window,
)
from qsinsight.database.queries.query_builder import DiagnosticQueryBuilder

__all__ = [
    "QueryStoreQueries",
    "TIME_WINDOW_EXPRESSIONS",
    "resolve_time_window",
    "DiagnosticQueryBuilder",
]
