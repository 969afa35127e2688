"""
Core module - Configuration, constants, exceptions, and logging
"""

from qsinsight.core.config import Settings, get_settings
from qsinsight.core.constants import TimeWindow
from qsinsight.core.exceptions import (
    QSInsightError,
    PersistenceError,
    CredentialStoreError,
    ResultFileError,
    DatabaseError,
    ConnectionError,
    ProbeError,
    QueryExecutionError,
    QueryTimeoutError,
    AnalysisError,
    PlanParseError,
    TaskError,
    TaskCancelledError,
)
from qsinsight.core.logger import get_logger, setup_logging, LogContext

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Constants
    "TimeWindow",
    # Exceptions
    "QSInsightError",
    "PersistenceError",
    "CredentialStoreError",
    "ResultFileError",
    "DatabaseError",
    "ConnectionError",
    "ProbeError",
    "QueryExecutionError",
    "QueryTimeoutError",
    "AnalysisError",
    "PlanParseError",
    "TaskError",
    "TaskCancelledError",
    # Logging
    "get_logger",
    "setup_logging",
    "LogContext",
]
