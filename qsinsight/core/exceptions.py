"""
Custom exceptions for QS Insight
"""

from typing import Optional, Any


class QSInsightError(Exception):
    """Base exception for all application errors"""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# Persistence Errors
# =============================================================================


class PersistenceError(QSInsightError):
    """Reading or writing a local file failed"""

    def __init__(self, message: str, path: Optional[str] = None, **kwargs):
        details = {"path": path, **kwargs} if path or kwargs else None
        super().__init__(message, details)


class CredentialStoreError(PersistenceError):
    """Credential storage errors"""
    pass


class ResultFileError(PersistenceError):
    """Exported result set could not be written or read"""
    pass


# =============================================================================
# Database Errors
# =============================================================================


class DatabaseError(QSInsightError):
    """Base database error"""
    pass


class ConnectionError(DatabaseError):
    """Connection details cannot be turned into a working connection"""

    def __init__(self, message: str, server: Optional[str] = None,
                 database: Optional[str] = None, **kwargs):
        details = {"server": server, "database": database, **kwargs}
        super().__init__(message, details)


class ProbeError(DatabaseError):
    """A capability probe failed; callers degrade to 'feature unavailable'"""

    def __init__(self, message: str, probe: Optional[str] = None,
                 database: Optional[str] = None, **kwargs):
        details = {"probe": probe, "database": database, **kwargs}
        super().__init__(message, details)


class QueryExecutionError(DatabaseError):
    """Query execution failed"""

    def __init__(self, message: str, query: Optional[str] = None, **kwargs):
        details = {"query": query[:500] if query else None, **kwargs}
        super().__init__(message, details)


class QueryTimeoutError(QueryExecutionError):
    """Query execution timed out"""
    pass


# =============================================================================
# Analysis Errors
# =============================================================================


class AnalysisError(QSInsightError):
    """Analysis related errors"""
    pass


class PlanParseError(AnalysisError):
    """Execution plan XML could not be parsed"""
    pass


# =============================================================================
# Task Errors
# =============================================================================


class TaskError(QSInsightError):
    """Long running task errors"""
    pass


class TaskCancelledError(TaskError):
    """Task was cancelled"""
    pass
