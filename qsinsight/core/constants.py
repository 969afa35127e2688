"""
Application constants and enumerations
"""

from enum import Enum
from typing import Final

# =============================================================================
# Application Info
# =============================================================================

APP_NAME: Final[str] = "QS Insight"
APP_VERSION: Final[str] = "1.0.0"

# =============================================================================
# File Paths
# =============================================================================

CONFIG_FILE: Final[str] = "settings.json"
SESSIONS_FILE: Final[str] = "sessions.json"
LOG_FILE: Final[str] = "qsinsight.log"

# =============================================================================
# Database Constants
# =============================================================================

DEFAULT_QUERY_TIMEOUT: Final[int] = 300  # seconds
MAX_QUERY_TIMEOUT: Final[int] = 3600  # seconds
DEFAULT_CONNECTION_TIMEOUT: Final[int] = 15  # seconds
ADMIN_DATABASE: Final[str] = "master"

# ODBC Driver preferences (newest to oldest)
ODBC_DRIVER_PREFERENCES: Final[list[str]] = [
    "ODBC Driver 18 for SQL Server",
    "ODBC Driver 17 for SQL Server",
    "ODBC Driver 13 for SQL Server",
    "SQL Server Native Client 11.0",
    "SQL Server",
]

# =============================================================================
# Query Constants
# =============================================================================

MIN_TOP_N: Final[int] = 10
MAX_TOP_N: Final[int] = 10000
DEFAULT_TOP_N: Final[int] = 50

PLAN_HASH_TABLE: Final[str] = "sys.query_store_plan"
PLAN_HASH_COLUMN: Final[str] = "query_plan_hash"

# =============================================================================
# Enumerations
# =============================================================================


class TimeWindow(str, Enum):
    """Relative time windows offered by the filter bar"""
    LAST_1_HOUR = "Last 1 hour"
    LAST_2_HOURS = "Last 2 hours"
    LAST_6_HOURS = "Last 6 hours"
    LAST_12_HOURS = "Last 12 hours"
    LAST_1_DAY = "Last 1 day"
    LAST_2_DAYS = "Last 2 days"
    LAST_5_DAYS = "Last 5 days"
    LAST_7_DAYS = "Last 7 days"
    LAST_10_DAYS = "Last 10 days"
    LAST_2_WEEKS = "Last 2 weeks"
    LAST_4_WEEKS = "Last 4 weeks"
