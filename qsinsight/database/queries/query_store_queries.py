"""
Query Store SQL Templates

Metadata probes and the fragments the diagnostic query is assembled from.
Probe queries use named binds; the diagnostic query is fully rendered text
so it can be shown, copied and re-run as is.
"""

from typing import Dict, Optional

from qsinsight.core.constants import TimeWindow


# Relative time expressions, one per filter preset
TIME_WINDOW_EXPRESSIONS: Dict[TimeWindow, str] = {
    TimeWindow.LAST_1_HOUR: "DATEADD(HOUR, -1, SYSUTCDATETIME())",
    TimeWindow.LAST_2_HOURS: "DATEADD(HOUR, -2, SYSUTCDATETIME())",
    TimeWindow.LAST_6_HOURS: "DATEADD(HOUR, -6, SYSUTCDATETIME())",
    TimeWindow.LAST_12_HOURS: "DATEADD(HOUR, -12, SYSUTCDATETIME())",
    TimeWindow.LAST_1_DAY: "DATEADD(DAY, -1, SYSUTCDATETIME())",
    TimeWindow.LAST_2_DAYS: "DATEADD(DAY, -2, SYSUTCDATETIME())",
    TimeWindow.LAST_5_DAYS: "DATEADD(DAY, -5, SYSUTCDATETIME())",
    TimeWindow.LAST_7_DAYS: "DATEADD(DAY, -7, SYSUTCDATETIME())",
    TimeWindow.LAST_10_DAYS: "DATEADD(DAY, -10, SYSUTCDATETIME())",
    TimeWindow.LAST_2_WEEKS: "DATEADD(WEEK, -2, SYSUTCDATETIME())",
    TimeWindow.LAST_4_WEEKS: "DATEADD(WEEK, -4, SYSUTCDATETIME())",
}

DEFAULT_TIME_WINDOW = TimeWindow.LAST_1_HOUR


def resolve_time_window(selection: Optional[str]) -> str:
    """Time expression for a preset; unknown or missing means last hour"""
    try:
        window = TimeWindow(selection)
    except ValueError:
        window = DEFAULT_TIME_WINDOW
    return TIME_WINDOW_EXPRESSIONS[window]


class QueryStoreQueries:
    """
    Query Store metadata and diagnostic SQL

    Principles:
    - Probes are read-only and cheap
    - Probe results never decide more than "available / not available"
    """

    # ==========================================================================
    # CAPABILITY PROBES
    # ==========================================================================

    # Tier 1: one round-trip on master
    QUERY_STORE_DATABASES = """
    SELECT d.name
    FROM sys.databases d
    WHERE d.database_id > 4
      AND d.state_desc = 'ONLINE'
      AND d.is_query_store_on = 1
    ORDER BY d.name
    """

    # Tier 2: candidates, then one options check per database
    ONLINE_USER_DATABASES = """
    SELECT d.name
    FROM sys.databases d
    WHERE d.database_id > 4
      AND d.state_desc = 'ONLINE'
    ORDER BY d.name
    """

    DATABASE_QUERY_STORE_STATE = """
    SELECT CAST(qso.actual_state_desc AS NVARCHAR(60)) AS actual_state_desc
    FROM sys.database_query_store_options qso
    """

    QUERY_STORE_ACTIVE_STATES = ("READ_WRITE", "READ_ONLY", "READ_CAPTURE_SECONDARY")

    COLUMN_EXISTS = """
    SELECT CAST(COUNT(*) AS INT) AS column_count
    FROM sys.all_columns c
    WHERE c.object_id = OBJECT_ID(:table_name)
      AND c.name = :column_name
    """

    # ==========================================================================
    # DIAGNOSTIC QUERY FRAGMENTS
    # ==========================================================================

    FROM_CLAUSE = """FROM sys.query_store_query_text qt
JOIN sys.query_store_query q ON qt.query_text_id = q.query_text_id
JOIN sys.query_store_plan p ON q.query_id = p.query_id
JOIN sys.query_store_runtime_stats rs ON p.plan_id = rs.plan_id"""

    TIME_WINDOW_PREDICATE = "rs.last_execution_time >= {expression}"
    EXCLUDE_INDEX_OPS_PREDICATE = "qt.query_sql_text NOT LIKE N'%ALTER INDEX%'"
    EXCLUDE_STATS_OPS_PREDICATE = "qt.query_sql_text NOT LIKE N'%UPDATE STATISTICS%'"

    ORDER_BY_CLAUSE = "ORDER BY rs.last_duration DESC"

    PLAN_HASH_EXPRESSION = "CONVERT(VARCHAR(18), p.query_plan_hash, 1)"
    PLAN_HASH_PLACEHOLDER = "CAST(NULL AS VARCHAR(18))"
