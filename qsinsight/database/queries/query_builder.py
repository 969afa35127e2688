"""
Diagnostic query builder

Renders the "longest running plans" query from a filter selection and the
detected server capabilities. The projected column list never depends on
the server version.
"""

from typing import List, Optional, Tuple

from qsinsight.database.queries.query_store_queries import QueryStoreQueries, resolve_time_window
from qsinsight.models.plan_row import FilterConfig, CapabilitySet


# (output column, expression); query_plan_hash_hex is resolved per capability set
_PROJECTION: Tuple[Tuple[str, Optional[str]], ...] = (
    ("last_duration", "rs.last_duration"),
    ("last_duration_sec", "CAST(rs.last_duration / 1000000.0 AS DECIMAL(18, 3))"),
    ("last_duration_hhmmss", "CONVERT(VARCHAR(8), DATEADD(SECOND, rs.last_duration / 1000000, 0), 108)"),
    ("query_id", "q.query_id"),
    ("query_hash_hex", "CONVERT(VARCHAR(18), q.query_hash, 1)"),
    ("query_plan_hash_hex", None),
    ("query_sql_text", "CAST(qt.query_sql_text AS NVARCHAR(MAX))"),
    ("plan_id", "p.plan_id"),
    ("last_execution_time", "CAST(rs.last_execution_time AS DATETIME2(3))"),
    ("query_plan", "CAST(p.query_plan AS NVARCHAR(MAX))"),
)


class DiagnosticQueryBuilder:
    """
    Pure SQL text builder

    Usage:
        sql = DiagnosticQueryBuilder.build(FilterConfig(top_n=50), capabilities)
    """

    @staticmethod
    def output_columns() -> List[str]:
        """Projected column names, in order"""
        return [name for name, _ in _PROJECTION]

    @staticmethod
    def predicates(filter_config: FilterConfig) -> List[Tuple[str, str]]:
        """Named WHERE fragments in their fixed order"""
        fragments = [(
            "time_window",
            QueryStoreQueries.TIME_WINDOW_PREDICATE.format(
                expression=resolve_time_window(filter_config.time_window)
            ),
        )]
        if filter_config.exclude_index_ops:
            fragments.append(("exclude_index_ops", QueryStoreQueries.EXCLUDE_INDEX_OPS_PREDICATE))
        if filter_config.exclude_stats_ops:
            fragments.append(("exclude_stats_ops", QueryStoreQueries.EXCLUDE_STATS_OPS_PREDICATE))
        return fragments

    @staticmethod
    def _projection(capabilities: CapabilitySet) -> List[str]:
        plan_hash = (
            QueryStoreQueries.PLAN_HASH_EXPRESSION
            if capabilities.has_plan_hash_column
            else QueryStoreQueries.PLAN_HASH_PLACEHOLDER
        )
        lines = []
        for name, expression in _PROJECTION:
            lines.append(f"    {expression or plan_hash} AS {name}")
        return lines

    @classmethod
    def build(cls, filter_config: FilterConfig, capabilities: CapabilitySet) -> str:
        """
        Render the diagnostic query

        top_n was range checked by FilterConfig and is only coerced to int
        here, never re-validated.
        """
        top_n = int(filter_config.top_n)

        where_lines = []
        for index, (_, fragment) in enumerate(cls.predicates(filter_config)):
            keyword = "WHERE" if index == 0 else "  AND"
            where_lines.append(f"{keyword} {fragment}")

        parts = [
            f"SELECT TOP ({top_n})",
            ",\n".join(cls._projection(capabilities)),
            QueryStoreQueries.FROM_CLAUSE,
            "\n".join(where_lines),
            QueryStoreQueries.ORDER_BY_CLAUSE,
        ]
        return "\n".join(parts) + ";"
