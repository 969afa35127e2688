"""
Top Queries Service

Request/response entry point for the presentation layer:
capabilities -> diagnostic SQL -> rows -> (optional) plan insights.
"""

import time
from typing import Optional, List, Callable

from qsinsight.analysis.plan_insights import PlanInsightEngine
from qsinsight.core.config import Settings, get_settings
from qsinsight.core.constants import PLAN_HASH_TABLE, PLAN_HASH_COLUMN
from qsinsight.core.logger import get_logger
from qsinsight.core.exceptions import QueryExecutionError
from qsinsight.database.capability_probe import SchemaCapabilityProbe
from qsinsight.database.connection import QueryExecutor, SqlExecutor, resolve_odbc_driver
from qsinsight.database.queries.query_builder import DiagnosticQueryBuilder
from qsinsight.models.plan_row import PlanRow, FilterConfig, CapabilitySet
from qsinsight.models.session_profile import ConnectionInfo, SessionProfile

logger = get_logger('services.top_queries')


class TopQueriesService:
    """
    Longest running Query Store plans

    Usage:
        service = TopQueriesService()
        info = service.connection_info_for(profile, password, database="Sales")
        caps = service.get_capabilities(info)
        rows = service.get_longest_running(info, FilterConfig(top_n=50), caps)
        service.run_insights(rows)
    """

    def __init__(
        self,
        executor: Optional[QueryExecutor] = None,
        settings: Optional[Settings] = None,
        engine: Optional[PlanInsightEngine] = None,
    ):
        self._settings = settings or get_settings()
        self._executor = executor or SqlExecutor(echo_sql=self._settings.database.echo_sql)
        self._probe = SchemaCapabilityProbe(self._executor, self._settings.database.probe_timeout)
        self._engine = engine or PlanInsightEngine()

    def connection_info_for(
        self,
        profile: SessionProfile,
        password: Optional[str],
        database: str,
    ) -> ConnectionInfo:
        """
        Connection details with the configured driver and TLS options

        Raises:
            ConnectionError: no driver configured and none installed
        """
        db = self._settings.database
        return profile.to_connection_info(
            password=password,
            database=database,
            driver=resolve_odbc_driver(db.driver),
            port=db.port,
            encrypt=db.encrypt,
            trust_server_certificate=db.trust_server_certificate,
            connection_timeout=db.connection_timeout,
        )

    def default_filter(self) -> FilterConfig:
        q = self._settings.query
        return FilterConfig(
            time_window=q.time_window.value,
            exclude_index_ops=q.exclude_index_ops,
            exclude_stats_ops=q.exclude_stats_ops,
            top_n=q.top_n,
        )

    def get_capabilities(
        self,
        info: ConnectionInfo,
        cancel_check: Optional[Callable[[], bool]] = None,
    ) -> CapabilitySet:
        return self._probe.detect(info, cancel_check)

    def list_query_store_databases(self, info: ConnectionInfo) -> List[str]:
        return self._probe.list_query_store_databases(info)

    def build_query(self, filter_config: FilterConfig, capabilities: CapabilitySet) -> str:
        return DiagnosticQueryBuilder.build(filter_config, capabilities)

    def get_longest_running(
        self,
        info: ConnectionInfo,
        filter_config: FilterConfig,
        capabilities: Optional[CapabilitySet] = None,
    ) -> List[PlanRow]:
        """
        Run the diagnostic query against info.database

        Raises:
            ConnectionError: info has no ODBC driver
            QueryExecutionError: the query failed; nothing is returned
        """
        if capabilities is None:
            has_plan_hash = self._probe.probe_optional_column(info, PLAN_HASH_TABLE, PLAN_HASH_COLUMN)
            capabilities = CapabilitySet(has_plan_hash_column=has_plan_hash)

        sql = self.build_query(filter_config, capabilities)
        timeout = self._settings.database.query_timeout
        connection_string = info.connection_string
        logger.debug(f"Running diagnostic query on {info.redacted_connection_string}")

        start = time.perf_counter()
        try:
            records = self._executor.execute(connection_string, sql, timeout)
        except QueryExecutionError:
            raise
        except Exception as e:
            raise QueryExecutionError(f"Query execution error: {e}", query=sql)

        rows = [PlanRow.from_record(r) for r in records]
        duration_ms = (time.perf_counter() - start) * 1000.0
        logger.info(f"Loaded {len(rows)} plans from {info.database} in {duration_ms:.0f}ms")
        return rows

    def run_insights(
        self,
        rows: List[PlanRow],
        cancel_check: Optional[Callable[[], bool]] = None,
    ) -> List[PlanRow]:
        return self._engine.analyze_all(rows, cancel_check)

    def close(self) -> None:
        """Release pooled connections held by the executor"""
        self._executor.dispose()
