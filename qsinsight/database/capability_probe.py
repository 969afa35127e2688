"""
Server capability probing

Finds which databases have Query Store enabled and whether optional catalog
columns exist. Every failure here is absorbed: a probe that cannot answer
reports "not available" and logs why.
"""

from typing import Optional, List, Callable, Dict, Any

from qsinsight.core.constants import ADMIN_DATABASE, PLAN_HASH_TABLE, PLAN_HASH_COLUMN
from qsinsight.core.logger import get_logger, LogContext
from qsinsight.core.exceptions import ProbeError, TaskCancelledError
from qsinsight.database.connection import QueryExecutor
from qsinsight.database.queries.query_store_queries import QueryStoreQueries
from qsinsight.models.plan_row import CapabilitySet
from qsinsight.models.session_profile import ConnectionInfo

logger = get_logger('database.capability_probe')


def _names(rows: List[Dict[str, Any]]) -> List[str]:
    return [str(r.get('name')) for r in rows if r.get('name')]


class SchemaCapabilityProbe:
    """
    Read-only capability checks; safe to call repeatedly, nothing is cached

    Usage:
        probe = SchemaCapabilityProbe(SqlExecutor())
        caps = probe.detect(profile.to_connection_info(password))
    """

    def __init__(self, executor: QueryExecutor, timeout_seconds: int = 30):
        self._executor = executor
        self._timeout = timeout_seconds

    @staticmethod
    def _raise_if_cancelled(cancel_check: Optional[Callable[[], bool]] = None) -> None:
        if cancel_check is not None and cancel_check():
            raise TaskCancelledError("Capability probe was cancelled.")

    def _query(self, info: ConnectionInfo, sql: str, probe: str,
               params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        try:
            return self._executor.execute(info.connection_string, sql, self._timeout, params)
        except Exception as e:
            raise ProbeError(str(e), probe=probe, database=info.database) from e

    # ==========================================================================
    # QUERY STORE DATABASES
    # ==========================================================================

    def list_query_store_databases(
        self,
        info: ConnectionInfo,
        cancel_check: Optional[Callable[[], bool]] = None,
    ) -> List[str]:
        """
        Sorted names of databases with Query Store enabled

        Tier 1 asks master once; an error or an empty answer falls back to
        checking every online user database on its own (Tier 2).
        """
        admin = info.for_database(ADMIN_DATABASE)

        try:
            rows = self._query(admin, QueryStoreQueries.QUERY_STORE_DATABASES, "query_store_databases")
            names = _names(rows)
            if names:
                logger.info(f"Query Store enabled on {len(names)} database(s)")
                return sorted(set(names))
            logger.info("No Query Store databases reported by master, checking each database")
        except ProbeError as e:
            logger.warning(f"Query Store database list failed, checking each database: {e}")

        return self._list_per_database(admin, cancel_check)

    def _list_per_database(
        self,
        admin: ConnectionInfo,
        cancel_check: Optional[Callable[[], bool]] = None,
    ) -> List[str]:
        try:
            candidates = _names(self._query(
                admin, QueryStoreQueries.ONLINE_USER_DATABASES, "online_user_databases"
            ))
        except ProbeError as e:
            logger.error(f"Failed to enumerate databases: {e}")
            return []

        found = set()
        with LogContext(logger, f"Checking Query Store on {len(candidates)} database(s)"):
            for name in candidates:
                self._raise_if_cancelled(cancel_check)
                try:
                    rows = self._query(
                        admin.for_database(name),
                        QueryStoreQueries.DATABASE_QUERY_STORE_STATE,
                        "database_query_store_state",
                    )
                except ProbeError as e:
                    logger.warning(f"Skipping database '{name}': {e}")
                    continue

                states = {str(r.get('actual_state_desc') or '').upper() for r in rows}
                if states & set(QueryStoreQueries.QUERY_STORE_ACTIVE_STATES):
                    found.add(name)

        return sorted(found)

    # ==========================================================================
    # OPTIONAL COLUMNS
    # ==========================================================================

    def probe_optional_column(self, info: ConnectionInfo, table_name: str, column_name: str) -> bool:
        """True only if the column is known to exist; any failure means absent"""
        try:
            rows = self._query(
                info,
                QueryStoreQueries.COLUMN_EXISTS,
                "column_exists",
                {"table_name": table_name, "column_name": column_name},
            )
        except ProbeError as e:
            logger.warning(f"Column probe {table_name}.{column_name} failed, assuming absent: {e}")
            return False

        if not rows:
            return False
        try:
            return int(rows[0].get('column_count') or 0) > 0
        except (TypeError, ValueError):
            return False

    def detect(
        self,
        info: ConnectionInfo,
        cancel_check: Optional[Callable[[], bool]] = None,
    ) -> CapabilitySet:
        """Fresh capability set for one connection attempt"""
        has_plan_hash = self.probe_optional_column(info, PLAN_HASH_TABLE, PLAN_HASH_COLUMN)
        self._raise_if_cancelled(cancel_check)
        databases = self.list_query_store_databases(info, cancel_check)
        caps = CapabilitySet(has_plan_hash_column=has_plan_hash, query_store_databases=databases)
        logger.info(
            f"Capabilities for {info.server}: plan_hash={caps.has_plan_hash_column}, "
            f"query_store_databases={len(caps.query_store_databases)}"
        )
        return caps
