"""Tests for the top queries service."""

from datetime import datetime

import pytest

from conftest import FakeExecutor
from qsinsight.core.config import Settings
from qsinsight.core.exceptions import (
    ConnectionError,
    QueryExecutionError,
    QueryTimeoutError,
    TaskCancelledError,
)
from qsinsight.database.queries.query_store_queries import QueryStoreQueries
from qsinsight.models.plan_row import CapabilitySet, FilterConfig
from qsinsight.models.session_profile import SessionProfile
from qsinsight.services.top_queries_service import TopQueriesService


def result_record(query_id=1, plan_id=10, last_duration=3_723_000_000, query_plan=None):
    return {
        "last_duration": last_duration,
        "last_duration_sec": last_duration / 1_000_000.0,
        "last_duration_hhmmss": "01:02:03",
        "query_id": query_id,
        "query_hash_hex": "0x1A2B3C4D5E6F7081",
        "query_plan_hash_hex": None,
        "query_sql_text": "SELECT * FROM dbo.Orders WHERE CustomerId = @p1",
        "plan_id": plan_id,
        "last_execution_time": datetime(2024, 5, 1, 12, 30, 0),
        "query_plan": query_plan,
    }


@pytest.fixture
def settings(tmp_path):
    return Settings(app_dir=tmp_path)


class TestGetLongestRunning:
    """Diagnostic query execution."""

    def test_rows_are_mapped(self, settings, connection_info):
        executor = FakeExecutor(lambda db, sql, params: [result_record(1, 10), result_record(2, 20, 1_000_000)])
        service = TopQueriesService(executor=executor, settings=settings)

        rows = service.get_longest_running(connection_info.for_database("Sales"), FilterConfig(),
                                           CapabilitySet(has_plan_hash_column=True))

        assert [r.plan_id for r in rows] == [10, 20]
        assert rows[0].last_duration_hhmmss == "01:02:03"
        assert rows[0].last_duration_sec == 3723.0
        assert rows[1].last_duration_hhmmss == "00:00:01"
        assert rows[0].plan_insights == ""
        assert executor.databases_called() == ["Sales"]

    def test_uses_built_query_and_configured_timeout(self, settings, connection_info):
        settings.database.query_timeout = 120
        executor = FakeExecutor(lambda db, sql, params: [])
        service = TopQueriesService(executor=executor, settings=settings)
        config = FilterConfig(time_window="Last 2 days", top_n=25)
        caps = CapabilitySet()

        service.get_longest_running(connection_info, config, caps)

        _, sql, timeout, params = executor.calls[0]
        assert sql == service.build_query(config, caps)
        assert "SELECT TOP (25)" in sql
        assert timeout == 120
        assert params is None

    def test_empty_result(self, settings, connection_info):
        service = TopQueriesService(executor=FakeExecutor(lambda db, sql, params: []), settings=settings)
        assert service.get_longest_running(connection_info, FilterConfig(), CapabilitySet()) == []

    def test_probes_plan_hash_when_capabilities_missing(self, settings, connection_info):
        def respond(database, sql, params):
            if sql is QueryStoreQueries.COLUMN_EXISTS:
                return [{"column_count": 1}]
            return []

        executor = FakeExecutor(respond)
        service = TopQueriesService(executor=executor, settings=settings)

        service.get_longest_running(connection_info, FilterConfig())

        assert executor.calls[0][1] is QueryStoreQueries.COLUMN_EXISTS
        assert "p.query_plan_hash" in executor.calls[1][1]

    @pytest.mark.parametrize("error", [
        QueryExecutionError("Invalid object name 'sys.query_store_runtime_stats'"),
        QueryTimeoutError("Query timed out after 300s"),
    ])
    def test_execution_errors_propagate(self, settings, connection_info, error):
        service = TopQueriesService(executor=FakeExecutor(lambda db, sql, params: error), settings=settings)

        with pytest.raises(type(error)):
            service.get_longest_running(connection_info, FilterConfig(), CapabilitySet())

    def test_other_errors_are_wrapped(self, settings, connection_info):
        service = TopQueriesService(
            executor=FakeExecutor(lambda db, sql, params: RuntimeError("socket closed")),
            settings=settings,
        )

        with pytest.raises(QueryExecutionError, match="socket closed"):
            service.get_longest_running(connection_info, FilterConfig(), CapabilitySet())

    def test_missing_driver_is_not_wrapped(self, settings, connection_info):
        executor = FakeExecutor(lambda db, sql, params: [])
        service = TopQueriesService(executor=executor, settings=settings)
        connection_info.driver = None

        with pytest.raises(ConnectionError):
            service.get_longest_running(connection_info, FilterConfig(), CapabilitySet())
        assert executor.calls == []


class TestRunInsights:
    """Insight pass over loaded rows."""

    def test_annotates_rows(self, settings, connection_info, plan_factory):
        plan = plan_factory(inner="<MissingIndexes><MissingIndexGroup Impact=\"90\"/></MissingIndexes>")
        records = [result_record(1, 10, query_plan=plan), result_record(2, 20, query_plan=None)]
        service = TopQueriesService(executor=FakeExecutor(lambda db, sql, params: records), settings=settings)

        rows = service.get_longest_running(connection_info, FilterConfig(), CapabilitySet())
        service.run_insights(rows)

        assert rows[0].has_missing_index
        assert "MISSING INDEXES" in rows[0].plan_insights
        assert rows[1].plan_insights == ""

    def test_cancellation(self, settings, connection_info):
        records = [result_record(i, i) for i in range(3)]
        service = TopQueriesService(executor=FakeExecutor(lambda db, sql, params: records), settings=settings)
        rows = service.get_longest_running(connection_info, FilterConfig(), CapabilitySet())

        with pytest.raises(TaskCancelledError):
            service.run_insights(rows, cancel_check=lambda: True)


class TestConnectionSetup:
    """Profile to connection details."""

    def test_connection_info_uses_settings(self, settings):
        settings.database.trust_server_certificate = True
        settings.database.driver = "ODBC Driver 17 for SQL Server"
        service = TopQueriesService(executor=FakeExecutor(lambda db, sql, params: []), settings=settings)
        profile = SessionProfile(name="prod", server="sql01", username="sa", secret="QSInsight_prod")

        info = service.connection_info_for(profile, "pw", "Sales")

        assert info.database == "Sales"
        assert info.trust_server_certificate is True
        assert "DRIVER={ODBC Driver 17 for SQL Server}" in info.connection_string

    def test_default_filter_from_settings(self, settings):
        settings.query.top_n = 200
        settings.query.exclude_stats_ops = True
        service = TopQueriesService(executor=FakeExecutor(lambda db, sql, params: []), settings=settings)

        config = service.default_filter()

        assert config.top_n == 200
        assert config.exclude_stats_ops is True
        assert config.time_window == "Last 1 hour"

    def test_get_capabilities(self, settings, connection_info):
        def respond(database, sql, params):
            if sql is QueryStoreQueries.COLUMN_EXISTS:
                return [{"column_count": 0}]
            return [{"name": "Sales"}]

        service = TopQueriesService(executor=FakeExecutor(respond), settings=settings)
        caps = service.get_capabilities(connection_info)

        assert caps.has_plan_hash_column is False
        assert caps.query_store_databases == ["Sales"]

    def test_installed_driver_used_when_none_configured(self, settings, monkeypatch):
        pyodbc = pytest.importorskip("pyodbc")
        monkeypatch.setattr(pyodbc, "drivers", lambda: ["ODBC Driver 17 for SQL Server"])
        service = TopQueriesService(executor=FakeExecutor(lambda db, sql, params: []), settings=settings)
        profile = SessionProfile(name="prod", server="sql01", username="sa", secret="QSInsight_prod")

        info = service.connection_info_for(profile, "pw", "Sales")

        assert info.driver == "ODBC Driver 17 for SQL Server"
        assert info.connection_string.startswith("DRIVER={ODBC Driver 17 for SQL Server};")

    def test_no_driver_available(self, settings, monkeypatch):
        pyodbc = pytest.importorskip("pyodbc")
        monkeypatch.setattr(pyodbc, "drivers", lambda: [])
        service = TopQueriesService(executor=FakeExecutor(lambda db, sql, params: []), settings=settings)
        profile = SessionProfile(name="prod", server="sql01", username="sa", secret="QSInsight_prod")

        with pytest.raises(ConnectionError):
            service.connection_info_for(profile, "pw", "Sales")

    def test_close_disposes_executor(self, settings):
        executor = FakeExecutor(lambda db, sql, params: [])
        TopQueriesService(executor=executor, settings=settings).close()
        assert executor.disposed
