"""Tests for result set export and import."""

import json
from datetime import datetime

import pytest

from qsinsight.core.exceptions import ResultFileError
from qsinsight.models.plan_row import PlanRow
from qsinsight.services.result_export import (
    export_rows,
    import_rows,
    insights_available,
    rows_from_json,
    rows_to_json,
)


def sample_rows():
    first = PlanRow(
        last_duration=90_061_000_000,
        query_id=7,
        query_hash_hex="0xAB",
        query_plan_hash_hex="0xCD",
        query_sql_text="SELECT 1",
        plan_id=70,
        last_execution_time=datetime(2024, 5, 1, 8, 15, 0),
        query_plan="<ShowPlanXML/>",
    )
    first.has_spill = True
    first.has_missing_index = True
    first.plan_insights = "SPILL TO TEMPDB; MISSING INDEXES"
    second = PlanRow(last_duration=500_000, query_id=8, plan_id=80)
    return [first, second]


class TestExport:
    """Flat JSON objects."""

    def test_flags_are_zero_or_one(self):
        data = json.loads(rows_to_json(sample_rows()))

        assert data[0]["has_spill"] == 1
        assert data[0]["has_missing_index"] == 1
        assert data[0]["has_row_goal"] == 0
        assert data[1]["has_spill"] == 0

    def test_fields(self):
        data = json.loads(rows_to_json(sample_rows()))

        assert data[0]["last_duration_hhmmss"] == "25:01:01"
        assert data[0]["last_execution_time"] == "2024-05-01T08:15:00"
        assert data[0]["plan_insights"] == "SPILL TO TEMPDB; MISSING INDEXES"
        assert data[1]["last_duration_sec"] == 0.5
        assert data[1]["last_execution_time"] is None

    def test_file_round_trip(self, tmp_path):
        path = tmp_path / "out" / "results.json"

        assert export_rows(sample_rows(), path) == 2
        rows = import_rows(path)

        assert [r.plan_id for r in rows] == [70, 80]
        assert rows[0].has_spill and rows[0].has_missing_index
        assert rows[0].last_execution_time == datetime(2024, 5, 1, 8, 15, 0)
        assert rows[0].plan_insights == "SPILL TO TEMPDB; MISSING INDEXES"

    def test_export_failure(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("x", encoding="utf-8")

        with pytest.raises(ResultFileError):
            export_rows(sample_rows(), blocker / "results.json")


class TestImport:
    """Tolerant input, strict shape."""

    def test_single_object(self):
        rows = rows_from_json('{"query_id": 3, "plan_id": 30, "has_row_goal": 1}')

        assert len(rows) == 1
        assert rows[0].has_row_goal
        assert rows[0].plan_insights == "ROW GOAL"

    def test_label_rebuilt_from_flags(self):
        payload = [{"plan_id": 1, "has_spill": 0, "has_no_join_predicate": "true",
                    "plan_insights": "SPILL TO TEMPDB"}]

        rows = rows_from_json(payload)
        assert rows[0].plan_insights == "NO JOIN PREDICATE"

    def test_durations_recomputed(self):
        rows = rows_from_json([{"last_duration": 3_723_000_000, "last_duration_hhmmss": "bogus"}])
        assert rows[0].last_duration_hhmmss == "01:02:03"
        assert rows[0].last_duration_sec == 3723.0

    @pytest.mark.parametrize("payload", ["{oops", "42", '"text"', '[1, 2]', '[{"last_duration": "abc"}]'])
    def test_invalid_payload(self, payload):
        with pytest.raises(ResultFileError):
            rows_from_json(payload)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ResultFileError):
            import_rows(tmp_path / "nope.json")


def test_insights_available():
    assert not insights_available([])
    assert insights_available(sample_rows())
