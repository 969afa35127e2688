"""
Diagnostic query models

Filter configuration, server capabilities and the result row that the
insight engine annotates.
"""

from typing import Optional, List, Dict, Any, Tuple
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from qsinsight.core.constants import (
    TimeWindow,
    DEFAULT_TOP_N,
    MIN_TOP_N,
    MAX_TOP_N,
)


class InsightFlag(str, Enum):
    """Plan insight flags; declaration order is the label priority order"""
    SPILL = "has_spill"
    MEMORY_GRANT_ISSUE = "has_memory_grant_issue"
    IMPLICIT_CONVERSION = "has_implicit_conversion"
    PLAN_AFFECTING_CONVERT = "has_plan_affecting_convert"
    MISSING_INDEX = "has_missing_index"
    MISSING_OR_STALE_STATS = "has_missing_or_stale_stats"
    NO_JOIN_PREDICATE = "has_no_join_predicate"
    ROW_GOAL = "has_row_goal"
    CE_WARNING = "has_ce_warning"
    NON_PARALLEL_PLAN = "has_non_parallel_plan"
    OTHER_WARNINGS = "has_warnings"

    @property
    def display_name(self) -> str:
        return INSIGHT_DISPLAY_NAMES[self]


INSIGHT_DISPLAY_NAMES: Dict[InsightFlag, str] = {
    InsightFlag.SPILL: "SPILL TO TEMPDB",
    InsightFlag.MEMORY_GRANT_ISSUE: "MEMORY GRANT ISSUE",
    InsightFlag.IMPLICIT_CONVERSION: "IMPLICIT CONVERSION",
    InsightFlag.PLAN_AFFECTING_CONVERT: "PLAN AFFECTING CONVERT",
    InsightFlag.MISSING_INDEX: "MISSING INDEXES",
    InsightFlag.MISSING_OR_STALE_STATS: "MISSING/STALE STATS",
    InsightFlag.NO_JOIN_PREDICATE: "NO JOIN PREDICATE",
    InsightFlag.ROW_GOAL: "ROW GOAL",
    InsightFlag.CE_WARNING: "CE WARNING",
    InsightFlag.NON_PARALLEL_PLAN: "NON-PARALLEL PLAN",
    InsightFlag.OTHER_WARNINGS: "OTHER WARNINGS",
}

INSIGHT_PRIORITY: Tuple[InsightFlag, ...] = tuple(InsightFlag)

INSIGHT_SEPARATOR = "; "


class FilterConfig(BaseModel):
    """Filter bar selection; top_n is range checked here, not in the builder"""

    time_window: str = Field(default=TimeWindow.LAST_1_HOUR.value)
    exclude_index_ops: bool = Field(default=False)
    exclude_stats_ops: bool = Field(default=False)
    top_n: int = Field(default=DEFAULT_TOP_N, ge=MIN_TOP_N, le=MAX_TOP_N, strict=True)


@dataclass
class CapabilitySet:
    """Optional server features detected for one connection attempt"""
    has_plan_hash_column: bool = False
    query_store_databases: List[str] = field(default_factory=list)

    @property
    def has_query_store(self) -> bool:
        return bool(self.query_store_databases)


def format_hhmmss(duration_micros: Optional[float]) -> str:
    """Microseconds to HH:MM:SS (hours are not wrapped at 24)"""
    if duration_micros is None:
        return ""
    total_seconds = int(float(duration_micros) // 1_000_000)
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def _to_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def _to_flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes")
    return bool(value)


@dataclass
class PlanRow:
    """
    One Query Store plan with its last execution duration

    Field names match the export format and the diagnostic query's
    projected columns.
    """
    last_duration: Optional[int] = None  # microseconds
    last_duration_sec: Optional[float] = None
    last_duration_hhmmss: str = ""
    query_id: Optional[int] = None
    query_hash_hex: str = ""
    query_plan_hash_hex: Optional[str] = None
    query_sql_text: str = ""
    plan_id: Optional[int] = None
    last_execution_time: Optional[datetime] = None
    query_plan: Optional[str] = None

    has_spill: bool = False
    has_memory_grant_issue: bool = False
    has_implicit_conversion: bool = False
    has_plan_affecting_convert: bool = False
    has_missing_index: bool = False
    has_missing_or_stale_stats: bool = False
    has_no_join_predicate: bool = False
    has_row_goal: bool = False
    has_ce_warning: bool = False
    has_non_parallel_plan: bool = False
    has_warnings: bool = False

    plan_insights: str = ""

    def __post_init__(self):
        if self.last_duration is not None:
            if self.last_duration_sec is None:
                self.last_duration_sec = round(self.last_duration / 1_000_000.0, 3)
            if not self.last_duration_hhmmss:
                self.last_duration_hhmmss = format_hhmmss(self.last_duration)

    def get_flag(self, flag: InsightFlag) -> bool:
        return bool(getattr(self, flag.value))

    def set_flag(self, flag: InsightFlag, value: bool) -> None:
        setattr(self, flag.value, bool(value))

    @property
    def flags(self) -> Dict[str, bool]:
        return {flag.value: self.get_flag(flag) for flag in InsightFlag}

    def reset_insights(self) -> None:
        for flag in InsightFlag:
            self.set_flag(flag, False)
        self.plan_insights = ""

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> 'PlanRow':
        """
        Create from a result-set row or an imported JSON object

        Derived duration fields are recomputed from last_duration when it is
        present; the server's HH:MM:SS rendering wraps at 24 hours.
        """
        last_duration = record.get('last_duration')
        duration_sec = record.get('last_duration_sec')
        if last_duration is not None:
            duration_sec = None
            hhmmss = ''
        else:
            hhmmss = str(record.get('last_duration_hhmmss') or '')
        row = cls(
            last_duration=int(last_duration) if last_duration is not None else None,
            last_duration_sec=float(duration_sec) if duration_sec is not None else None,
            last_duration_hhmmss=hhmmss,
            query_id=record.get('query_id'),
            query_hash_hex=str(record.get('query_hash_hex') or ''),
            query_plan_hash_hex=record.get('query_plan_hash_hex'),
            query_sql_text=str(record.get('query_sql_text') or ''),
            plan_id=record.get('plan_id'),
            last_execution_time=_to_datetime(record.get('last_execution_time')),
            query_plan=record.get('query_plan'),
        )
        for flag in InsightFlag:
            row.set_flag(flag, _to_flag(record.get(flag.value, False)))
        return row

    def to_export_dict(self) -> Dict[str, Any]:
        """Flat export object; flags as 0/1"""
        data: Dict[str, Any] = {
            'last_duration': self.last_duration,
            'last_duration_sec': self.last_duration_sec,
            'last_duration_hhmmss': self.last_duration_hhmmss,
            'query_id': self.query_id,
            'query_hash_hex': self.query_hash_hex,
            'query_plan_hash_hex': self.query_plan_hash_hex,
            'query_sql_text': self.query_sql_text,
            'plan_id': self.plan_id,
            'last_execution_time': (
                self.last_execution_time.isoformat() if self.last_execution_time else None
            ),
        }
        for flag in InsightFlag:
            data[flag.value] = 1 if self.get_flag(flag) else 0
        data['plan_insights'] = self.plan_insights
        data['query_plan'] = self.query_plan
        return data
