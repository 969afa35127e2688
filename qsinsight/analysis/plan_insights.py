"""
Execution Plan Insights

Scans SQL Server showplan XML for a fixed set of warning patterns and
annotates PlanRow objects with flags and a priority-ordered label.

Supported plan sources:
- Query Store (sys.query_store_plan.query_plan)
- DMV (sys.dm_exec_query_plan)
- SHOWPLAN XML files

Detection is namespace agnostic: elements and attributes are matched by local
name anywhere in the document.

Reference: https://schemas.microsoft.com/sqlserver/2004/07/showplan
"""

import xml.etree.ElementTree as ET
from typing import Optional, List, Dict, Callable, Iterable, Tuple

from qsinsight.core.logger import get_logger
from qsinsight.core.exceptions import PlanParseError, TaskCancelledError
from qsinsight.models.plan_row import (
    PlanRow,
    InsightFlag,
    INSIGHT_PRIORITY,
    INSIGHT_SEPARATOR,
)

logger = get_logger('analysis.plan_insights')

_TRUE_VALUES = ("1", "true")


def _local(name: str) -> str:
    return name.split('}', 1)[1] if name.startswith('{') else name


class PlanDocument:
    """Parsed showplan with local-name lookups"""

    def __init__(self, root: ET.Element):
        self.root = root
        self._elements: Dict[str, List[ET.Element]] = {}
        self._attributes: Dict[str, List[str]] = {}
        for elem in root.iter():
            if not isinstance(elem.tag, str):
                continue
            self._elements.setdefault(_local(elem.tag), []).append(elem)
            for attr_name, value in elem.attrib.items():
                self._attributes.setdefault(_local(attr_name), []).append(value)

    @classmethod
    def parse(cls, xml_string: Optional[str]) -> 'PlanDocument':
        """
        Raises:
            PlanParseError: blank or malformed XML
        """
        if not xml_string or not str(xml_string).strip():
            raise PlanParseError("Empty plan XML")
        try:
            return cls(ET.fromstring(str(xml_string).strip()))
        except ET.ParseError as e:
            raise PlanParseError(f"XML parse error: {e}")
        except ValueError as e:
            raise PlanParseError(f"Plan XML rejected: {e}")

    def elements(self, name: str) -> List[ET.Element]:
        return self._elements.get(name, [])

    def has_element(self, *names: str) -> bool:
        return any(self._elements.get(n) for n in names)

    def attribute_values(self, name: str) -> List[str]:
        return self._attributes.get(name, [])

    def has_attribute(self, name: str) -> bool:
        return name in self._attributes


def _attr(elem: ET.Element, name: str) -> Optional[str]:
    for key, value in elem.attrib.items():
        if _local(key) == name:
            return value
    return None


# =============================================================================
# Detectors
# =============================================================================


def _missing_index(doc: PlanDocument) -> bool:
    return doc.has_element('MissingIndexes', 'MissingIndexGroup')


def _implicit_conversion(doc: PlanDocument) -> bool:
    return any(
        (_attr(e, 'Implicit') or '').strip().lower() in _TRUE_VALUES
        for e in doc.elements('Convert')
    )


def _plan_affecting_convert(doc: PlanDocument) -> bool:
    return doc.has_element('PlanAffectingConvert')


def _spill(doc: PlanDocument) -> bool:
    return (
        doc.has_element('SpillToTempDb', 'SortSpillDetails', 'HashSpillDetails')
        or doc.has_attribute('SpillToTempDb')
    )


def _warnings(doc: PlanDocument) -> bool:
    return any(len(e) > 0 or len(e.attrib) > 0 for e in doc.elements('Warnings'))


def _memory_grant_issue(doc: PlanDocument) -> bool:
    return any(
        (_attr(e, 'GrantWarningKind') or '').strip().lower() != 'none'
        for e in doc.elements('MemoryGrantWarning')
    )


def _no_join_predicate(doc: PlanDocument) -> bool:
    if doc.has_element('NoJoinPredicate'):
        return True
    return any(v.strip().lower() in _TRUE_VALUES for v in doc.attribute_values('NoJoinPredicate'))


def _row_goal(doc: PlanDocument) -> bool:
    return doc.has_attribute('EstimateRowsWithoutRowGoal')


def _missing_or_stale_stats(doc: PlanDocument) -> bool:
    return doc.has_element('ColumnsWithNoStatistics', 'ColumnsWithStaleStatistics')


def _ce_warning(doc: PlanDocument) -> bool:
    if doc.has_element('CardinalityEstimateWarning'):
        return True
    return any(
        (_attr(e, 'ConvertIssue') or '').strip().lower() == 'cardinality estimate'
        for e in doc.elements('PlanAffectingConvert')
    )


def _non_parallel_plan(doc: PlanDocument) -> bool:
    return any(v.strip() for v in doc.attribute_values('NonParallelPlanReason'))


# Evaluation order is irrelevant; label order comes from INSIGHT_PRIORITY
DETECTORS: Tuple[Tuple[InsightFlag, Callable[[PlanDocument], bool]], ...] = (
    (InsightFlag.MISSING_INDEX, _missing_index),
    (InsightFlag.IMPLICIT_CONVERSION, _implicit_conversion),
    (InsightFlag.PLAN_AFFECTING_CONVERT, _plan_affecting_convert),
    (InsightFlag.SPILL, _spill),
    (InsightFlag.OTHER_WARNINGS, _warnings),
    (InsightFlag.MEMORY_GRANT_ISSUE, _memory_grant_issue),
    (InsightFlag.NO_JOIN_PREDICATE, _no_join_predicate),
    (InsightFlag.ROW_GOAL, _row_goal),
    (InsightFlag.MISSING_OR_STALE_STATS, _missing_or_stale_stats),
    (InsightFlag.CE_WARNING, _ce_warning),
    (InsightFlag.NON_PARALLEL_PLAN, _non_parallel_plan),
)


# =============================================================================
# Label composition
# =============================================================================


def active_insights(row: PlanRow) -> List[InsightFlag]:
    """
    Active flags in priority order

    OTHER_WARNINGS is reported only when the warnings section holds something
    besides a cardinality estimate warning.
    """
    active = []
    for flag in INSIGHT_PRIORITY:
        if not row.get_flag(flag):
            continue
        if flag is InsightFlag.OTHER_WARNINGS and row.has_ce_warning:
            continue
        active.append(flag)
    return active


def compose_label(row: PlanRow) -> str:
    return INSIGHT_SEPARATOR.join(flag.display_name for flag in active_insights(row))


def primary_insight(row: PlanRow) -> Optional[InsightFlag]:
    """Highest priority active insight; drives row highlighting"""
    insights = active_insights(row)
    return insights[0] if insights else None


class PlanInsightEngine:
    """
    Showplan pattern detector

    Usage:
        engine = PlanInsightEngine()
        engine.analyze_all(rows)
        for row in rows:
            print(row.plan_insights)
    """

    def __init__(self, detectors: Iterable[Tuple[InsightFlag, Callable[[PlanDocument], bool]]] = DETECTORS):
        self._detectors = tuple(detectors)

    def detect(self, xml_string: Optional[str]) -> Dict[InsightFlag, bool]:
        """
        Run every detector against one plan

        Raises:
            PlanParseError: blank or malformed XML
        """
        doc = PlanDocument.parse(xml_string)
        flags = {flag: False for flag in InsightFlag}
        for flag, predicate in self._detectors:
            flags[flag] = bool(predicate(doc))
        return flags

    def analyze(self, row: PlanRow) -> PlanRow:
        """
        Recompute a row's flags and label in place

        A blank or unparsable plan leaves every flag False and the label
        empty; this is not an error.
        """
        row.reset_insights()
        try:
            flags = self.detect(row.query_plan)
        except PlanParseError as e:
            logger.debug(f"Plan {row.plan_id} not analyzed: {e}")
            return row

        for flag, value in flags.items():
            row.set_flag(flag, value)
        row.plan_insights = compose_label(row)
        return row

    def analyze_all(
        self,
        rows: List[PlanRow],
        cancel_check: Optional[Callable[[], bool]] = None,
    ) -> List[PlanRow]:
        """Analyze each row independently; one bad plan never stops the batch"""
        analyzed = 0
        for row in rows:
            if cancel_check is not None and cancel_check():
                raise TaskCancelledError("Plan analysis was cancelled.")
            try:
                self.analyze(row)
            except Exception as e:
                logger.error(f"Plan {row.plan_id} analysis failed: {e}")
                row.reset_insights()
                continue
            if row.plan_insights:
                analyzed += 1
        logger.info(f"Analyzed {len(rows)} plans, {analyzed} with insights")
        return rows
