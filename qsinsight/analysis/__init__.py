"""
Analysis Module - execution plan insights
"""

from qsinsight.analysis.plan_insights import (
    PlanInsightEngine,
    PlanDocument,
    active_insights,
    compose_label,
    primary_insight,
)

__all__ = [
    "PlanInsightEngine",
    "PlanDocument",
    "active_insights",
    "compose_label",
    "primary_insight",
]
