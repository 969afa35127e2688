"""
Data models module
"""

from qsinsight.models.session_profile import (
    SessionProfile,
    SessionStore,
    SessionProfileValidator,
    ConnectionInfo,
)
from qsinsight.models.plan_row import (
    PlanRow,
    FilterConfig,
    CapabilitySet,
    InsightFlag,
    INSIGHT_DISPLAY_NAMES,
    INSIGHT_PRIORITY,
    format_hhmmss,
)

__all__ = [
    "SessionProfile",
    "SessionStore",
    "SessionProfileValidator",
    "ConnectionInfo",
    "PlanRow",
    "FilterConfig",
    "CapabilitySet",
    "InsightFlag",
    "INSIGHT_DISPLAY_NAMES",
    "INSIGHT_PRIORITY",
    "format_hhmmss",
]
