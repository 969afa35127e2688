"""
Services module - Business logic and workflows
"""

from qsinsight.services.secret_vault import SecretVault
from qsinsight.services.credential_store import CredentialStore
from qsinsight.services.result_export import (
    export_rows,
    import_rows,
    rows_to_json,
    rows_from_json,
    insights_available,
)
from qsinsight.services.top_queries_service import TopQueriesService

__all__ = [
    "SecretVault",
    "CredentialStore",
    "export_rows",
    "import_rows",
    "rows_to_json",
    "rows_from_json",
    "insights_available",
    "TopQueriesService",
]
