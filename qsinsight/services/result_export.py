"""
Result set export/import as JSON
"""

import json
from pathlib import Path
from typing import List, Union, Any

from qsinsight.analysis.plan_insights import compose_label
from qsinsight.models.plan_row import PlanRow
from qsinsight.core.logger import get_logger
from qsinsight.core.exceptions import ResultFileError

logger = get_logger('services.result_export')


def rows_to_json(rows: List[PlanRow]) -> str:
    """Serialize rows as a JSON array of flat objects"""
    return json.dumps([row.to_export_dict() for row in rows], indent=2, ensure_ascii=False)


def rows_from_json(payload: Union[str, Any]) -> List[PlanRow]:
    """
    Parse an exported result set

    Accepts a single object or an array of objects. plan_insights is
    rebuilt from the flags so it always matches them.

    Raises:
        ResultFileError: payload is not valid JSON or holds non-objects
    """
    if isinstance(payload, str):
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            raise ResultFileError(f"Invalid JSON: {e}")
    else:
        data = payload

    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list):
        raise ResultFileError("Expected a JSON object or array of objects")

    rows = []
    for index, record in enumerate(data):
        if not isinstance(record, dict):
            raise ResultFileError(f"Entry {index} is not an object")
        try:
            row = PlanRow.from_record(record)
        except (TypeError, ValueError) as e:
            raise ResultFileError(f"Entry {index} is invalid: {e}")
        row.plan_insights = compose_label(row)
        rows.append(row)
    return rows


def export_rows(rows: List[PlanRow], file_path: Path) -> int:
    """Write rows to a JSON file; returns the row count"""
    file_path = Path(file_path)
    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(file_path, 'w', encoding='utf-8') as f:
            f.write(rows_to_json(rows))
    except OSError as e:
        logger.error(f"Failed to export results: {e}")
        raise ResultFileError(f"Failed to export results: {e}", path=str(file_path))

    logger.info(f"Exported {len(rows)} rows to {file_path}")
    return len(rows)


def import_rows(file_path: Path) -> List[PlanRow]:
    """Load rows previously written by export_rows"""
    file_path = Path(file_path)
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            payload = f.read()
    except OSError as e:
        logger.error(f"Failed to read results file: {e}")
        raise ResultFileError(f"Failed to read results file: {e}", path=str(file_path))

    rows = rows_from_json(payload)
    logger.info(f"Imported {len(rows)} rows from {file_path}")
    return rows


def insights_available(rows: List[PlanRow]) -> bool:
    """The insights action is enabled once at least one row is loaded"""
    return len(rows) > 0
