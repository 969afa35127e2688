"""
QS Insight - Entry Point

Headless run against the current session: probe, load the longest running
plans, optionally analyze them and export the result set.
"""

import sys
import argparse
from pathlib import Path
from typing import Optional, List

from pydantic import ValidationError

from qsinsight import APP_NAME, __version__
from qsinsight.core.config import Settings, get_settings, ensure_app_dirs
from qsinsight.core.constants import TimeWindow, MIN_TOP_N, MAX_TOP_N
from qsinsight.core.exceptions import QSInsightError
from qsinsight.core.logger import setup_logging, get_logger
from qsinsight.models.plan_row import FilterConfig


def initialize(app_dir: Optional[Path] = None) -> Settings:
    """Create app directories, load settings and configure logging"""
    if app_dir is None:
        ensure_app_dirs()
        settings = get_settings()
    else:
        settings = Settings.load(app_dir)

    setup_logging(
        level=settings.logging.level,
        log_dir=settings.logs_dir,
        file_enabled=settings.logging.file_enabled,
        retention_days=settings.logging.retention_days,
    )
    return settings


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="qsinsight",
        description="Longest running Query Store plans for the current session",
    )
    parser.add_argument("--version", action="version", version=f"{APP_NAME} {__version__}")
    parser.add_argument("--session", help="Session profile name (default: last used)")
    parser.add_argument("--database", help="Database to query (default: first with Query Store)")
    parser.add_argument(
        "--window",
        choices=[w.value for w in TimeWindow],
        help="Relative time window",
    )
    parser.add_argument("--top", type=int, help=f"Row limit ({MIN_TOP_N}-{MAX_TOP_N})")
    parser.add_argument("--exclude-index-ops", action="store_true", default=None)
    parser.add_argument("--exclude-stats-ops", action="store_true", default=None)
    parser.add_argument("--insights", action="store_true", help="Run plan insights")
    parser.add_argument("--output", type=Path, help="Export rows to a JSON file")
    parser.add_argument("--list-databases", action="store_true",
                        help="Only list databases with Query Store enabled")
    return parser


def run(args: argparse.Namespace, settings: Settings) -> int:
    from qsinsight.services.credential_store import CredentialStore
    from qsinsight.services.top_queries_service import TopQueriesService

    logger = get_logger('main')

    store_service = CredentialStore(settings.sessions_file)
    store = store_service.load()
    profile = (store_service.find_by_name(store, args.session) if args.session else store.current)
    if profile is None:
        logger.error("No session profile selected")
        return 2

    service = TopQueriesService(settings=settings)
    try:
        return _report(args, service, store_service.reveal_password(profile), profile)
    finally:
        service.close()


def _report(args: argparse.Namespace, service, password: Optional[str], profile) -> int:
    from qsinsight.services.result_export import export_rows

    logger = get_logger('main')
    admin_info = service.connection_info_for(profile, password, "master")

    capabilities = service.get_capabilities(admin_info)
    if args.list_databases:
        for name in capabilities.query_store_databases:
            print(name)
        return 0

    database = args.database or next(iter(capabilities.query_store_databases), None)
    if not database:
        logger.error("No database with Query Store enabled was found")
        return 2

    overrides = {
        'time_window': args.window,
        'top_n': args.top,
        'exclude_index_ops': args.exclude_index_ops,
        'exclude_stats_ops': args.exclude_stats_ops,
    }
    filter_config = FilterConfig(**{
        **service.default_filter().model_dump(),
        **{k: v for k, v in overrides.items() if v is not None},
    })

    info = service.connection_info_for(profile, password, database)
    rows = service.get_longest_running(info, filter_config)
    if args.insights:
        service.run_insights(rows)

    if args.output:
        export_rows(rows, args.output)
    else:
        for row in rows:
            print(f"{row.last_duration_hhmmss}  plan {row.plan_id}  {row.plan_insights}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main application entry point"""
    args = build_parser().parse_args(argv)
    settings = initialize()
    logger = get_logger('main')

    try:
        return run(args, settings)
    except ValidationError as e:
        logger.error(f"Invalid filter: {e}")
        return 2
    except QSInsightError as e:
        logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
