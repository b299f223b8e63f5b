"""Command line interface for the Windows maintenance audit."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config import load_config
from .core import (
    export_missing_apps_to_excel,
    export_opportunities_to_excel,
    print_app_audit,
    print_opportunities,
    run_essential_apps_audit,
    run_optimization_audit,
)
from .host import WindowsHost
from .profiles import PROFILE_SCANNER_MAP
from .reports import build_report_data, write_reports
from .utils import AuditError, configure_logging

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Return parsed command line arguments."""

    parser = argparse.ArgumentParser(
        description="Audit a Windows host for missing essential applications and optimization opportunities."
    )
    parser.add_argument("--config", help="YAML configuration file", default=None)
    parser.add_argument("--apps", action="store_true", help="Run the essential applications audit")
    parser.add_argument("--optimize", action="store_true", help="Run the system optimization audit")
    parser.add_argument("--category", default=None, help="Limit the applications audit to one catalog category")
    parser.add_argument("--catalog", dest="catalog_path", default=None, help="Alternative catalog YAML file")
    parser.add_argument(
        "--no-installed",
        dest="include_installed",
        action="store_false",
        default=None,
        help="Leave installed applications out of the result",
    )
    parser.add_argument(
        "--profile",
        dest="profiles",
        nargs="*",
        choices=sorted(PROFILE_SCANNER_MAP),
        default=None,
        help="Scanner profile(s) for the optimization audit (default: full)",
    )
    parser.add_argument("--report", dest="report_base", help="Base path for .html/.txt/.json reports")
    parser.add_argument("--json", dest="json_path", help="Optional path to export the combined results as JSON")
    parser.add_argument(
        "--excel",
        dest="excel_path",
        help="Optional path to export missing applications and opportunities as Excel workbooks (.xlsx)",
    )
    parser.add_argument("--data-dir", dest="data_dir", default=None, help="Session data directory for cached results")
    parser.add_argument("--dry-run", dest="dry_run", action="store_true", default=None, help="Do not write any files")
    parser.add_argument("--no-cache", dest="use_cache", action="store_false", default=None, help="Ignore cached results")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--log-file", dest="log_file", default=None, help="Also write the log to this file")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point used by ``python -m windows_maintenance_audit``."""

    args = parse_args(argv)
    configure_logging(verbose=args.verbose, log_file=args.log_file)

    try:
        config = load_config(args.config).with_overrides(
            category=args.category,
            catalog_path=Path(args.catalog_path) if args.catalog_path else None,
            include_installed=args.include_installed,
            profiles=tuple(args.profiles) if args.profiles else None,
            report_base=Path(args.report_base) if args.report_base else None,
            data_dir=Path(args.data_dir) if args.data_dir else None,
            dry_run=args.dry_run,
            use_cache=args.use_cache,
        )
    except (OSError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    run_apps = args.apps or not args.optimize
    run_optimize = args.optimize or not args.apps
    host = WindowsHost()

    app_result = None
    optimization_result = None
    try:
        if run_apps:
            app_result = run_essential_apps_audit(config, host)
            print_app_audit(app_result)
        if run_optimize:
            optimization_result = run_optimization_audit(config, host)
            print()
            print(f"Optimization score: {optimization_result.score.overall}/100 ({optimization_result.score.category})")
            print_opportunities(optimization_result.opportunities)
    except (AuditError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if config.report_base:
        paths = write_reports(
            config.report_base,
            app_result,
            optimization_result,
            formats=config.report_formats,
            dry_run=config.dry_run,
        )
        for path in paths:
            print(f"Report written to {path}")

    if args.json_path and not config.dry_run:
        try:
            with open(args.json_path, "w", encoding="utf-8") as fh:
                json.dump(build_report_data(app_result, optimization_result), fh, indent=2, default=str)
        except OSError as exc:
            logger.warning("Failed to export JSON results: %s", exc)
        else:
            print(f"Results exported to {args.json_path}")

    if args.excel_path and not config.dry_run:
        excel = Path(args.excel_path)
        if app_result is not None:
            try:
                path = export_missing_apps_to_excel(
                    app_result.missing, str(excel.with_name(f"{excel.stem}-apps{excel.suffix or '.xlsx'}"))
                )
            except RuntimeError as exc:
                print(f"Failed to export Excel report: {exc}", file=sys.stderr)
            else:
                print(f"Excel report written to {path}")
        if optimization_result is not None:
            try:
                path = export_opportunities_to_excel(
                    optimization_result.opportunities,
                    str(excel.with_name(f"{excel.stem}-optimizations{excel.suffix or '.xlsx'}")),
                )
            except RuntimeError as exc:
                print(f"Failed to export Excel report: {exc}", file=sys.stderr)
            else:
                print(f"Excel report written to {path}")

    return 0


__all__ = ["main", "parse_args"]
