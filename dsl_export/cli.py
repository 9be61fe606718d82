"""
Command line entry point.

    dify-dsl-export export --base-url https://dify.example.com -o ./dsl
    dify-dsl-export restore ./dsl/my-app.normalized.yml -o my-app.yml
"""
import argparse
import logging
import sys
from pathlib import Path
from typing import Iterable, List, Optional

from dsl_export.connectors.knowledge import DifyKnowledgeClient
from dsl_export.core.config import Settings, get_settings
from dsl_export.core.exceptions import DslExportError
from dsl_export.core.logging_config import setup_logging
from dsl_export.export.placeholders import restore_dataset_ids
from dsl_export.schemas.app import Application
from dsl_export.schemas.export import ExportReport, NormalizationMode
from dsl_export.services.export_service import AppFilter, ExportDslOptions, export_all_dsl

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ITEM_FAILURES = 1
EXIT_FATAL = 2


def build_app_filter(modes: Optional[List[str]] = None, name: Optional[str] = None) -> Optional[AppFilter]:
    """
    Build an app predicate from CLI filter options.

    Args:
        modes: Accepted app modes (any of them)
        name: Case-insensitive substring of the app name

    Returns:
        Predicate, or None when no filter was requested
    """
    wanted_modes = {m.strip().lower() for m in modes or [] if m.strip()}
    needle = name.casefold() if name else None

    if not wanted_modes and not needle:
        return None

    def _filter(app: Application) -> bool:
        if wanted_modes and app.mode_value.lower() not in wanted_modes:
            return False
        if needle and needle not in app.name.casefold():
            return False
        return True

    return _filter


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dify-dsl-export",
        description="Export Dify app DSL with environment-independent dataset placeholders",
    )
    parser.add_argument("--log-level", help="Log level (default from LOG_LEVEL)")
    subparsers = parser.add_subparsers(dest="command")
    subparsers.required = True

    export = subparsers.add_parser("export", help="Export the DSL of every app")
    export.add_argument("--base-url", help="Console base URL")
    export.add_argument("-o", "--output-dir", type=Path, help="Output directory")
    export.add_argument("--email", help="Login email (manual login when omitted)")
    export.add_argument("--password", help="Login password")
    export.add_argument(
        "--include-secret",
        action="store_true",
        default=None,
        help="Include secret environment variables",
    )
    export.add_argument("--headless", action="store_true", default=None, help="Run the browser headless")
    export.add_argument(
        "--mode",
        action="append",
        dest="modes",
        help="Only export apps of this mode (repeatable)",
    )
    export.add_argument("--name", help="Only export apps whose name contains this text")
    _add_knowledge_arguments(export)

    restore = subparsers.add_parser(
        "restore", help="Replace dataset placeholders with the target environment's IDs"
    )
    restore.add_argument("input", type=Path, help="Normalized DSL file")
    restore.add_argument("-o", "--output", type=Path, help="Output file (stdout when omitted)")
    _add_knowledge_arguments(restore)

    return parser


def _add_knowledge_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--knowledge-api-url", help="Knowledge API base URL")
    parser.add_argument("--knowledge-api-key", help="Knowledge API key")


def main(argv: Optional[Iterable[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    settings = get_settings()

    setup_logging(args.log_level or settings.LOG_LEVEL)

    if args.command == "restore":
        return _run_restore(parser, args, settings)
    return _run_export(parser, args, settings)


def _run_export(parser: argparse.ArgumentParser, args: argparse.Namespace, settings: Settings) -> int:
    base_url = args.base_url or settings.DIFY_CONSOLE_URL
    if not base_url:
        parser.error("--base-url is required (or set DIFY_CONSOLE_URL)")

    options = ExportDslOptions(
        base_url=base_url,
        output_dir=args.output_dir or Path(settings.OUTPUT_DIR),
        email=args.email or settings.DIFY_EMAIL,
        password=args.password or settings.DIFY_PASSWORD,
        include_secret=settings.INCLUDE_SECRET if args.include_secret is None else args.include_secret,
        headless=settings.HEADLESS if args.headless is None else args.headless,
        app_filter=build_app_filter(args.modes, args.name),
        normalization=NormalizationMode.from_options(
            args.knowledge_api_url or settings.DIFY_KNOWLEDGE_API_URL,
            args.knowledge_api_key or settings.DIFY_KNOWLEDGE_API_KEY,
        ),
        timeout=settings.HTTP_TIMEOUT,
        page_limit=settings.PAGE_LIMIT,
    )

    try:
        results = export_all_dsl(options)
    except (DslExportError, OSError) as e:
        logger.error(f"Export aborted: {e}")
        return EXIT_FATAL

    report = ExportReport(results=results)
    _print_summary(report, Path(options.output_dir))
    return EXIT_ITEM_FAILURES if report.failed else EXIT_OK


def _run_restore(parser: argparse.ArgumentParser, args: argparse.Namespace, settings: Settings) -> int:
    mode = NormalizationMode.from_options(
        args.knowledge_api_url or settings.DIFY_KNOWLEDGE_API_URL,
        args.knowledge_api_key or settings.DIFY_KNOWLEDGE_API_KEY,
    )
    if not mode.enabled:
        parser.error("restore needs --knowledge-api-url and --knowledge-api-key")

    try:
        text = args.input.read_text(encoding="utf-8")
        client = DifyKnowledgeClient(
            base_url=mode.knowledge_api.base_url,
            api_key=mode.knowledge_api.api_key,
            timeout=settings.HTTP_TIMEOUT,
            page_limit=settings.PAGE_LIMIT,
        )
        try:
            datasets = client.list_datasets()
        finally:
            client.close()
        restored = restore_dataset_ids(text, datasets)
        if args.output:
            args.output.write_text(restored, encoding="utf-8", newline="")
            logger.info(f"Restored dataset IDs → {args.output}")
        else:
            sys.stdout.write(restored)
    except (DslExportError, OSError) as e:
        logger.error(f"Restore failed: {e}")
        return EXIT_FATAL

    return EXIT_OK


def _print_summary(report: ExportReport, output_dir: Path) -> None:
    print("\n" + "=" * 60)
    print("Export Completed!")
    print(f"Total apps: {report.total}")
    print(f"Succeeded: {len(report.succeeded)}")
    print(f"Failed: {len(report.failed)}")
    print(f"Export location: {output_dir}")
    print("=" * 60)

    for result in report.failed:
        print(f"  ✗ {result.app_name} ({result.app_id}): {result.error}")


if __name__ == "__main__":
    sys.exit(main())
