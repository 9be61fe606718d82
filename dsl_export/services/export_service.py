"""
Bulk DSL export service.

Runs one export:
- Logs in once and lists every app
- Applies the optional app filter
- Loads the dataset table when normalization is enabled
- Exports each app's DSL to <slug>.yml (and <slug>.normalized.yml)

Apps are processed sequentially. A failure while exporting or writing one
app is recorded in its ExportResult and never stops the run; login, listing,
dataset loading and output directory creation failures abort the run before
any result is produced.
"""
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Set, Union

from dsl_export.auth.playwright_auth import get_auth_with_playwright
from dsl_export.auth.session import ConsoleAuth
from dsl_export.connectors.base import DEFAULT_PAGE_LIMIT, DEFAULT_TIMEOUT
from dsl_export.connectors.console import DifyConsoleClient
from dsl_export.connectors.knowledge import DifyKnowledgeClient
from dsl_export.export.idgen import unique_filename_base
from dsl_export.export.placeholders import (
    PlaceholderTable,
    find_dataset_references,
    parse_placeholder,
    replace_dataset_ids_with_placeholders,
)
from dsl_export.schemas.app import Application
from dsl_export.schemas.export import ExportResult, NormalizationMode

logger = logging.getLogger(__name__)

AppFilter = Callable[[Application], bool]

RAW_SUFFIX = ".yml"
NORMALIZED_SUFFIX = ".normalized.yml"


@dataclass
class ExportDslOptions:
    """Parameters for one export run."""

    base_url: str
    output_dir: Union[str, Path]
    email: Optional[str] = None
    password: Optional[str] = None
    include_secret: bool = False
    headless: bool = False
    app_filter: Optional[AppFilter] = None
    normalization: NormalizationMode = field(default_factory=NormalizationMode.disabled)
    timeout: float = DEFAULT_TIMEOUT
    page_limit: int = DEFAULT_PAGE_LIMIT


class DslExportService:
    """Service for exporting every console app's DSL to files."""

    def __init__(
        self,
        auth_provider: Callable[..., ConsoleAuth] = get_auth_with_playwright,
        console_client_factory: Callable[..., DifyConsoleClient] = DifyConsoleClient,
        knowledge_client_factory: Callable[..., DifyKnowledgeClient] = DifyKnowledgeClient,
    ):
        self.auth_provider = auth_provider
        self.console_client_factory = console_client_factory
        self.knowledge_client_factory = knowledge_client_factory

    def export_all(self, options: ExportDslOptions) -> List[ExportResult]:
        """
        Export the DSL of every (filtered) app.

        Returns:
            One ExportResult per app that passed the filter, in listing order

        Raises:
            AuthenticationError: If login fails
            TransportError: If listing apps or datasets fails
            OSError: If the output directory cannot be created
        """
        # 1. Log in once for the whole run
        auth = self.auth_provider(
            options.base_url,
            email=options.email,
            password=options.password,
            headless=options.headless,
        )

        # 2. List apps
        client = self.console_client_factory(
            base_url=options.base_url,
            auth=auth,
            timeout=options.timeout,
            page_limit=options.page_limit,
        )
        try:
            apps = client.get_all_apps()
            logger.info(f"Found {len(apps)} app(s).")

            if options.app_filter is not None:
                apps = [app for app in apps if options.app_filter(app)]
                logger.info(f"After filter: {len(apps)} app(s).")

            # 3. Dataset table for placeholder conversion
            table = self._load_placeholder_table(options)

            # 4. Output directory
            output_dir = Path(options.output_dir)
            output_dir.mkdir(parents=True, exist_ok=True)

            # 5. Export each app
            suffixes = (RAW_SUFFIX,) if table is None else (RAW_SUFFIX, NORMALIZED_SUFFIX)
            results: List[ExportResult] = []
            taken: Set[str] = set()

            for app in apps:
                base = unique_filename_base(app.name, app.id, taken, suffixes)
                results.append(
                    self._export_app(client, app, base, output_dir, options.include_secret, table)
                )
        finally:
            client.close()

        failed = sum(1 for r in results if not r.success)
        logger.info(f"Export finished: {len(results) - failed} succeeded, {failed} failed.")
        return results

    def _load_placeholder_table(self, options: ExportDslOptions) -> Optional[PlaceholderTable]:
        if not options.normalization.enabled:
            return None

        config = options.normalization.knowledge_api
        knowledge_client = self.knowledge_client_factory(
            base_url=config.base_url,
            api_key=config.api_key,
            timeout=options.timeout,
            page_limit=options.page_limit,
        )
        try:
            datasets = knowledge_client.list_datasets()
        finally:
            knowledge_client.close()
        logger.info(f"Found {len(datasets)} dataset(s) for placeholder conversion.")
        return PlaceholderTable.from_datasets(datasets)

    def _export_app(
        self,
        client: DifyConsoleClient,
        app: Application,
        base: str,
        output_dir: Path,
        include_secret: bool,
        table: Optional[PlaceholderTable],
    ) -> ExportResult:
        filename = f"{base}{RAW_SUFFIX}"

        try:
            dsl = client.export_dsl(app.id, include_secret)

            # Raw DSL
            _write_document(output_dir / filename, dsl)

            normalized_filename = None
            if table is not None:
                normalized_filename = f"{base}{NORMALIZED_SUFFIX}"
                normalized = replace_dataset_ids_with_placeholders(dsl, table)
                _write_document(output_dir / normalized_filename, normalized)

                unmapped = sorted(
                    ref
                    for ref in set(find_dataset_references(dsl))
                    if ref and ref not in table and parse_placeholder(ref) is None
                )
                if unmapped:
                    logger.warning(
                        f"  {app.name}: dataset id(s) not found, left as-is: {', '.join(unmapped)}"
                    )
                logger.info(f"  Exported: {app.name} → {filename}, {normalized_filename}")
            else:
                logger.info(f"  Exported: {app.name} → {filename}")

            return ExportResult(
                app_id=app.id,
                app_name=app.name,
                filename=filename,
                success=True,
                normalized_filename=normalized_filename,
            )
        except Exception as e:
            message = str(e) or type(e).__name__
            logger.error(f"  Failed: {app.name} - {message}")
            return ExportResult(
                app_id=app.id,
                app_name=app.name,
                filename=filename,
                success=False,
                error=message,
            )


def _write_document(path: Path, text: str) -> None:
    # newline="" keeps the document byte-for-byte
    path.write_text(text, encoding="utf-8", newline="")


def export_all_dsl(options: ExportDslOptions) -> List[ExportResult]:
    """Export every app's DSL with the default login flow and API clients."""
    return DslExportService().export_all(options)
