"""
Unit tests for the command line entry point.
"""
import pytest
from unittest.mock import patch

from dsl_export import cli
from dsl_export.core.config import Settings
from dsl_export.core.exceptions import AuthenticationError
from dsl_export.schemas.dataset import DatasetMapping
from dsl_export.schemas.export import ExportResult
from tests.conftest import FAQ_ID, make_app


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        DIFY_CONSOLE_URL="http://console.local",
        DIFY_EMAIL=None,
        DIFY_PASSWORD=None,
        DIFY_KNOWLEDGE_API_URL=None,
        DIFY_KNOWLEDGE_API_KEY=None,
        OUTPUT_DIR="./dsl",
        INCLUDE_SECRET=False,
        HEADLESS=False,
        LOG_LEVEL="WARNING",
    )


@pytest.fixture(autouse=True)
def patched_settings(settings):
    with patch("dsl_export.cli.get_settings", return_value=settings):
        yield


def ok(app_id="app-1"):
    return ExportResult(app_id=app_id, app_name="App", filename="app.yml", success=True)


class TestBuildAppFilter:
    """Test CLI app predicates."""

    def test_no_filter(self):
        assert cli.build_app_filter(None, None) is None
        assert cli.build_app_filter([], "") is None

    def test_mode_filter(self):
        predicate = cli.build_app_filter(["workflow", "Advanced-Chat"], None)

        assert predicate(make_app("1", "A", mode="workflow")) is True
        assert predicate(make_app("2", "B", mode="advanced-chat")) is True
        assert predicate(make_app("3", "C", mode="chat")) is False

    def test_name_filter(self):
        predicate = cli.build_app_filter(None, "faq")

        assert predicate(make_app("1", "Customer FAQ Bot")) is True
        assert predicate(make_app("2", "Translator")) is False

    def test_combined(self):
        predicate = cli.build_app_filter(["chat"], "bot")

        assert predicate(make_app("1", "FAQ Bot", mode="chat")) is True
        assert predicate(make_app("2", "FAQ Bot", mode="workflow")) is False


class TestExportCommand:
    """Test the export subcommand."""

    def test_all_succeeded(self, tmp_path):
        with patch("dsl_export.cli.export_all_dsl", return_value=[ok()]) as export:
            code = cli.main(["export", "-o", str(tmp_path), "--include-secret"])

        assert code == cli.EXIT_OK
        options = export.call_args.args[0]
        assert options.base_url == "http://console.local"
        assert options.output_dir == tmp_path
        assert options.include_secret is True
        assert options.headless is False
        assert options.app_filter is None
        assert options.normalization.enabled is False

    def test_item_failure_exit_code(self, tmp_path):
        failed = ExportResult(
            app_id="app-2", app_name="Broken", filename="broken.yml", success=False, error="HTTP 500"
        )
        with patch("dsl_export.cli.export_all_dsl", return_value=[ok(), failed]):
            code = cli.main(["export", "-o", str(tmp_path)])

        assert code == cli.EXIT_ITEM_FAILURES

    def test_run_fatal_exit_code(self, tmp_path):
        with patch("dsl_export.cli.export_all_dsl", side_effect=AuthenticationError("denied")):
            code = cli.main(["export", "-o", str(tmp_path)])

        assert code == cli.EXIT_FATAL

    def test_knowledge_options_enable_normalization(self, tmp_path):
        with patch("dsl_export.cli.export_all_dsl", return_value=[]) as export:
            cli.main([
                "export",
                "-o", str(tmp_path),
                "--knowledge-api-url", "http://console.local/v1",
                "--knowledge-api-key", "dataset-key",
                "--mode", "workflow",
            ])

        options = export.call_args.args[0]
        assert options.normalization.enabled is True
        assert options.normalization.knowledge_api.api_key == "dataset-key"
        assert options.app_filter(make_app("1", "A", mode="workflow")) is True

    def test_missing_base_url(self, settings, tmp_path):
        settings.DIFY_CONSOLE_URL = None

        with pytest.raises(SystemExit) as exc_info:
            cli.main(["export", "-o", str(tmp_path)])

        assert exc_info.value.code == 2


class TestRestoreCommand:
    """Test the restore subcommand."""

    def test_restore_to_file(self, tmp_path):
        source = tmp_path / "faq.normalized.yml"
        source.write_text("dataset_ids:\n- '{{#dataset.customer_faq#}}'\n", encoding="utf-8")
        target = tmp_path / "faq.yml"

        with patch("dsl_export.cli.DifyKnowledgeClient") as client_cls:
            client_cls.return_value.list_datasets.return_value = [
                DatasetMapping(id=FAQ_ID, name="Customer FAQ"),
            ]
            code = cli.main([
                "restore", str(source), "-o", str(target),
                "--knowledge-api-url", "http://target.local/v1",
                "--knowledge-api-key", "key",
            ])

        assert code == cli.EXIT_OK
        assert target.read_text(encoding="utf-8") == f"dataset_ids:\n- {FAQ_ID}\n"
        assert client_cls.call_args.kwargs["base_url"] == "http://target.local/v1"

    def test_restore_unknown_placeholder(self, tmp_path):
        source = tmp_path / "faq.normalized.yml"
        source.write_text("dataset_ids:\n- '{{#dataset.missing#}}'\n", encoding="utf-8")

        with patch("dsl_export.cli.DifyKnowledgeClient") as client_cls:
            client_cls.return_value.list_datasets.return_value = []
            code = cli.main([
                "restore", str(source),
                "--knowledge-api-url", "http://target.local/v1",
                "--knowledge-api-key", "key",
            ])

        assert code == cli.EXIT_FATAL

    def test_restore_requires_knowledge_api(self, tmp_path):
        with pytest.raises(SystemExit):
            cli.main(["restore", str(tmp_path / "x.yml")])
