"""
Unit tests for the console and knowledge API clients with a mocked session.
"""
import pytest
import requests
from unittest.mock import Mock, patch

from dsl_export.auth.session import ConsoleAuth
from dsl_export.connectors.console import DifyConsoleClient
from dsl_export.connectors.knowledge import DifyKnowledgeClient
from dsl_export.core.exceptions import AuthenticationError, TransportError
from dsl_export.schemas.app import AppMode


def make_response(status_code=200, payload=None, text=""):
    response = Mock()
    response.status_code = status_code
    response.text = text
    if isinstance(payload, Exception):
        response.json.side_effect = payload
    else:
        response.json.return_value = payload
    return response


def app_entry(app_id, name, mode="workflow"):
    return {
        "id": app_id,
        "name": name,
        "mode": mode,
        "icon": "🤖",
        "icon_type": "emoji",
        "icon_background": "#FFEAD5",
        "created_at": 1718000000,
    }


@pytest.fixture
def session():
    return Mock(spec=requests.Session)


@pytest.fixture
def console(session):
    auth = ConsoleAuth(cookies="access_token=t; csrf_token=c", csrf_token="c")
    return DifyConsoleClient("http://localhost/", auth, timeout=5, page_limit=2, session=session)


class TestDifyConsoleClient:
    """Test console API calls."""

    def test_get_all_apps_paginates(self, console, session):
        session.get.side_effect = [
            make_response(payload={"data": [app_entry("a1", "One"), app_entry("a2", "Two")], "has_more": True}),
            make_response(payload={"data": [app_entry("a3", "Three", mode="advanced-chat")], "has_more": False}),
        ]

        apps = console.get_all_apps()

        assert [app.id for app in apps] == ["a1", "a2", "a3"]
        assert apps[2].mode == AppMode.ADVANCED_CHAT
        assert apps[0].icon_type == "emoji"

        first_call, second_call = session.get.call_args_list
        assert first_call.args[0] == "http://localhost/console/api/apps"
        assert first_call.kwargs["params"] == {"page": 1, "limit": 2}
        assert second_call.kwargs["params"] == {"page": 2, "limit": 2}
        assert first_call.kwargs["timeout"] == 5

    def test_auth_headers_sent(self, console, session):
        session.get.return_value = make_response(payload={"data": [], "has_more": False})

        console.get_all_apps()

        headers = session.get.call_args.kwargs["headers"]
        assert headers["Cookie"] == "access_token=t; csrf_token=c"
        assert headers["X-CSRF-Token"] == "c"

    def test_unknown_mode_tolerated(self, console, session):
        session.get.return_value = make_response(
            payload={"data": [app_entry("a1", "One", mode="rag-pipeline")], "has_more": False}
        )

        apps = console.get_all_apps()

        assert apps[0].mode_value == "rag-pipeline"

    def test_export_dsl(self, console, session):
        session.get.return_value = make_response(payload={"data": "app:\n  name: One\n"})

        dsl = console.export_dsl("a1", include_secret=True)

        assert dsl == "app:\n  name: One\n"
        call = session.get.call_args
        assert call.args[0] == "http://localhost/console/api/apps/a1/export"
        assert call.kwargs["params"] == {"include_secret": "true"}

    def test_export_dsl_default_excludes_secrets(self, console, session):
        session.get.return_value = make_response(payload={"data": "x"})

        console.export_dsl("a1")

        assert session.get.call_args.kwargs["params"] == {"include_secret": "false"}

    def test_export_dsl_missing_data(self, console, session):
        session.get.return_value = make_response(payload={"result": "success"})

        with pytest.raises(TransportError, match="a1"):
            console.export_dsl("a1")

    @pytest.mark.parametrize("status", [401, 403])
    def test_rejected_session(self, console, session, status):
        session.get.return_value = make_response(status_code=status)

        with pytest.raises(AuthenticationError):
            console.get_all_apps()

    def test_not_found(self, console, session):
        session.get.return_value = make_response(status_code=404, text="app not found")

        with pytest.raises(TransportError) as exc_info:
            console.export_dsl("missing")

        assert exc_info.value.status_code == 404
        assert "app not found" in str(exc_info.value)

    def test_network_error(self, console, session):
        session.get.side_effect = requests.ConnectionError("refused")

        with pytest.raises(TransportError, match="refused"):
            console.get_all_apps()

    def test_invalid_json(self, console, session):
        session.get.return_value = make_response(payload=ValueError("no json"))

        with pytest.raises(TransportError, match="invalid JSON"):
            console.get_all_apps()

    def test_malformed_listing(self, console, session):
        session.get.return_value = make_response(payload={"items": []})

        with pytest.raises(TransportError, match="data"):
            console.get_all_apps()

    def test_malformed_app_entry(self, console, session):
        session.get.return_value = make_response(payload={"data": [{"name": "no id"}], "has_more": False})

        with pytest.raises(TransportError, match="Malformed app"):
            console.get_all_apps()


class TestDifyKnowledgeClient:
    """Test knowledge API calls."""

    def test_list_datasets(self, session):
        session.get.side_effect = [
            make_response(payload={
                "data": [{"id": "d1", "name": "FAQ", "doc_form": "text_model"}],
                "has_more": True,
            }),
            make_response(payload={"data": [{"id": "d2", "name": "Manual"}], "has_more": False}),
        ]
        client = DifyKnowledgeClient("http://localhost/v1", "dataset-key", page_limit=1, session=session)

        datasets = client.list_datasets()

        assert [(d.id, d.name) for d in datasets] == [("d1", "FAQ"), ("d2", "Manual")]
        call = session.get.call_args_list[0]
        assert call.args[0] == "http://localhost/v1/datasets"
        assert call.kwargs["headers"] == {"Authorization": "Bearer dataset-key"}

    def test_stops_on_empty_page(self, session):
        session.get.return_value = make_response(payload={"data": [], "has_more": True})
        client = DifyKnowledgeClient("http://localhost/v1", "dataset-key", session=session)

        assert client.list_datasets() == []
        assert session.get.call_count == 1

    def test_bad_key(self, session):
        session.get.return_value = make_response(status_code=401)
        client = DifyKnowledgeClient("http://localhost/v1", "wrong", session=session)

        with pytest.raises(AuthenticationError):
            client.list_datasets()

    def test_server_error(self, session):
        session.get.return_value = make_response(status_code=500, text="oops")
        client = DifyKnowledgeClient("http://localhost/v1", "dataset-key", session=session)

        with pytest.raises(TransportError) as exc_info:
            client.list_datasets()

        assert exc_info.value.status_code == 500


class TestClientSession:
    """Test HTTP session ownership."""

    def test_context_manager_closes_own_session(self):
        with patch("dsl_export.connectors.base.requests.Session") as session_cls:
            with DifyKnowledgeClient("http://localhost/v1", "dataset-key") as client:
                assert client.session is session_cls.return_value

        session_cls.return_value.close.assert_called_once()

    def test_supplied_session_left_open(self, session):
        client = DifyKnowledgeClient("http://localhost/v1", "dataset-key", session=session)
        client.close()

        session.close.assert_not_called()
