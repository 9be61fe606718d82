"""
Dify console API client - app listing and DSL export.
"""
from typing import Any, Dict, List, Optional

import requests
from pydantic import ValidationError

from dsl_export.auth.session import ConsoleAuth
from dsl_export.connectors.base import DEFAULT_PAGE_LIMIT, DEFAULT_TIMEOUT, ApiClient
from dsl_export.core.exceptions import TransportError
from dsl_export.schemas.app import Application


class DifyConsoleClient(ApiClient):
    """Client for the console API, authenticated with browser session credentials."""

    def __init__(
        self,
        base_url: str,
        auth: ConsoleAuth,
        timeout: float = DEFAULT_TIMEOUT,
        page_limit: int = DEFAULT_PAGE_LIMIT,
        session: Optional[requests.Session] = None,
    ):
        super().__init__(base_url, timeout=timeout, page_limit=page_limit, session=session)
        self.auth = auth

    def _headers(self) -> Dict[str, str]:
        return self.auth.headers()

    def get_all_apps(self) -> List[Application]:
        """List every app visible to the session, in server order."""
        return self._paginate("/console/api/apps", _parse_app)

    def export_dsl(self, app_id: str, include_secret: bool = False) -> str:
        """
        Export one app's DSL document.

        Args:
            app_id: App identifier
            include_secret: Include secret environment variables

        Returns:
            DSL YAML text

        Raises:
            TransportError: If the request fails or the app does not exist
            AuthenticationError: If the session was rejected
        """
        payload = self._get(
            f"/console/api/apps/{app_id}/export",
            params={"include_secret": "true" if include_secret else "false"},
        )
        if not isinstance(payload, dict) or not isinstance(payload.get("data"), str):
            raise TransportError(f"Export of app {app_id} returned no DSL data")
        return payload["data"]


def _parse_app(item: Dict[str, Any]) -> Application:
    try:
        return Application.model_validate(item)
    except ValidationError as e:
        raise TransportError(f"Malformed app entry in listing: {e}") from e
