"""
Dify knowledge API client - dataset listing.
"""
from typing import Any, Dict, List, Optional

import requests
from pydantic import ValidationError

from dsl_export.connectors.base import DEFAULT_PAGE_LIMIT, DEFAULT_TIMEOUT, ApiClient
from dsl_export.core.exceptions import TransportError
from dsl_export.schemas.dataset import DatasetMapping


class DifyKnowledgeClient(ApiClient):
    """Client for the knowledge (dataset) API, authenticated with an API key."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = DEFAULT_TIMEOUT,
        page_limit: int = DEFAULT_PAGE_LIMIT,
        session: Optional[requests.Session] = None,
    ):
        super().__init__(base_url, timeout=timeout, page_limit=page_limit, session=session)
        self.api_key = api_key

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"}

    def list_datasets(self) -> List[DatasetMapping]:
        """List every dataset visible to the API key."""
        return self._paginate("/datasets", _parse_dataset)


def _parse_dataset(item: Dict[str, Any]) -> DatasetMapping:
    try:
        return DatasetMapping.model_validate(item)
    except ValidationError as e:
        raise TransportError(f"Malformed dataset entry in listing: {e}") from e
