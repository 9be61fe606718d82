"""
Pydantic schemas for export runs.
"""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class ExportResult(BaseModel):
    """Outcome for a single app. Never mutated after creation."""

    model_config = ConfigDict(frozen=True)

    app_id: str
    app_name: str
    filename: str
    success: bool
    error: Optional[str] = None
    normalized_filename: Optional[str] = None


class ExportReport(BaseModel):
    """Ordered results of one export run."""

    model_config = ConfigDict(frozen=True)

    results: List[ExportResult]

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> List[ExportResult]:
        return [r for r in self.results if r.success]

    @property
    def failed(self) -> List[ExportResult]:
        return [r for r in self.results if not r.success]


class KnowledgeApiConfig(BaseModel):
    """Connection parameters for the knowledge (dataset) API."""

    model_config = ConfigDict(frozen=True)

    base_url: str
    api_key: str


class NormalizationMode(BaseModel):
    """
    Run-level switch for placeholder normalization.

    Disabled when ``knowledge_api`` is None, enabled otherwise. Decided once
    before any app is processed.
    """

    model_config = ConfigDict(frozen=True)

    knowledge_api: Optional[KnowledgeApiConfig] = None

    @property
    def enabled(self) -> bool:
        return self.knowledge_api is not None

    @classmethod
    def disabled(cls) -> "NormalizationMode":
        return cls()

    @classmethod
    def from_options(
        cls, api_url: Optional[str], api_key: Optional[str]
    ) -> "NormalizationMode":
        """Enabled only when both the URL and the key are present."""
        if api_url and api_key:
            return cls(knowledge_api=KnowledgeApiConfig(base_url=api_url, api_key=api_key))
        return cls.disabled()
