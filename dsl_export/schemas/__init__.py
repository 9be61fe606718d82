"""
Pydantic schemas shared by connectors, services and the CLI.
"""
from dsl_export.schemas.app import AppMode, Application
from dsl_export.schemas.dataset import DatasetMapping
from dsl_export.schemas.export import (
    ExportReport,
    ExportResult,
    KnowledgeApiConfig,
    NormalizationMode,
)

__all__ = [
    "AppMode",
    "Application",
    "DatasetMapping",
    "ExportReport",
    "ExportResult",
    "KnowledgeApiConfig",
    "NormalizationMode",
]
