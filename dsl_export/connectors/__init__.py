"""
HTTP clients for the Dify console and knowledge APIs.
"""
from dsl_export.connectors.console import DifyConsoleClient
from dsl_export.connectors.knowledge import DifyKnowledgeClient

__all__ = ["DifyConsoleClient", "DifyKnowledgeClient"]
