"""
Dify DSL exporter.

Bulk-exports app DSL documents from a Dify console and rewrites knowledge
base (dataset) IDs into stable, name-derived placeholders.
"""

__version__ = "0.1.0"
