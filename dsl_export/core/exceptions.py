"""
Exception hierarchy for the exporter.

Run-fatal errors (authentication, listing, dataset load) surface as these
types; per-app failures are captured into ExportResult instead.
"""
from typing import Optional


class DslExportError(Exception):
    """Base class for exporter errors."""

    pass


class AuthenticationError(DslExportError):
    """Raised when a login flow fails or an API rejects the credentials."""

    pass


class TransportError(DslExportError):
    """Raised on network failure, non-2xx responses or malformed payloads."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class PlaceholderError(DslExportError):
    """Raised when a dataset placeholder cannot be built or resolved."""

    pass
