"""
Console authentication.
"""
from dsl_export.auth.session import ConsoleAuth

__all__ = ["ConsoleAuth"]
