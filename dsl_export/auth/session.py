"""
Authenticated console session credentials.
"""
from dataclasses import dataclass
from typing import Dict, Optional


@dataclass(frozen=True)
class ConsoleAuth:
    """Credentials captured from a logged-in console browser session."""

    cookies: str = ""
    csrf_token: Optional[str] = None
    access_token: Optional[str] = None

    def headers(self) -> Dict[str, str]:
        """HTTP headers that authenticate console API requests."""
        headers: Dict[str, str] = {}
        if self.cookies:
            headers["Cookie"] = self.cookies
        if self.csrf_token:
            headers["X-CSRF-Token"] = self.csrf_token
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    @property
    def is_empty(self) -> bool:
        return not (self.cookies or self.csrf_token or self.access_token)
