"""
Pydantic schemas for console applications.
"""
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class AppMode(str, Enum):
    """App modes reported by the console API."""

    CHAT = "chat"
    ADVANCED_CHAT = "advanced-chat"
    AGENT_CHAT = "agent-chat"
    COMPLETION = "completion"
    WORKFLOW = "workflow"


class Application(BaseModel):
    """One app as returned by the console app listing."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    name: str
    # Newer servers may report modes not listed in AppMode
    mode: Union[AppMode, str] = Field(union_mode="left_to_right")
    icon: Optional[str] = None
    icon_type: Optional[str] = None
    icon_background: Optional[str] = None

    @property
    def mode_value(self) -> str:
        """Mode as a plain string, whether or not it is a known AppMode."""
        return self.mode.value if isinstance(self.mode, AppMode) else self.mode
