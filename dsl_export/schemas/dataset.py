"""
Pydantic schemas for knowledge base datasets.
"""
from pydantic import BaseModel, ConfigDict


class DatasetMapping(BaseModel):
    """Dataset id and display name, as listed by the knowledge API."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    name: str
