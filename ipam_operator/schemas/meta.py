"""Metadata fields shared by every object schema."""

import re
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

NAME_PATTERN = re.compile(r"^[a-z0-9]([-a-z0-9.]*[a-z0-9])?$")


class ObjectCreate(BaseModel):
    """Metadata accepted on create."""

    name: str = Field(min_length=1, max_length=253, examples=["pool-a"])
    labels: Dict[str, str] = Field(default_factory=dict)
    annotations: Dict[str, str] = Field(default_factory=dict)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate object name format."""
        if not NAME_PATTERN.match(v):
            raise ValueError(
                "Name must be lowercase alphanumeric, '-' or '.', "
                "and start and end with an alphanumeric character"
            )
        return v


class ObjectResponse(BaseModel):
    """Metadata returned for every object."""

    name: str
    namespace: str
    labels: Dict[str, str]
    annotations: Dict[str, str]
    finalizers: List[str]
    owner_references: List[Dict[str, str]]
    deletion_timestamp: Optional[datetime]
    resource_version: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
