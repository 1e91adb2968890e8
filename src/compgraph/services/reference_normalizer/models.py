"""
Service models for reference normalization.
"""

from pathlib import Path
from typing import Any, Optional
from pydantic import ConfigDict, Field

from ...shared.models.base import BaseModel


class NormalizationContext(BaseModel):
    """Everything a normalization call needs besides the raw reference."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    base_path: Optional[Path] = Field(default=None, description="Workspace root used for file references")
    resolver: Optional[Any] = Field(
        default=None,
        description="Resolver collaborator; heuristic path parsing is used when absent",
    )
    strict: bool = Field(default=False, description="Raise instead of returning None on failure")
    default_domain: str = Field(default="core", description="Domain assumed by the path heuristic")
    default_version: str = Field(default="1.0.0", description="Version assumed by the path heuristic")
