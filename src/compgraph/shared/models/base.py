"""
Base models and mixins for compgraph.
"""

from typing import Any, Dict
from pydantic import BaseModel as PydanticBaseModel, ConfigDict, Field


class BaseModel(PydanticBaseModel):
    """
    Base model for all compgraph data structures.

    Provides common configuration and utilities.
    """

    model_config = ConfigDict(
        # Allow field population by name or alias ("from"/"to" on edges)
        populate_by_name=True,
        validate_assignment=True,
        use_enum_values=True,
        extra="forbid",
    )


class FrozenModel(BaseModel):
    """
    Immutable value type. Instances are never mutated after creation.
    """

    model_config = ConfigDict(frozen=True)


class MetadataMixin(PydanticBaseModel):
    """
    Mixin to add metadata field to models.
    """
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Additional metadata")

    def get_metadata(self, key: str, default: Any = None) -> Any:
        """Get a metadata value."""
        return self.metadata.get(key, default)
