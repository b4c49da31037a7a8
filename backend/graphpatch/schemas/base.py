"""Base Pydantic schemas with common patterns."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class BaseSchema(BaseModel):
    """Base schema with common configuration for all schemas.

    Configures Pydantic v2 settings for consistent behavior across all schemas.
    """

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        str_strip_whitespace=True,
        use_enum_values=True,
    )


class CamelSchema(BaseSchema):
    """Schema that also accepts and emits camelCase keys.

    Used for payloads exchanged with agent callers, which speak the workflow
    store's camelCase dialect (``nodeId``, ``sourceIndex``...).
    """

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        str_strip_whitespace=True,
        use_enum_values=True,
        alias_generator=to_camel,
    )


__all__ = [
    "BaseSchema",
    "CamelSchema",
]
