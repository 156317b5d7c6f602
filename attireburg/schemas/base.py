"""
Base Schema Classes for Pydantic Models

The storefront talks camelCase JSON. Every schema inherits from one of these
bases so that fields are declared in snake_case, serialized in camelCase,
and accepted in either form on input.

RULE: All response schemas that use `from_attributes=True` MUST inherit from BaseResponseSchema.
"""

from typing import Optional
from uuid import UUID
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class BaseResponseSchema(BaseModel):
    """
    Base class for all response schemas.

    Usage:
        class ProductResponse(BaseResponseSchema):
            id: UUID
            product_name: str      # serialized as "productName"
    """
    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        # Allow population by field name or alias
        populate_by_name=True,
    )


class BaseCreateSchema(BaseModel):
    """
    Base class for create/input schemas.

    These schemas accept string UUIDs from frontend and convert to UUID objects.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        # Allow extra fields to be ignored (forward compatibility)
        extra='ignore',
    )


class MessageResponse(BaseResponseSchema):
    """Generic {success, message} result."""
    success: bool
    message: str


# Type aliases for common UUID patterns
UUIDField = UUID
OptionalUUID = Optional[UUID]
