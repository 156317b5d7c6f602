# Schemas module
from attireburg.schemas.base import BaseResponseSchema, BaseCreateSchema, MessageResponse

__all__ = [
    "BaseResponseSchema",
    "BaseCreateSchema",
    "MessageResponse",
]
