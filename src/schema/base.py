# src/schema/base.py
from typing import Generic, TypeVar, Optional
from pydantic import BaseModel

# Generic type for the data field
T = TypeVar("T")


class BaseResponse(BaseModel, Generic[T]):
    status: bool = True  # Indicates success (True) or failure (False)
    message: str = "Success"  # Human-readable message
    data: Optional[T] = None  # The actual payload (can be any type)
    error: Optional[dict] = None  # Error details (if any)

    model_config = {"from_attributes": True}

    @classmethod
    def failure(cls, message: str, error: dict) -> "BaseResponse":
        """Structured failure: {code, message, details} under ``error``"""
        return cls(status=False, message=message, data=None, error=error)
