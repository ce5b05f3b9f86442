from pydantic import BaseModel
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class ActionResponse(BaseModel, Generic[T]):
    """Uniform envelope every endpoint answers with"""
    success: bool
    data: Optional[T] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, data: T) -> "ActionResponse[T]":
        return cls(success=True, data=data, error=None)

    @classmethod
    def fail(cls, error: str) -> "ActionResponse[T]":
        return cls(success=False, data=None, error=error)


class IdResponse(BaseModel):
    id: str
