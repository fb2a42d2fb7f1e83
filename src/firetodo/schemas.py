from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _clean_name(v: str) -> str:
    s = v.strip()
    if not (1 <= len(s) <= 200):
        raise ValueError("name length must be between 1 and 200 characters")
    return s


# PUBLIC_INTERFACE
class TodoCreate(BaseModel):
    """
    Fields accepted when creating a Todo.

    Id, owner and creation time are assigned by the server.
    """

    model_config = ConfigDict(
        extra="ignore",
        json_schema_extra={"example": {"name": "buy milk", "completed": False}},
    )

    name: str = Field(..., description="Text of the todo item", min_length=1, max_length=200)
    completed: bool = Field(default=False, description="Completion status flag")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """
        Strip whitespace and enforce 1..200 length.
        """
        return _clean_name(v)


# PUBLIC_INTERFACE
class TodoUpdate(BaseModel):
    """
    Partial update of a Todo: rename and/or toggle.
    Only provided fields are written.
    """

    model_config = ConfigDict(
        extra="ignore",
        json_schema_extra={"example": {"completed": True}},
    )

    name: Optional[str] = Field(default=None, description="Text of the todo item", min_length=1, max_length=200)
    completed: Optional[bool] = Field(default=None, description="Completion status flag")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return _clean_name(v)


# PUBLIC_INTERFACE
class TodoOut(BaseModel):
    """
    Schema returned by the API for a Todo item.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "p3Zq0sKq1mYQ2cVh8wXa",
                "name": "buy milk",
                "completed": False,
                "createAt": "2025-01-25T10:15:30.123456+00:00",
                "uid": "u8Nw2LxQe0Vd4RbT7hMk",
            }
        }
    )

    id: str = Field(..., description="Store-assigned document id")
    name: str = Field(..., description="Text of the todo item")
    completed: bool = Field(..., description="Completion status flag")
    createAt: datetime = Field(..., description="Creation timestamp")
    uid: str = Field(..., description="Id of the owning user")


class TodoCreateRequest(BaseModel):
    """Request body for creating a Todo: `{"data": {...}}`."""

    data: TodoCreate


class TodoUpdateRequest(BaseModel):
    """Request body for updating a Todo: `{"data": {...}}`."""

    data: TodoUpdate


class DeletedOut(BaseModel):
    deleted: bool = True


class ErrorOut(BaseModel):
    """Structured error body for failed requests."""

    error: str = Field(..., description="Short error string or sign-in error code")
    message: Optional[str] = Field(default=None, description="Human-readable message")


# PUBLIC_INTERFACE
class CredentialSignIn(BaseModel):
    """
    Body for credential sign-in.

    `idToken` is the identity-provider token obtained by the client after
    email/password authentication; the remaining fields are profile hints.
    """

    model_config = ConfigDict(populate_by_name=True)

    id_token: str = Field(..., alias="idToken", min_length=1)
    email: Optional[str] = None
    image: Optional[str] = None
    email_verified: Optional[str] = Field(default=None, alias="emailVerified")


class SessionOut(BaseModel):
    """Session payload: the user (with embedded store credential) and expiry."""

    model_config = ConfigDict(extra="allow")

    user: Dict[str, Any]
    expires: str
