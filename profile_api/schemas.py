"""Pydantic schemas for user records and the rules applied before any write."""
from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_serializer, field_validator

from profile_api.exceptions import RecordValidationError
from profile_api.utils import as_utc

EMAIL_PATTERN = r"^[\w.+-]+@([\w-]+\.)+[A-Za-z]{2,}$"
PHONE_PATTERN = r"^[0-9+()\s-]+$"


def _lower(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().lower()
    return value


class UserPayload(BaseModel):
    """Candidate for a new user record."""

    name: str = Field(..., min_length=2, max_length=50)
    email: str = Field(..., pattern=EMAIL_PATTERN)
    age: Optional[int] = Field(None, ge=1, le=150)
    city: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore", frozen=True)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value: Any) -> Any:
        return _lower(value)


class UserUpdate(BaseModel):
    """Subset of mutable fields supplied to an update; unset fields are left alone."""

    name: Optional[str] = Field(None, min_length=2, max_length=50)
    email: Optional[str] = Field(None, pattern=EMAIL_PATTERN)
    age: Optional[int] = Field(None, ge=1, le=150)
    city: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore", frozen=True)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value: Any) -> Any:
        return _lower(value)

    @field_validator("name", "email")
    @classmethod
    def required_when_present(cls, value: Optional[str]) -> str:
        if value is None:
            raise ValueError("Field cannot be cleared")
        return value

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


def _field_errors(exc: ValidationError) -> list[dict[str, str]]:
    errors = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"]) or "__root__"
        errors.append({"field": field, "reason": error["msg"]})
    return errors


def _as_mapping(candidate: Any) -> dict[str, Any]:
    if not isinstance(candidate, Mapping):
        raise RecordValidationError([{"field": "__root__", "reason": "Request body must be a JSON object"}])
    return dict(candidate)


def validate_user(candidate: Any) -> UserPayload:
    """Check a create candidate against every schema rule, reporting all violations at once."""

    try:
        return UserPayload.model_validate(_as_mapping(candidate))
    except ValidationError as exc:
        raise RecordValidationError(_field_errors(exc)) from exc


def validate_user_update(candidate: Any) -> UserUpdate:
    try:
        return UserUpdate.model_validate(_as_mapping(candidate))
    except ValidationError as exc:
        raise RecordValidationError(_field_errors(exc)) from exc


class UserDTO(BaseModel):
    """Representation of a stored user."""

    id: str
    name: str
    email: str
    age: Optional[int] = None
    city: Optional[str] = None
    phone: Optional[str] = None
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: datetime = Field(..., alias="updatedAt")

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    @field_serializer("created_at", "updated_at")
    def _serialize_timestamp(self, value: datetime) -> str:
        return as_utc(value).isoformat()


class UserEnvelope(BaseModel):
    """Response for write operations."""

    message: str
    user: UserDTO


class UserPage(BaseModel):
    """One page of users plus the totals needed to walk the rest."""

    users: List[UserDTO]
    current_page: int = Field(..., alias="currentPage")
    total_pages: int = Field(..., alias="totalPages")
    total_users: int = Field(..., alias="totalUsers")

    model_config = ConfigDict(populate_by_name=True)
