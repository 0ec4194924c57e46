import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from eventbook.core.security import password_policy_errors
from eventbook.models.user import UserRole


def _check_password(value: str) -> str:
    errors = password_policy_errors(value)
    if errors:
        raise ValueError("; ".join(errors))
    return value


class UserBase(BaseModel):
    first_name: str = Field(..., min_length=2, max_length=50)
    last_name: str = Field(..., min_length=2, max_length=50)
    email: EmailStr


# Properties to receive via API on creation
class UserCreate(UserBase):
    password: str = Field(..., max_length=72)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str) -> str:
        return _check_password(v)


class UserLogin(BaseModel):
    email: EmailStr
    password: str

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()


class PasswordUpdate(BaseModel):
    current_password: str
    new_password: str = Field(..., max_length=72)

    @field_validator("new_password")
    @classmethod
    def check_password(cls, v: str) -> str:
        return _check_password(v)


class User(UserBase):
    id: uuid.UUID
    role: UserRole
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class AuthResponse(Token):
    user: User


class TokenPayload(BaseModel):
    sub: uuid.UUID
    role: Optional[UserRole] = None
    iat: Optional[float] = None
