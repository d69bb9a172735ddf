"""Pydantic request/response schemas for pl_gateway.

All responses are wrapped in ApiResponse at the router layer.
"""

import string

from pydantic import BaseModel, EmailStr, Field, field_validator

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 20


def check_password_rules(password: str) -> str:
    """Enforce: 8-20 chars, a letter, a digit, an ASCII punctuation mark, no whitespace."""
    if len(password) < PASSWORD_MIN_LENGTH:
        raise ValueError(
            f"Password must be at least {PASSWORD_MIN_LENGTH} characters long"
        )
    if len(password) > PASSWORD_MAX_LENGTH:
        raise ValueError("Password exceeds maximum allowed length")
    if any(c.isspace() for c in password):
        raise ValueError("Password cannot contain whitespace")
    if not any(c.isdigit() for c in password):
        raise ValueError("Password must contain at least one digit")
    if not any(c.isalpha() for c in password):
        raise ValueError("Password must contain at least one letter")
    if not any(c in string.punctuation for c in password):
        raise ValueError("Password must contain at least one special character")
    return password


class SignUpRequest(BaseModel):
    name: str = Field(..., max_length=128)
    email: EmailStr
    password: str

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name cannot be empty")
        return v

    @field_validator("password")
    @classmethod
    def password_complexity(cls, v: str) -> str:
        return check_password_rules(v)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class AccountInfo(BaseModel):
    """Minimal account info embedded in responses."""

    account_id: str
    name: str
    email: str


class SignUpResponse(BaseModel):
    account_id: str
    name: str
    email: str
    created_at: str


class LoginResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int = 1800
    account: AccountInfo


class RefreshResponse(BaseModel):
    access_token: str
    expires_in: int = 1800
