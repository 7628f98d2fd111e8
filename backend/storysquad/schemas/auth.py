from __future__ import annotations
import re
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from typing import Literal

Role = Literal["admin", "teacher", "student"]

CODENAME_PATTERN = r"^[A-Za-z0-9]+$"
# at least one lower, one upper, one digit; letters and digits only
_PASSWORD_RE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)[a-zA-Z\d]{8,}$")

def _check_password(v: str) -> str:
    if not _PASSWORD_RE.match(v):
        raise ValueError("password needs 8+ letters/digits with upper, lower and a digit")
    return v

class SignUpRequest(BaseModel):
    codename: str = Field(min_length=1, max_length=64, pattern=CODENAME_PATTERN)
    email: EmailStr
    password: str = Field(max_length=128)
    age: int | None = Field(default=None, ge=0, le=150)
    parent_email: EmailStr | None = None

    @field_validator("password")
    @classmethod
    def strong_password(cls, v: str):
        return _check_password(v)

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

class ActivationRequest(BaseModel):
    email: EmailStr
    token: str

class ResetCodeRequest(BaseModel):
    email: EmailStr

class ResetPasswordRequest(BaseModel):
    email: EmailStr
    password: str = Field(max_length=128)
    code: str

    @field_validator("password")
    @classmethod
    def strong_password(cls, v: str):
        return _check_password(v)

class UserPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    codename: str
    email: EmailStr
    role: Role
    is_validated: bool

class AuthResponse(BaseModel):
    user: UserPublic
    token: str
