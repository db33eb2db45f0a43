import re
from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    name: str = Field(..., min_length=2)
    phone: str | None = None

    @field_validator("password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        if not re.search(r"[A-Z]", value):
            raise ValueError("Password must contain at least one uppercase letter")
        if not re.search(r"[a-z]", value):
            raise ValueError("Password must contain at least one lowercase letter")
        if not re.search(r"[0-9]", value):
            raise ValueError("Password must contain at least one number")
        return value


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


class LogoutRequest(BaseModel):
    refresh_token: str | None = None


class VerifyRequest(BaseModel):
    token: str = Field(..., min_length=1)


class TokenPair(BaseModel):
    access_token: str
    refresh_token: str


class ProfileOut(BaseModel):
    name: str
    phone: str | None = None
    address: str | None = None
    avatar_url: str | None = None

    model_config = {"from_attributes": True}


class UserOut(BaseModel):
    id: str
    email: str
    role: str
    status: str
    profile: ProfileOut | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class AuthResponse(TokenPair):
    user: UserOut


class IdentityOut(BaseModel):
    user_id: str
    email: str
    role: str
    status: str
