"""Authentication schemas."""

from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from canteen.core.rbac import SELF_SERVICE_ROLES, UserRole
from canteen.core.security import MIN_PASSWORD_LENGTH


class SignupRequest(BaseModel):
    """Signup request body.

    Vendor accounts start without an outlet; an administrator links them.
    """

    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH, max_length=128)
    role: UserRole = UserRole.CUSTOMER
    phone: Optional[str] = Field(None, max_length=20)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name cannot be blank")
        return v

    @field_validator("role")
    @classmethod
    def self_service_role(cls, v: UserRole) -> UserRole:
        if v not in SELF_SERVICE_ROLES:
            raise ValueError("This role cannot be chosen at signup")
        return v


class LoginRequest(BaseModel):
    """Login request body."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower() if isinstance(v, str) else v


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    role: UserRole
    wallet_balance: str
    vendor_ids: list[int] = []


class AuthResponse(BaseModel):
    """JWT token plus the signed-in user."""

    token: str
    token_type: str = "bearer"
    user: UserResponse
