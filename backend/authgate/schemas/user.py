"""User schemas"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional
from datetime import datetime
from enum import Enum

BCRYPT_MAX_PASSWORD_BYTES = 72


class UserRole(str, Enum):
    """User role enumeration"""
    ADMIN = "admin"
    MANAGER = "manager"
    USER = "user"


class UserCreate(BaseModel):
    """User creation schema"""
    email: str = Field(..., min_length=3, max_length=255)
    name: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=8, max_length=72)
    role: UserRole = UserRole.USER

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        """Validate and lowercase email"""
        v = v.strip().lower()
        local, _, domain = v.partition('@')
        if not local or '.' not in domain:
            raise ValueError('Invalid email address')
        return v

    @field_validator('password')
    @classmethod
    def password_fits_bcrypt(cls, v):
        """bcrypt only accepts up to 72 bytes of input"""
        if len(v.encode('utf-8')) > BCRYPT_MAX_PASSWORD_BYTES:
            raise ValueError(f'Password must be at most {BCRYPT_MAX_PASSWORD_BYTES} bytes when UTF-8 encoded')
        return v


class UserResponse(BaseModel):
    """User response schema"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: str
    role: str
    is_active: bool
    created_at: Optional[datetime]
    last_login: Optional[datetime]
