"""
Pydantic schemas for user operations
"""

from pydantic import BaseModel, Field, validator, EmailStr
from typing import Optional
from datetime import datetime
import re

ALLOWED_ROLES = ['user', 'admin']


class UserCreate(BaseModel):
    """Schema for creating a lab staff account"""
    username: str = Field(..., min_length=2, max_length=50, description="Display name used on the lab floor")
    email: EmailStr = Field(..., description="Valid email address")
    password: str = Field(..., min_length=8, max_length=72, description="Password (minimum 8 characters)")
    role: Optional[str] = Field("user", description="User role")

    @validator('username')
    def validate_username(cls, v):
        if not re.match(r'^[a-zA-Z0-9_.-]+$', v):
            raise ValueError('Username can only contain letters, numbers, dots, underscores, and hyphens')
        return v.lower()

    @validator('password')
    def validate_password(cls, v):
        if not re.search(r'[A-Za-z]', v) or not re.search(r'\d', v):
            raise ValueError('Password must contain letters and digits')
        return v

    @validator('role')
    def validate_role(cls, v):
        if v not in ALLOWED_ROLES:
            raise ValueError(f'Role must be one of: {", ".join(ALLOWED_ROLES)}')
        return v


class UserLogin(BaseModel):
    """Schema for user login"""
    username_or_email: str = Field(..., description="Username or email address")
    password: str = Field(..., description="Password")

    @validator('username_or_email')
    def validate_username_or_email(cls, v):
        v = v.strip().lower()
        if not v:
            raise ValueError('Username or email is required')
        return v


class UserResponse(BaseModel):
    """Schema for user responses"""
    id: int
    username: str
    email: str
    role: str
    is_active: bool
    last_login: Optional[datetime]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class UserSummary(BaseModel):
    """Id and display name, for assignment pickers"""
    id: int
    username: str

    class Config:
        from_attributes = True


class TokenResponse(BaseModel):
    """Schema for authentication token response"""
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse
