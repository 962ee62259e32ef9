"""
Pydantic schemas for customer and staff accounts
"""

from pydantic import BaseModel, Field, validator, EmailStr
from typing import Optional
from datetime import datetime
import re

from app.models.user import ROLE_ADMIN, ROLE_AGENT

STAFF_ROLES = (ROLE_ADMIN, ROLE_AGENT)

def check_password_strength(password: str) -> str:
    rules = [
        (r'[A-Z]', 'one uppercase letter'),
        (r'[a-z]', 'one lowercase letter'),
        (r'\d', 'one digit'),
        (r'[!@#$%^&*(),.?":{}|<>]', 'one special character'),
    ]
    for pattern, requirement in rules:
        if not re.search(pattern, password):
            raise ValueError(f'Password must contain at least {requirement}')
    return password

class UserBase(BaseModel):
    """Fields shared by every account"""
    username: str = Field(..., min_length=3, max_length=50, description="Username (3-50 characters)")
    email: Optional[EmailStr] = Field(None, description="Email address, used for notifications")
    first_name: str = Field(..., min_length=1, max_length=50, description="First name")
    last_name: str = Field(..., min_length=1, max_length=50, description="Last name")
    phone_number: Optional[str] = Field(None, max_length=20, description="Mobile number for SMS/WhatsApp updates")

    @validator('username')
    def validate_username(cls, v):
        if not re.match(r'^[a-zA-Z0-9_-]+$', v):
            raise ValueError('Username can only contain letters, numbers, underscores, and hyphens')
        return v.lower()

    @validator('phone_number')
    def validate_phone_number(cls, v):
        if v is None:
            return v
        digits_only = re.sub(r'\D', '', v)
        if len(digits_only) < 10 or len(digits_only) > 15:
            raise ValueError('Phone number must be between 10-15 digits')
        return v

    @validator('first_name', 'last_name')
    def validate_names(cls, v):
        if not re.match(r'^[a-zA-Z\s\'-]+$', v):
            raise ValueError('Names can only contain letters, spaces, hyphens, and apostrophes')
        return v.strip().title()

class UserCreate(UserBase):
    """Customer self-registration; always creates a customer account"""
    password: str = Field(..., min_length=8, max_length=72, description="Password (8-72 characters)")
    confirm_password: str = Field(..., description="Password confirmation")

    @validator('password')
    def validate_password(cls, v):
        return check_password_strength(v)

    @validator('confirm_password')
    def passwords_match(cls, v, values, **kwargs):
        if 'password' in values and v != values['password']:
            raise ValueError('Passwords do not match')
        return v

class StaffCreate(UserCreate):
    """Admin-created account for lab staff or a collection agent"""
    role: str = Field(ROLE_AGENT, description="admin or home_visit_agent")

    @validator('role')
    def validate_role(cls, v):
        if v not in STAFF_ROLES:
            raise ValueError(f'Role must be one of: {", ".join(STAFF_ROLES)}')
        return v

class UserLogin(BaseModel):
    username_or_email: str = Field(..., description="Username or email address")
    password: str = Field(..., description="Password")

    @validator('username_or_email')
    def validate_username_or_email(cls, v):
        v = v.strip().lower()
        if not v:
            raise ValueError('Username or email is required')
        return v

class UserResponse(UserBase):
    """Account details returned by the API (excludes the password hash)"""
    id: int
    role: str
    is_active: bool
    last_login: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse
