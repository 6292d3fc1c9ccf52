"""
Authentication schemas.
"""
from typing import Optional
from pydantic import BaseModel, EmailStr, Field


class LoginRequest(BaseModel):
    """Login request."""
    email: EmailStr
    password: str


class Token(BaseModel):
    """JWT token response."""
    access_token: str
    token_type: str = "bearer"


class TokenPayload(BaseModel):
    """JWT token payload."""
    sub: str
    exp: int
    type: str
    org_id: Optional[int] = None


class SignupRequest(BaseModel):
    """
    Self-service signup. The organization is resolved from the email
    domain, or from ``organization_slug`` when the domain is not registered.
    """
    email: EmailStr
    password: str = Field(..., min_length=8)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    organization_slug: Optional[str] = None
