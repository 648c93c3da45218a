"""
API models and schemas for the FastAPI application.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class APIModel(BaseModel):
    """Base model serialized with camelCase field names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class BookCreate(APIModel):
    """Request body for creating a book."""
    title: Optional[str] = Field(None, description="Book title")
    year: int = Field(0, description="Publication year")
    isbn: int = Field(0, description="ISBN as a 64-bit integer")
    published_date: Optional[datetime] = Field(None, description="Publication date")
    price: int = Field(0, ge=-32768, le=32767, description="Price")
    author_id: int = Field(0, description="Author identifier")


class BookResponse(BookCreate):
    """Book response model for API."""
    id: int = Field(..., description="Unique book identifier")


class LoginRequest(APIModel):
    """Credentials submitted to obtain an access token."""
    username: str = Field(..., alias="userName", description="Login name")
    password: str = Field(..., description="Password")


class UserIdentity(BaseModel):
    """A resolved user, as returned by the user directory."""
    username: str
    user_id: str


class TokenResponse(BaseModel):
    """Access token response."""
    token: str = Field(..., description="Signed JWT bearer token")


class TokenClaims(BaseModel):
    """Claims carried by a validated access token."""
    username: str = Field(..., alias="unique_name")
    nonce: str = Field(..., alias="nameid")
    issuer: str = Field(..., alias="iss")
    audience: str = Field(..., alias="aud")
    expires_at: int = Field(..., alias="exp")


class ErrorResponse(BaseModel):
    """Error response model."""
    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Additional error details")
    status_code: int = Field(..., description="HTTP status code")


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Current timestamp")
    version: str = Field(..., description="API version")
    database_status: str = Field(..., description="Database connection status")
