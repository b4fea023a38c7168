"""Pydantic schemas for the authentication endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field


class CredentialsRequest(BaseModel):
    """Email/password pair submitted to sign-up and sign-in."""

    email: str = Field(..., max_length=320, description="Account email address.")
    password: str = Field(..., max_length=1024, description="Account password.")


class ResendConfirmationRequest(BaseModel):
    email: str = Field(..., max_length=320, description="Email to confirm.")


class UserResponse(BaseModel):
    id: str = Field(..., description="Provider-assigned user id.")
    email: str = Field(..., description="Normalized email address.")
    email_verified: bool = Field(
        False, description="Whether the email address has been confirmed."
    )


class SessionResponse(BaseModel):
    access_token: str = Field(..., description="Bearer token for the session.")
    token_type: str = Field("bearer", description="Token type.")
    user: UserResponse


class MessageResponse(BaseModel):
    message: str
