"""
Authentication schemas for request/response validation.
"""

from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from cargo_api.database.models.worker import WorkerRole


class LoginRequest(BaseModel):
    """
    Schema for login requests.
    """

    email: EmailStr = Field(
        ...,
        description="Worker email address",
        examples=["worker@cargo.mn"],
    )
    password: str = Field(
        ...,
        min_length=1,
        max_length=128,
        description="Worker password",
    )


class LoginResponse(BaseModel):
    """
    Schema for a successful login.

    The token carries the worker id, role and a unique token id and must be
    sent back as ``Authorization: Bearer <token>``.
    """

    token: str = Field(..., description="Signed identity token")
    token_type: str = Field(default="bearer")
    expires_in: int = Field(..., description="Token lifetime in seconds")
    user_id: UUID
    email: str
    name: str
    role: WorkerRole
