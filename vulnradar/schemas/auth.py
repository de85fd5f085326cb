"""Request/response schemas for auth and user endpoints."""

from typing import Literal

from pydantic import BaseModel, Field

Role = Literal["employee", "manager", "admin"]

ROLE_VALUES: frozenset[str] = frozenset({"employee", "manager", "admin"})

DEFAULT_ROLE: Role = "employee"


def normalize_role(value: str | None) -> Role:
    """Lower-case a role; unknown or missing roles fall back to employee."""
    if not value or not value.strip():
        return DEFAULT_ROLE
    normalized = value.strip().lower()
    if normalized not in ROLE_VALUES:
        return DEFAULT_ROLE
    return normalized  # type: ignore[return-value]


class LoginRequest(BaseModel):
    """Credentials for local-account login."""

    email: str = Field(..., min_length=3, max_length=255, description="Account email")
    password: str = Field(..., min_length=8, max_length=128, description="Password")


class TokenResponse(BaseModel):
    """JWT access token returned after successful login."""

    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type")


class VerifyTokenRequest(BaseModel):
    """Identity-provider token plus optional signup details (role, company)."""

    id_token: str = Field(..., min_length=1, description="Identity-provider ID token")
    role: str | None = Field(
        default=None,
        description="Role requested at signup; new accounts start as employee until an admin promotes them",
    )
    company_id: int | None = Field(default=None, ge=1, description="Company to join at signup")


class CurrentUser(BaseModel):
    """Authenticated user for dependency injection."""

    model_config = {"from_attributes": True}

    id: int
    email: str
    display_name: str | None = None
    role: str
    subject_id: str | None = None
    company_name: str | None = None


class AuthResponse(BaseModel):
    """Response of token verification."""

    message: str
    user: CurrentUser
    id_token: str


class UpdateUserRequest(BaseModel):
    """Link the caller to a company; only admins may also change their own role."""

    company_id: int | None = Field(default=None, ge=1)
    role: Role | None = None


class UpdateUserRoleRequest(BaseModel):
    """Admin change of another member's role."""

    role: Role


class UserListItem(BaseModel):
    """User entry for admin lists (no credentials)."""

    model_config = {"from_attributes": True}

    id: int
    email: str
    display_name: str | None = None
    role: str
    company_name: str | None = None
    is_active: bool = True


class UsersListResponse(BaseModel):
    """Response for GET /users (admin only)."""

    users: list[UserListItem]
