"""Login, identity-provider token verification and auth dependencies (get_current_user, require_admin)."""

import logging
from typing import Annotated

import jwt
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import func
from sqlalchemy.orm import Session

from vulnradar.api.v1.errors import client_ip, to_http_exception
from vulnradar.core.config import get_settings
from vulnradar.core.database import get_db
from vulnradar.core.security import (
    EMAIL_MAX_LEN,
    EMAIL_MIN_LEN,
    PASSWORD_MAX_LEN,
    PASSWORD_MIN_LEN,
    create_access_token,
    decode_access_token,
    verify_password,
)
from vulnradar.models import Company, User
from vulnradar.schemas.auth import (
    DEFAULT_ROLE,
    AuthResponse,
    CurrentUser,
    LoginRequest,
    TokenResponse,
    VerifyTokenRequest,
    normalize_role,
)
from vulnradar.services.access import is_admin
from vulnradar.services.audit import record_audit
from vulnradar.services.companies import link_user_to_company
from vulnradar.services.errors import ServiceError
from vulnradar.services.identity import (
    FirebaseIdentityProvider,
    IdentityClaims,
    IdentityNotConfiguredError,
    IdentityVerificationError,
)

logger = logging.getLogger(__name__)
router = APIRouter()
security = HTTPBearer(auto_error=False)


def get_identity_provider() -> FirebaseIdentityProvider:
    """Dependency: identity provider client (overridden in tests)."""
    return FirebaseIdentityProvider(get_settings())


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _validate_email(email: str) -> None:
    if not (EMAIL_MIN_LEN <= len(email) <= EMAIL_MAX_LEN):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Invalid email length.",
        )


def _validate_password(password: str) -> None:
    if not (PASSWORD_MIN_LEN <= len(password) <= PASSWORD_MAX_LEN):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Invalid password length.",
        )


def _find_user_by_email(db: Session, email: str) -> User | None:
    return db.query(User).filter(func.lower(User.email) == email.strip().lower()).first()


def to_current_user(user: User) -> CurrentUser:
    return CurrentUser(
        id=user.id,
        email=user.email,
        display_name=user.display_name,
        role=user.role,
        subject_id=user.subject_id,
        company_name=user.company_name,
    )


@router.post("/login", response_model=TokenResponse)
def login(
    body: LoginRequest,
    db: Annotated[Session, Depends(get_db)],
) -> TokenResponse:
    """
    Authenticate a local account with email and password; returns a JWT access token.
    Include the token in the Authorization header as: Bearer <access_token>
    """
    _validate_email(body.email)
    _validate_password(body.password)

    user = _find_user_by_email(db, body.email)
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password.",
        )
    if not verify_password(body.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password.",
        )
    token = create_access_token(sub=user.id, role=user.role)
    return TokenResponse(access_token=token, token_type="bearer")


def _upsert_identity_user(db: Session, claims: IdentityClaims, requested_role: str | None) -> tuple[User, bool]:
    """
    Find the user for verified claims (by subject, then email) or create one as an employee.
    Returns (user, created). Elevated roles are granted only by an admin (PUT /users/{id}/role).
    """
    user = db.query(User).filter(User.subject_id == claims.uid).first()
    if user is not None:
        return user, False
    user = _find_user_by_email(db, claims.email or "")
    if user is not None:
        user.subject_id = claims.uid
        if not user.display_name and claims.display_name:
            user.display_name = claims.display_name
        db.commit()
        return user, False
    user = User(
        email=claims.email,
        display_name=claims.display_name,
        role=DEFAULT_ROLE,
        subject_id=claims.uid,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    if normalize_role(requested_role) != DEFAULT_ROLE:
        logger.warning(
            "Requested signup role ignored",
            extra={"user_id": user.id, "requested_role": requested_role},
        )
    return user, True


@router.post("/verify-token", response_model=AuthResponse)
def verify_token(
    body: VerifyTokenRequest,
    request: Request,
    db: Annotated[Session, Depends(get_db)],
    provider: Annotated[FirebaseIdentityProvider, Depends(get_identity_provider)],
) -> AuthResponse:
    """
    Verify an identity-provider ID token. The email must be verified. First sight of a
    subject creates an employee account, optionally linked to a company.
    """
    try:
        claims = provider.verify(body.id_token)
    except IdentityNotConfiguredError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message) from e
    except IdentityVerificationError as e:
        raise _unauthorized(e.message) from e

    if not claims.email:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Token has no email address")
    if not claims.email_verified:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email not verified. Please verify your email before signing in.",
        )

    if body.company_id is not None and db.get(Company, body.company_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Company not found")

    user, created = _upsert_identity_user(db, claims, body.role)
    if created:
        if body.company_id is not None:
            try:
                link_user_to_company(db, user, body.company_id)
            except ServiceError as e:
                raise to_http_exception(e) from e
        record_audit(
            db,
            user.id,
            "user_registered",
            entity_type="user",
            entity_id=user.id,
            details=f"role={user.role}",
            ip_address=client_ip(request),
        )
        logger.info("User registered", extra={"user_id": user.id, "role": user.role})
    if not user.is_active:
        raise _unauthorized("Account is disabled")

    return AuthResponse(
        message="User created" if created else "Token verified",
        user=to_current_user(user),
        id_token=body.id_token,
    )


def _user_from_local_token(db: Session, token: str) -> User | None:
    """User for a local JWT, or None when the token is not one of ours."""
    try:
        payload = decode_access_token(token)
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Invalid or expired token")
    except jwt.PyJWTError:
        return None
    sub = payload.get("sub")
    try:
        user_id = int(sub)
    except (TypeError, ValueError):
        raise _unauthorized("Invalid token payload")
    user = db.get(User, user_id)
    if user is None:
        raise _unauthorized("User not found")
    return user


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[Session, Depends(get_db)],
    provider: Annotated[FirebaseIdentityProvider, Depends(get_identity_provider)],
) -> CurrentUser:
    """
    Dependency: resolve the Bearer token to a user. Local JWTs are checked first, then the
    identity provider. Raises 401 if missing, invalid, or the user is unknown.
    """
    if credentials is None:
        raise _unauthorized("Not authenticated")
    token = credentials.credentials

    user = _user_from_local_token(db, token)
    if user is None:
        try:
            claims = provider.verify(token)
        except IdentityVerificationError as e:
            raise _unauthorized(e.message) from e
        user = db.query(User).filter(User.subject_id == claims.uid).first()
        if user is None:
            raise _unauthorized("User not found")
    if not user.is_active:
        raise _unauthorized("Account is disabled")
    return to_current_user(user)


def require_admin(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
) -> CurrentUser:
    """Dependency: require authenticated user with role 'admin'. Raises 403 for non-admin."""
    if not is_admin(current_user.role):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return current_user


@router.get("/me", response_model=CurrentUser)
def read_me(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
) -> CurrentUser:
    return current_user
