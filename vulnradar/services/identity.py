"""Identity-provider token verification (Firebase accounts:lookup REST API)."""

import json
import logging
from typing import TYPE_CHECKING

import httpx
from pydantic import BaseModel

if TYPE_CHECKING:
    from vulnradar.core.config import Settings

logger = logging.getLogger(__name__)


class IdentityVerificationError(Exception):
    """Raised when a bearer token cannot be verified by the identity provider."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class IdentityNotConfiguredError(IdentityVerificationError):
    """Raised when IDENTITY_API_KEY is not set."""


class IdentityClaims(BaseModel):
    """Verified identity returned by the provider."""

    uid: str
    email: str | None = None
    email_verified: bool = False
    display_name: str | None = None


class FirebaseIdentityProvider:
    """Verifies ID tokens with accounts:lookup; a token is valid when the lookup returns a user."""

    def __init__(self, settings: "Settings", client: httpx.Client | None = None) -> None:
        self._settings = settings
        self._client = client

    def verify(self, id_token: str) -> IdentityClaims:
        if self._settings.IDENTITY_API_KEY is None:
            raise IdentityNotConfiguredError("Identity provider is not configured (IDENTITY_API_KEY).")
        if not id_token or not id_token.strip():
            raise IdentityVerificationError("Missing token")

        params = {"key": self._settings.IDENTITY_API_KEY.get_secret_value()}
        payload = {"idToken": id_token}
        try:
            if self._client is not None:
                response = self._client.post(
                    self._settings.IDENTITY_LOOKUP_URL, params=params, json=payload
                )
            else:
                timeout = httpx.Timeout(self._settings.IDENTITY_REQUEST_TIMEOUT_SEC)
                with httpx.Client(timeout=timeout) as client:
                    response = client.post(
                        self._settings.IDENTITY_LOOKUP_URL, params=params, json=payload
                    )
        except httpx.HTTPError as e:
            logger.warning("Identity provider request failed", extra={"error": str(e)})
            raise IdentityVerificationError("Identity provider is unreachable.") from e

        if response.status_code != 200:
            logger.info(
                "Identity token rejected",
                extra={"status_code": response.status_code},
            )
            raise IdentityVerificationError("Invalid or expired token")

        try:
            body = response.json()
        except json.JSONDecodeError as e:
            raise IdentityVerificationError("Identity provider returned invalid JSON.") from e

        users = body.get("users") if isinstance(body, dict) else None
        if not users:
            raise IdentityVerificationError("Invalid or expired token")
        user = users[0]
        uid = user.get("localId")
        if not uid:
            raise IdentityVerificationError("Invalid token payload")
        return IdentityClaims(
            uid=uid,
            email=user.get("email"),
            email_verified=bool(user.get("emailVerified", False)),
            display_name=user.get("displayName"),
        )
