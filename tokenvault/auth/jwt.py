"""Bearer token verification: recover the tenant id from a signed JWT."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from tokenvault.config import config
from tokenvault.exceptions import Unauthenticated

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


class IdentityVerifier:
    """Validates ``Authorization: Bearer <jwt>`` headers.

    Only the signed ``sub`` claim is trusted. Roles and any other claims in
    the payload are ignored; authorization data comes from the store.

    Args:
        secret: Shared HMAC secret. Defaults to ``TOKENVAULT_JWT_SECRET``.
        algorithm: Signing algorithm. Defaults to ``TOKENVAULT_JWT_ALGORITHM``.
    """

    def __init__(self, secret: Optional[str] = None, algorithm: Optional[str] = None) -> None:
        self._secret = secret if secret is not None else config.jwt_secret
        self._algorithm = algorithm or config.jwt_algorithm
        if not self._secret:
            raise ValueError("IdentityVerifier requires a non-empty shared secret")

    def verify(self, bearer_header: Optional[str]) -> str:
        """Return the tenant id carried by *bearer_header*.

        Raises:
            Unauthenticated: missing header, wrong scheme, bad signature,
                expired token, or no usable ``sub`` claim.
        """
        if not bearer_header:
            raise Unauthenticated("Missing Authorization header")
        if not bearer_header.startswith(BEARER_PREFIX):
            raise Unauthenticated("Invalid auth scheme")
        token = bearer_header[len(BEARER_PREFIX):].strip()
        if not token:
            raise Unauthenticated("Empty bearer token")

        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"verify_aud": False, "require": ["sub"]},
            )
        except jwt.ExpiredSignatureError:
            raise Unauthenticated("Token expired")
        except jwt.InvalidTokenError as exc:
            logger.debug("[Auth] Token rejected: %s", exc.__class__.__name__)
            raise Unauthenticated("Invalid token")

        subject = payload.get("sub")
        if not isinstance(subject, str) or not subject:
            raise Unauthenticated("Token has no subject")
        return subject

    def issue(self, tenant_id: str, expires_minutes: Optional[int] = None) -> str:
        """Mint a token for *tenant_id*. Used by the CLI and tests."""
        now = datetime.now(timezone.utc)
        minutes = expires_minutes if expires_minutes is not None else config.jwt_expiry_minutes
        payload = {
            "sub": tenant_id,
            "iat": now,
            "exp": now + timedelta(minutes=minutes),
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)
