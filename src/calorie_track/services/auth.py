"""Bearer token verification."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol

from calorie_track.domain.auth import AuthenticatedUser
from calorie_track.domain.errors import AuthError

_BEARER_PREFIX = "Bearer "

_logger = logging.getLogger(__name__)


class TokenVerifier(Protocol):
    """Interface for the identity provider that issued the ID token."""

    async def verify_id_token(self, token: str) -> dict[str, object]:
        """Return the decoded claims, raising when the token is rejected."""


@dataclass
class AuthVerifier:
    """Resolve the caller identity from an Authorization header."""

    client: TokenVerifier
    timeout_seconds: float = 10.0

    async def verify(self, authorization: str | None) -> AuthenticatedUser:
        """Verify the bearer token once and return the user identity."""
        token = extract_bearer_token(authorization)
        if token is None:
            raise AuthError("No authentication token provided")
        try:
            claims = await asyncio.wait_for(
                self.client.verify_id_token(token), timeout=self.timeout_seconds
            )
        except TimeoutError:
            _logger.warning("Token verification timed out")
            raise AuthError("Authentication check timed out") from None
        except Exception as exc:
            _logger.warning("Token verification failed: %s", exc)
            raise AuthError("Invalid authentication token") from exc

        user_id = claims.get("uid") or claims.get("sub")
        if not user_id:
            raise AuthError("Invalid authentication token")
        email = claims.get("email")
        user = AuthenticatedUser(
            user_id=str(user_id), email=str(email) if email else None
        )
        _logger.info("Authenticated: %s (%s)", user.email, user.user_id)
        return user


def extract_bearer_token(authorization: str | None) -> str | None:
    """Return the token from a `Bearer <token>` header value."""
    if not authorization or not authorization.startswith(_BEARER_PREFIX):
        return None
    token = authorization[len(_BEARER_PREFIX) :].strip()
    return token or None
