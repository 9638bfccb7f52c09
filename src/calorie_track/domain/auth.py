"""Authentication domain models."""

from dataclasses import dataclass


@dataclass(frozen=True)
class AuthenticatedUser:
    """Identity extracted from a verified ID token."""

    user_id: str
    email: str | None
