"""Credit ledger domain models."""

from dataclasses import dataclass
from datetime import date, datetime


@dataclass(frozen=True)
class CreditRecord:
    """Calls made by a user on a single calendar day."""

    user_id: str
    day: date
    count: int


@dataclass(frozen=True)
class CreditStatus:
    """Snapshot of a user's credits for today."""

    limit: int
    used: int
    reset_time: datetime

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.used)

    def to_payload(self) -> dict[str, object]:
        """Return the wire representation used by the credits endpoint."""
        return {
            "remaining": self.remaining,
            "used": self.used,
            "limit": self.limit,
            "resetTime": self.reset_time.isoformat(),
        }
