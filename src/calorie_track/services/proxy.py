"""Request orchestration for the estimation and credits endpoints."""

import logging
from dataclasses import dataclass, field

from calorie_track.domain.auth import AuthenticatedUser
from calorie_track.domain.errors import InternalError, ProxyError, RateLimitError
from calorie_track.services.auth import AuthVerifier
from calorie_track.services.credits import CreditLedger
from calorie_track.services.estimation import EstimationService
from calorie_track.services.payloads import (
    DEFAULT_MAX_FOOD_LENGTH,
    parse_estimate_body,
)

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProxyResult:
    """Outcome of a proxied request; `body` is None for empty responses."""

    status_code: int
    body: dict[str, object] | None
    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class EstimateProxy:
    """Gate model calls behind authentication and the daily credit ledger."""

    auth_verifier: AuthVerifier
    credit_ledger: CreditLedger
    estimation_service: EstimationService
    max_food_length: int = DEFAULT_MAX_FOOD_LENGTH

    async def handle_estimate(
        self, method: str, authorization: str | None, body: bytes
    ) -> ProxyResult:
        """Validate, authenticate, admit, call upstream and account the credit.

        Checks run in order: method, body shape, auth, credits, upstream. A
        credit is reserved on admission and consumed only after the upstream
        call returns a valid estimate; any failure or cancellation releases it.
        """
        if method == "OPTIONS":
            return ProxyResult(status_code=204, body=None)
        if method != "POST":
            return _method_not_allowed()

        try:
            request = parse_estimate_body(body, self.max_food_length)
            user = await self.auth_verifier.verify(authorization)
            self._admit(user)
            _logger.info("Calling upstream model for %s", user.user_id)
            try:
                estimate = await self.estimation_service.estimate(request)
            except BaseException:
                self.credit_ledger.release(user.user_id)
                raise
            used = self.credit_ledger.commit(user.user_id)
        except ProxyError as exc:
            return _error_result(exc)
        except Exception:
            _logger.exception("Unhandled error while proxying estimate")
            return _error_result(InternalError("Internal server error"))

        limit = self.credit_ledger.limit
        remaining = max(0, limit - used)
        payload = estimate.to_payload()
        payload["creditsUsed"] = used
        payload["creditsRemaining"] = remaining
        return ProxyResult(
            status_code=200,
            body=payload,
            headers={
                "X-Credits-Remaining": str(remaining),
                "X-Credits-Used": str(used),
                "X-Credits-Limit": str(limit),
            },
        )

    async def handle_credits(
        self, method: str, authorization: str | None
    ) -> ProxyResult:
        """Return the caller's credit status for today."""
        if method == "OPTIONS":
            return ProxyResult(status_code=204, body=None)
        if method != "GET":
            return _method_not_allowed()

        try:
            user = await self.auth_verifier.verify(authorization)
            status = self.credit_ledger.status(user.user_id)
        except ProxyError as exc:
            return _error_result(exc)
        except Exception:
            _logger.exception("Unhandled error while reading credits")
            return _error_result(InternalError("Internal server error"))

        _logger.info(
            "Credit check for %s: used %s/%s, remaining %s",
            user.email or user.user_id,
            status.used,
            status.limit,
            status.remaining,
        )
        return ProxyResult(status_code=200, body=status.to_payload())

    def _admit(self, user: AuthenticatedUser) -> None:
        ledger = self.credit_ledger
        if ledger.reserve(user.user_id):
            return
        status = ledger.status(user.user_id)
        _logger.info(
            "Blocked %s: used %s/%s credits", user.user_id, status.used, status.limit
        )
        raise RateLimitError(
            "Daily AI credit limit reached",
            context={
                "limit": status.limit,
                "used": status.used,
                "remaining": 0,
                "resetTime": status.reset_time.isoformat(),
                "message": (
                    f"You've used all {status.limit} daily AI credits. "
                    "Credits reset at midnight."
                ),
            },
        )


def _method_not_allowed() -> ProxyResult:
    return ProxyResult(status_code=405, body={"error": "Method not allowed"})


def _error_result(exc: ProxyError) -> ProxyResult:
    if exc.status_code >= 500:
        _logger.warning("Request failed with %s: %s", exc.status_code, exc.message)
    return ProxyResult(status_code=exc.status_code, body=exc.to_payload())
