"""Admin API endpoints with simple token auth."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

if TYPE_CHECKING:
    from calorie_track.containers import AppContainer

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_admin_token(request: Request) -> str | None:
    container: AppContainer = request.app.state.container
    return container.settings.admin_token


async def require_admin(
    x_admin_token: str | None = Header(default=None),
    admin_token: str | None = Depends(_get_admin_token),
) -> None:
    """Ensure requests include a valid admin token."""
    if not admin_token or not x_admin_token or x_admin_token != admin_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


@router.get("/credits", dependencies=[Depends(require_admin)])
async def list_credits(request: Request) -> dict[str, object]:
    """Return every credit record currently held by the ledger."""
    container: AppContainer = request.app.state.container
    records = container.credit_ledger.records()
    return {
        "dailyLimit": container.credit_ledger.limit,
        "totalUsers": len({record.user_id for record in records}),
        "credits": [
            {
                "userId": record.user_id,
                "day": record.day.isoformat(),
                "count": record.count,
            }
            for record in records
        ],
    }
