"""FastAPI application factory."""

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Awaitable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from calorie_track.api.admin import router as admin_router
from calorie_track.app_logging import configure_logging
from calorie_track.containers import AppContainer
from calorie_track.services.proxy import ProxyResult

_PROXY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
_ALLOWED_METHODS = {
    "/api/estimate": "POST, OPTIONS",
    "/api/claude": "POST, OPTIONS",
    "/api/credits": "GET, OPTIONS",
}
_DISCONNECT_POLL_SECONDS = 0.5
# Client closed the connection before a response was sent.
CLIENT_CLOSED_REQUEST = 499

_logger = logging.getLogger(__name__)


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()

    async def purge_stale_credits() -> None:
        interval = container.settings.ledger_cleanup_interval_seconds
        while True:
            await asyncio.sleep(interval)
            try:
                container.credit_ledger.purge_stale()
            except Exception:
                _logger.exception("Failed to purge stale credit records")

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        cleanup_task = asyncio.create_task(purge_stale_credits())
        _logger.info(
            "Calorie proxy started: daily limit %s AI calls per user",
            container.credit_ledger.limit,
        )
        yield
        cleanup_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await cleanup_task
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(admin_router)

    @app.exception_handler(StarletteHTTPException)
    async def method_not_allowed(
        request: Request, exc: StarletteHTTPException
    ) -> Response:
        """Answer unrouted methods with the JSON error body and CORS headers."""
        if exc.status_code != 405:
            return await http_exception_handler(request, exc)
        state_container: AppContainer = request.app.state.container
        methods = _ALLOWED_METHODS.get(request.url.path, "GET, POST, OPTIONS")
        return JSONResponse(
            content={"error": "Method not allowed"},
            status_code=405,
            headers={**(exc.headers or {}), **_cors_headers(state_container, methods)},
        )

    @app.get("/health")
    async def health(request: Request) -> dict[str, object]:
        """Simple health check endpoint."""
        state_container: AppContainer = request.app.state.container
        return {"status": "ok", "dailyLimit": state_container.credit_ledger.limit}

    @app.api_route("/api/estimate", methods=_PROXY_METHODS)
    @app.api_route("/api/claude", methods=_PROXY_METHODS)
    async def estimate(request: Request) -> Response:
        """Estimate calories for a food description or photo."""
        state_container: AppContainer = request.app.state.container
        body = await request.body()
        result = await run_until_disconnect(
            request,
            state_container.proxy.handle_estimate(
                request.method, request.headers.get("authorization"), body
            ),
        )
        if result is None:
            return Response(status_code=CLIENT_CLOSED_REQUEST)
        return _render(result, _cors_headers(state_container, "POST, OPTIONS"))

    @app.api_route("/api/credits", methods=_PROXY_METHODS)
    async def credit_status(request: Request) -> Response:
        """Return the caller's credit status for today."""
        state_container: AppContainer = request.app.state.container
        result = await state_container.proxy.handle_credits(
            request.method, request.headers.get("authorization")
        )
        return _render(result, _cors_headers(state_container, "GET, OPTIONS"))

    return app


async def run_until_disconnect(
    request: Request,
    call: Awaitable[ProxyResult],
    poll_seconds: float = _DISCONNECT_POLL_SECONDS,
) -> ProxyResult | None:
    """Await a proxy call, cancelling it if the client disconnects first.

    Returns None when the call was cancelled.
    """
    task = asyncio.ensure_future(call)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=poll_seconds)
            if done:
                return task.result()
            if await request.is_disconnected():
                _logger.info("Client disconnected, cancelling %s", request.url.path)
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
                return None
    finally:
        if not task.done():
            task.cancel()


def _cors_headers(container: AppContainer, methods: str) -> dict[str, str]:
    return {
        "Access-Control-Allow-Origin": container.settings.cors_allow_origin,
        "Access-Control-Allow-Headers": "Content-Type, Authorization",
        "Access-Control-Allow-Methods": methods,
    }


def _render(result: ProxyResult, cors_headers: dict[str, str]) -> Response:
    """Turn a proxy result into a response with CORS headers attached."""
    headers = {**cors_headers, **result.headers}
    if result.body is None:
        return Response(status_code=result.status_code, headers=headers)
    return JSONResponse(
        content=result.body, status_code=result.status_code, headers=headers
    )
