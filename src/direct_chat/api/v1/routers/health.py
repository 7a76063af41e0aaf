from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from direct_chat.config import settings
from direct_chat.infrastructure.db.session import AsyncSessionLocal

router = APIRouter(tags=["health"])


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz")
async def readyz(request: Request) -> JSONResponse:
    errors: list[str] = []

    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
    except Exception as exc:  # noqa: BLE001
        errors.append(f"postgres: {exc}")

    if settings.FANOUT_BACKEND == "redis":
        try:
            await request.app.state.redis.ping()
        except Exception as exc:  # noqa: BLE001
            errors.append(f"redis: {exc}")
        subscriber = request.app.state.fanout_subscriber
        if subscriber is None or not subscriber.running:
            errors.append("fanout: subscriber not running")

    if errors:
        return JSONResponse(
            status_code=503,
            content={"status": "unavailable", "errors": errors},
        )
    return JSONResponse(
        content={
            "status": "ready",
            "connections": request.app.state.manager.connection_count,
        },
    )
